"""Tests for configuration and sync settings."""

import json
from pathlib import Path

import pytest

from mtc.config import (
    ConfigModel,
    SyncSettings,
    load_config,
    load_sync_settings,
    save_config,
)
from mtc.errors import ConfigError, ConfigMissing


class TestConfigModel:
    """YAML configuration file handling."""

    def test_defaults(self, config):
        assert config.event_expiry_days == 3
        assert config.expire_events_on_load is False
        assert config.carry_forward_todos is True
        assert config.first_day_of_week == 0
        assert config.listing_policy() == {"carry_forward": True, "first_day_of_week": 0}

    def test_load_creates_default_file(self, data_dir):
        config = load_config(data_dir=str(data_dir))
        assert (data_dir / "config.yaml").exists()
        assert config.data_dir == str(data_dir)

    def test_saved_values_are_loaded(self, data_dir):
        config = ConfigModel(data_dir=str(data_dir), event_expiry_days=7, first_day_of_week=6)
        save_config(config)

        loaded = load_config(data_dir=str(data_dir))
        assert loaded.event_expiry_days == 7
        assert loaded.first_day_of_week == 6

    def test_explicit_config_path(self, tmp_path, data_dir):
        config_path = tmp_path / "custom.yaml"
        config_path.write_text(f"data_dir: {data_dir}\nmonth_days: 14\n")
        config = load_config(config_path)
        assert config.month_days == 14
        assert config.data_dir == str(data_dir)

    def test_unknown_keys_are_ignored(self, data_dir):
        config = ConfigModel.from_yaml(f"data_dir: {data_dir}\ncolour_scheme: dark\n")
        assert not hasattr(config, "colour_scheme")

    @pytest.mark.parametrize("text", ["data_dir: [unclosed", "- just\n- a list\n"])
    def test_unreadable_configuration(self, text):
        with pytest.raises(ConfigError):
            ConfigModel.from_yaml(text)

    @pytest.mark.parametrize("setting", ["first_day_of_week: 9", "event_expiry_days: -1"])
    def test_invalid_policy_values(self, setting, data_dir):
        with pytest.raises(ConfigError):
            ConfigModel.from_yaml(f"data_dir: {data_dir}\n{setting}\n")

    def test_sync_settings_path(self, data_dir, tmp_path):
        config = ConfigModel(data_dir=str(data_dir))
        assert config.get_sync_settings_path() == data_dir / "sync-conf.json"

        absolute = tmp_path / "elsewhere.json"
        config = ConfigModel(data_dir=str(data_dir), sync_settings_file=str(absolute))
        assert config.get_sync_settings_path() == absolute


class TestSyncSettings:
    def test_default_port(self):
        settings = SyncSettings(username="alice", address="example.org", server_path="/srv/mtc")
        assert settings.host_port() == ("example.org", 22)

    def test_explicit_port(self):
        settings = SyncSettings(username="alice", address="example.org:2222", server_path="/srv/mtc")
        assert settings.host == "example.org"
        assert settings.port == 2222

    @pytest.mark.parametrize("address", ["example.org:ssh", ":22", "example.org:70000"])
    def test_invalid_address(self, address):
        with pytest.raises(ConfigError):
            SyncSettings(username="alice", address=address, server_path="/srv/mtc")

    def test_empty_fields(self):
        with pytest.raises(ConfigError):
            SyncSettings(username="", address="example.org", server_path="/srv/mtc")

    def test_load(self, tmp_path):
        path = tmp_path / "sync-conf.json"
        path.write_text(json.dumps({"username": "alice", "address": "example.org", "server_path": "/srv/mtc"}))
        settings = load_sync_settings(path)
        assert settings.to_dict() == {"username": "alice", "address": "example.org", "server_path": "/srv/mtc"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigMissing):
            load_sync_settings(tmp_path / "sync-conf.json")
        assert not (tmp_path / "sync-conf.json").exists()

    @pytest.mark.parametrize("content", [
        "{not json",
        "[]",
        '{"username": "alice", "address": "example.org"}',
    ])
    def test_malformed_file(self, tmp_path, content):
        path = Path(tmp_path) / "sync-conf.json"
        path.write_text(content)
        with pytest.raises(ConfigError) as exc_info:
            load_sync_settings(path)
        assert not isinstance(exc_info.value, ConfigMissing)
