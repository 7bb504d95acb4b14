"""Configuration management for mtc.

Two files are involved:

* ``config.yaml`` in the data directory holds application preferences
  (``ConfigModel``). A default one is written on first use.
* ``sync-conf.json`` names the remote replica (``SyncSettings``). It is never
  created automatically; syncing without it is an error.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import yaml

from .errors import ConfigError, ConfigMissing

logger = logging.getLogger(__name__)


APP_NAME = "mtc"
CONFIG_FILENAME = "config.yaml"
SYNC_SETTINGS_FILENAME = "sync-conf.json"
DEFAULT_SSH_PORT = 22


def default_data_dir() -> str:
    """Per-user application directory following the OS convention."""
    return click.get_app_dir(APP_NAME)


@dataclass
class ConfigModel:
    """Application configuration for mtc."""

    # File paths
    data_dir: str = field(default_factory=default_data_dir)
    sync_settings_file: str = SYNC_SETTINGS_FILENAME  # relative to data_dir unless absolute

    # Reconciliation policy
    event_expiry_days: int = 3
    expire_events_on_load: bool = False  # also expire events outside of sync

    # Listing policy
    carry_forward_todos: bool = True
    first_day_of_week: int = 0  # 0=Monday, 6=Sunday
    month_days: int = 30

    # Transport
    sync_timeout: int = 60  # seconds per remote copy

    # Display
    date_format: str = "%Y-%m-%d"
    no_color: bool = False

    def __post_init__(self):
        """Expand paths and check policy values."""
        self.data_dir = os.path.expanduser(str(self.data_dir))
        Path(self.data_dir).mkdir(parents=True, exist_ok=True)

        if not isinstance(self.event_expiry_days, int) or self.event_expiry_days < 0:
            raise ConfigError(f"event_expiry_days must be a non-negative integer, got {self.event_expiry_days!r}")
        if self.first_day_of_week not in range(7):
            raise ConfigError(f"first_day_of_week must be 0-6, got {self.first_day_of_week!r}")

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data = {
            "data_dir": self.data_dir,
            "sync_settings_file": self.sync_settings_file,
            "event_expiry_days": self.event_expiry_days,
            "expire_events_on_load": self.expire_events_on_load,
            "carry_forward_todos": self.carry_forward_todos,
            "first_day_of_week": self.first_day_of_week,
            "month_days": self.month_days,
            "sync_timeout": self.sync_timeout,
            "date_format": self.date_format,
            "no_color": self.no_color,
        }
        return yaml.dump(data, default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML, ignoring unknown keys."""
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration: {e}")
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping of settings.")

        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**{key: value for key, value in data.items() if key in known})

    def get_config_path(self) -> Path:
        return Path(self.data_dir) / CONFIG_FILENAME

    def get_sync_settings_path(self) -> Path:
        path = Path(os.path.expanduser(self.sync_settings_file))
        if path.is_absolute():
            return path
        return Path(self.data_dir) / path

    def listing_policy(self) -> Dict[str, Any]:
        """Keyword arguments for ``DayFilter`` constructors."""
        return {
            "carry_forward": self.carry_forward_todos,
            "first_day_of_week": self.first_day_of_week,
        }


class Config:
    """Loading and saving of ``ConfigModel`` files."""

    @classmethod
    def load(cls, config_path: Optional[Path] = None, data_dir: Optional[str] = None) -> ConfigModel:
        """Load configuration from file, writing a default one if none exists.

        Args:
            config_path: Explicit config file; defaults to ``<data_dir>/config.yaml``
            data_dir: Overrides the data directory of the loaded configuration
        """
        if config_path is None:
            config_path = Path(os.path.expanduser(str(data_dir or default_data_dir()))) / CONFIG_FILENAME
        config_path = Path(config_path)

        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                config = ConfigModel.from_yaml(f.read())
            logger.debug(f"Loaded configuration from {config_path}")
            if data_dir:
                config = replace(config, data_dir=data_dir)
        else:
            config = ConfigModel(data_dir=data_dir) if data_dir else ConfigModel()
            cls.save(config, config_path)
            logger.info(f"Created default configuration at {config_path}")

        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = config.get_config_path()
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(config.to_yaml())
        logger.debug(f"Configuration saved to {config_path}")


def load_config(config_path: Optional[Path] = None, data_dir: Optional[str] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path, data_dir)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    Config.save(config, config_path)


@dataclass
class SyncSettings:
    """Connection settings naming the remote replica."""

    username: str
    address: str  # host or host:port
    server_path: str  # remote directory holding the snapshot documents

    def __post_init__(self):
        for name in ("username", "address", "server_path"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"Sync setting '{name}' must be non-empty text.")
        self.host_port()

    def host_port(self) -> Tuple[str, int]:
        """Split ``address`` into host and port (22 when omitted)."""
        host, sep, port = self.address.strip().rpartition(":")
        if not sep:
            return self.address.strip(), DEFAULT_SSH_PORT
        try:
            port_number = int(port)
        except ValueError:
            raise ConfigError(f"Invalid port in sync address '{self.address}'.")
        if not host or not 0 < port_number < 65536:
            raise ConfigError(f"Invalid sync address '{self.address}'.")
        return host, port_number

    @property
    def host(self) -> str:
        return self.host_port()[0]

    @property
    def port(self) -> int:
        return self.host_port()[1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "address": self.address,
            "server_path": self.server_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncSettings":
        if not isinstance(data, dict):
            raise ConfigError("Sync settings must be a JSON object.")
        missing = [name for name in ("username", "address", "server_path") if name not in data]
        if missing:
            raise ConfigError(f"Sync settings are missing: {', '.join(missing)}")
        return cls(
            username=data["username"],
            address=data["address"],
            server_path=data["server_path"],
        )


def load_sync_settings(path: Path) -> SyncSettings:
    """Read the sync settings file.

    Raises:
        ConfigMissing: If the file does not exist
        ConfigError: If it cannot be parsed
    """
    path = Path(path)
    if not path.exists():
        raise ConfigMissing(
            f"Sync settings not found at {path}. Create it with 'username', 'address' and 'server_path'."
        )
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except ValueError as e:
        raise ConfigError(f"Sync settings at {path} are not valid JSON: {e}")
    settings = SyncSettings.from_dict(data)
    logger.debug(f"Loaded sync settings for {settings.username}@{settings.address}")
    return settings
