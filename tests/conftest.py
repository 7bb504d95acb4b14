"""Pytest configuration and shared fixtures."""

import sys
from datetime import date
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mtc.config import ConfigModel
from mtc.store import LocalStorage


@pytest.fixture
def today():
    """A fixed Wednesday."""
    return date(2024, 1, 10)


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def storage(data_dir):
    return LocalStorage(data_dir)


@pytest.fixture
def config(data_dir):
    return ConfigModel(data_dir=str(data_dir))
