"""Tests for configuration validation and logging setup"""

import logging
import pytest
from unittest.mock import patch

from gamify import config
from gamify.exceptions import ConfigurationError
from gamify.logging_config import setup_logging


def test_defaults_are_valid():
    config.validate_config()


@pytest.mark.parametrize("key,value", [
    ("DATABASE_URL", ""),
    ("DB_POOL_MIN_SIZE", 0),
    ("DB_POOL_MAX_SIZE", 1),
    ("POINTS_TO_CURRENCY_RATE", 0),
    ("CURRENCY_HISTORY_CAP", 0),
    ("MAX_CASCADE_DEPTH", 0),
    ("GAMIFY_TIMEZONE", "Mars/Olympus_Mons"),
])
def test_invalid_settings(monkeypatch, key, value):
    monkeypatch.setattr(config, "DB_POOL_MIN_SIZE", 2)
    monkeypatch.setattr(config, "DB_POOL_MAX_SIZE", 10)
    monkeypatch.setattr(config, key, value)

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate_config()

    assert exc_info.value.config_key in {key, "DB_POOL_MAX_SIZE"}


def test_setup_logging_uses_level_name():
    with patch("logging.basicConfig") as mock_basic:
        setup_logging("debug")

    assert mock_basic.call_args.kwargs["level"] == logging.DEBUG


def test_setup_logging_unknown_level_falls_back_to_info():
    with patch("logging.basicConfig") as mock_basic:
        setup_logging("chatty")

    assert mock_basic.call_args.kwargs["level"] == logging.INFO
