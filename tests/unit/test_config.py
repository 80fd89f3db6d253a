"""
Unit tests for application configuration (salonbook/config.py).

Config is a class with attributes set at class-body parse time, and a module-level
singleton created immediately after. Testing different env var states requires a
fresh import, with load_dotenv mocked to a no-op so the .env file on disk doesn't
override what we set in the test environment.
"""

import importlib
import sys

import pytest
from unittest.mock import patch

DB_URL = 'postgresql://u:p@localhost/db'


def _reload_config(env_overrides: dict):
    """
    Import salonbook.config afresh with a specific set of environment variables.
    Always restores the original module in sys.modules afterward.
    """
    original = sys.modules.get('salonbook.config')
    try:
        with patch.dict('os.environ', env_overrides, clear=True), \
             patch('dotenv.load_dotenv'):
            sys.modules.pop('salonbook.config', None)
            return importlib.import_module('salonbook.config')
    finally:
        if original is not None:
            sys.modules['salonbook.config'] = original
        elif 'salonbook.config' in sys.modules:
            del sys.modules['salonbook.config']


# ---------------------------------------------------------------------------
# DATABASE_URL guard
# ---------------------------------------------------------------------------

def test_missing_database_url_raises_value_error():
    with pytest.raises(ValueError, match='DATABASE_URL'):
        _reload_config({})


def test_empty_database_url_raises_value_error():
    with pytest.raises(ValueError, match='DATABASE_URL'):
        _reload_config({'DATABASE_URL': ''})


def test_database_url_set_does_not_raise():
    mod = _reload_config({'DATABASE_URL': DB_URL})
    assert mod.Config.DATABASE_URL == DB_URL
    assert mod.config.DATABASE_URL == DB_URL


# ---------------------------------------------------------------------------
# Defaults and overrides
# ---------------------------------------------------------------------------

def test_defaults():
    mod = _reload_config({'DATABASE_URL': DB_URL})
    assert mod.Config.TIMEZONE == 'America/Argentina/Buenos_Aires'
    assert mod.Config.TRASH_RETENTION_DAYS == 7
    assert mod.Config.PRICING_CONFIG_ID == 'singleton'
    assert mod.Config.CURRENCY_SYMBOL == '$'
    assert mod.Config.EXPORT_DIR == 'exports'


def test_custom_timezone():
    mod = _reload_config({'DATABASE_URL': DB_URL, 'TIMEZONE': 'UTC'})
    assert mod.Config.TIMEZONE == 'UTC'


def test_custom_trash_retention():
    mod = _reload_config({'DATABASE_URL': DB_URL, 'TRASH_RETENTION_DAYS': '30'})
    assert mod.Config.TRASH_RETENTION_DAYS == 30


def test_non_numeric_trash_retention_raises():
    with pytest.raises(ValueError):
        _reload_config({'DATABASE_URL': DB_URL, 'TRASH_RETENTION_DAYS': 'a week'})


def test_custom_currency_symbol():
    mod = _reload_config({'DATABASE_URL': DB_URL, 'CURRENCY_SYMBOL': 'ARS '})
    assert mod.Config.CURRENCY_SYMBOL == 'ARS '
