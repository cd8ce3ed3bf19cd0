"""Tests for configuration validation"""
import pytest

from progression import config


class TestConfigValidation:
    """Test validate_config against module-level settings"""

    def test_defaults_are_valid(self):
        config.validate_config()

    @pytest.mark.parametrize("name, value", [
        ("STORE_BACKEND", "sqlite"),
        ("LEADERBOARD_BACKEND", "memcached"),
        ("STORAGE_TIMEOUT_SECONDS", 0),
        ("PRESENCE_STALE_AFTER_SECONDS", -1),
    ])
    def test_invalid_settings_rejected(self, monkeypatch, name, value):
        monkeypatch.setattr(config, name, value)

        with pytest.raises(ValueError):
            config.validate_config()

    def test_postgres_requires_database_url(self, monkeypatch):
        monkeypatch.setattr(config, "STORE_BACKEND", "postgres")
        monkeypatch.setattr(config, "DATABASE_URL", "")

        with pytest.raises(ValueError, match="DATABASE_URL"):
            config.validate_config()
