"""
Tests for configuration loading.
"""

import pytest

from voxcalc.config import Settings, apply_overrides, load_yaml_config, settings, voice_config


@pytest.fixture
def restore_config():
    saved = (settings.history_limit, settings.fallback_provider, voice_config.continuous)
    yield
    settings.history_limit, settings.fallback_provider, voice_config.continuous = saved


class TestSettings:
    """Test defaults and environment overrides."""

    def test_defaults(self):
        fresh = Settings(_env_file=None)
        assert fresh.history_limit == 20
        assert fresh.result_decimals == 10
        assert fresh.fallback_timeout_seconds == 15.0

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("VOXCALC_HISTORY_LIMIT", "7")
        monkeypatch.setenv("VOXCALC_FALLBACK_PROVIDER", "local")

        fresh = Settings(_env_file=None)

        assert fresh.history_limit == 7
        assert fresh.fallback_provider == "local"


class TestOverrides:
    """Test YAML loading and override application."""

    def test_load_yaml_config(self, tmp_path):
        config_file = tmp_path / "voxcalc.yaml"
        config_file.write_text("history_limit: 5\nvoice:\n  continuous: true\n")

        assert load_yaml_config(config_file) == {"history_limit": 5, "voice": {"continuous": True}}

    def test_missing_yaml_is_empty(self, tmp_path):
        assert load_yaml_config(tmp_path / "missing.yaml") == {}

    def test_apply_overrides(self, restore_config):
        overrides = {"history_limit": 5, "voice": {"continuous": True}, "unknown_key": 1}

        apply_overrides(overrides)

        assert settings.history_limit == 5
        assert voice_config.continuous is True
        assert "voice" in overrides

    def test_invalid_override_is_rejected(self, restore_config):
        with pytest.raises(ValueError):
            apply_overrides({"fallback_provider": "carrier-pigeon"})
