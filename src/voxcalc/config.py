"""
Configuration management for VoxCalc.

Handles loading configuration from environment variables, YAML files,
and provides sensible defaults for all settings.
"""

import logging
import sys
from pathlib import Path
from typing import Literal

import structlog
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="VOXCALC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
    )

    # Application settings
    app_name: str = "VoxCalc"
    debug: bool = False
    log_level: str = "INFO"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    max_sessions: int = 1000

    # Session settings
    history_limit: int = 20
    result_decimals: int = 10

    # Fallback interpreter settings
    fallback_provider: Literal["http", "openai", "anthropic", "local", "none"] = "openai"
    fallback_url: str = "http://localhost:8090/interpret"
    fallback_timeout_seconds: float = 15.0  # No response within this window counts as failure
    fallback_temperature: float = 0.0
    fallback_max_tokens: int = 256

    # Model provider settings
    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: SecretStr | None = None
    anthropic_model: str = "claude-sonnet-4-20250514"
    local_model_url: str = "http://localhost:8080/v1"
    local_model_name: str = "llama3"


class VoiceConfig(BaseSettings):
    """Voice capture configuration."""

    model_config = SettingsConfigDict(env_prefix="VOXCALC_VOICE_", validate_assignment=True)

    enabled: bool = True
    language: str = "en-US"
    continuous: bool = False  # Stop after the first finalized utterance


# Global settings instance
settings = Settings()
voice_config = VoiceConfig()


def load_yaml_config(path: Path) -> dict:
    """Load configuration from a YAML file."""
    import yaml

    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_overrides(overrides: dict) -> None:
    """Apply a mapping of overrides (e.g. from YAML) to the global settings."""
    overrides = dict(overrides)
    voice_overrides = overrides.pop("voice", None) or {}

    for key, value in overrides.items():
        if key in Settings.model_fields:
            setattr(settings, key, value)
    for key, value in voice_overrides.items():
        if key in VoiceConfig.model_fields:
            setattr(voice_config, key, value)


def configure_logging(level: str | None = None) -> None:
    """Configure structlog's level filter and send log lines to stderr."""
    level_name = (level or settings.log_level).upper()
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level_name)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )
