"""
Application configuration using Pydantic Settings.

Loads configuration from HEALER_* environment variables, a .env file and an
optional YAML overlay (.testmedic.yml).
"""

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import AliasChoices, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from testmedic.shared.domain.exceptions import ConfigurationError

ENV_PREFIX = "HEALER_"
DEFAULT_CONFIG_FILE = ".testmedic.yml"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="testmedic", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    log_redaction_enabled: bool = Field(default=True, description="Enable PII redaction in logs")

    # Reasoning service
    provider: str = Field(default="gemini", description="Healing backend key")
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HEALER_GEMINI_API_KEY", "GEMINI_API_KEY", "gemini_api_key"),
        description="Gemini API key",
    )
    gemini_model: str = Field(default="gemini-2.5-flash", description="Gemini model name")
    max_retries: int = Field(default=3, description="Attempt budget for one model call")
    api_timeout_seconds: float = Field(default=60.0, description="Per-attempt model timeout")
    backoff_base_seconds: float = Field(default=2.0, description="Backoff base, delay = base ** attempt")
    backoff_max_seconds: float = Field(default=30.0, description="Upper bound for one backoff delay")

    # Rate limiting
    rate_limit_calls: int = Field(default=5, description="Calls admitted per window")
    rate_limit_window_seconds: float = Field(default=60.0, description="Sliding window length")

    # Sanitization limits
    max_prompt_length: int = Field(default=5000, description="Max sanitized prompt text length")
    max_error_length: int = Field(default=1000, description="Max sanitized error length")
    max_code_size: int = Field(default=50000, description="Max code characters sent outbound")
    abort_on_injection: bool = Field(
        default=False,
        description="Abort a test when prompt injection is flagged (default: warn and proceed)",
    )

    # Files
    backup_dir: str = Field(default=".healer-backups", description="Backup directory")
    backup_retention_days: int = Field(default=7, description="Delete backups older than this")
    backup_max_count: int = Field(default=50, description="Backups kept per test file")
    audit_log_path: str = Field(default=".healer-audit.log", description="Audit log path")
    session_dir: str = Field(default="test-results", description="Session summary directory")

    # Verification
    verify_command: str = Field(default="npx playwright test", description="Test runner command")
    verify_timeout_seconds: float = Field(default=120.0, description="Bounded re-verification")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        """Fail fast on values the pipeline cannot work with."""
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.api_timeout_seconds < 1:
            raise ValueError("api_timeout_seconds must be at least 1")
        if self.rate_limit_calls < 1 or self.rate_limit_window_seconds <= 0:
            raise ValueError("rate limit calls and window must be positive")
        if self.verify_timeout_seconds <= 0:
            raise ValueError("verify_timeout_seconds must be positive")
        if self.max_prompt_length < 1 or self.max_error_length < 1 or self.max_code_size < 1:
            raise ValueError("length limits must be positive")

        if self.is_production and not self.log_redaction_enabled:
            structlog.get_logger(__name__).warning(
                "log_redaction_disabled_in_production",
                message="Logs may contain file paths and addresses from failing tests.",
            )
        return self


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _read_yaml_overlay(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}", {"path": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping", {"path": str(path)})

    # Explicit environment variables win over the file
    overlay = {}
    for key, value in data.items():
        name = _snake_case(str(key))
        if f"{ENV_PREFIX}{name.upper()}" in os.environ:
            continue
        overlay[name] = value
    return overlay


def load_settings(config_path: str | Path | None = None, **overrides: Any) -> Settings:
    """
    Build settings from environment, optional YAML file and explicit overrides.

    Args:
        config_path: YAML file; defaults to .testmedic.yml when it exists
        **overrides: Values that win over every other source

    Raises:
        ConfigurationError: If the file or any value is invalid
    """
    if config_path is None and Path(DEFAULT_CONFIG_FILE).is_file():
        config_path = DEFAULT_CONFIG_FILE

    values: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.is_file():
            raise ConfigurationError(f"Config file not found: {path}", {"path": str(path)})
        values.update(_read_yaml_overlay(path))
    values.update(overrides)

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", {"errors": e.errors()}) from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, built on first use."""
    return load_settings()
