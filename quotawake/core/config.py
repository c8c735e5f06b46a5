"""
Configuration management for Quotawake.

Supports:
- Environment level settings: .env file / environment variables
- Monitor policy: YAML config (config/config.yaml, ``monitor`` section)
"""

import os
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from quotawake.core.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==============================================
    # Environment
    # ==============================================
    quotawake_env: str = Field(default="local", description="Environment: local/cloud")
    log_level: str = Field(default="INFO")
    timezone: str = Field(default="UTC", description="Timezone used for schedule display")

    # ==============================================
    # Account store
    # ==============================================
    database_url: str = Field(default="sqlite:///data/quotawake.db")

    # ==============================================
    # Usage provider
    # ==============================================
    provider_base_url: str = Field(default="https://api.anthropic.com")
    usage_path: str = Field(default="/api/oauth/usage")
    messages_path: str = Field(default="/v1/messages")
    oauth_beta_header: str = Field(default="oauth-2025-04-20")
    anthropic_version: str = Field(default="2023-06-01")

    # ==============================================
    # Runtime Config
    # ==============================================
    http_timeout: int = Field(default=30, description="HTTP timeout in seconds")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@dataclass
class MonitorConfig:
    """
    Tunables for the usage monitor.

    Read from the ``monitor`` section of config.yaml. Every key is optional.
    """

    base_interval_minutes: float = 20
    after_reset_minutes: float = 5
    reset_threshold_minutes: float = 10
    min_interval_minutes: float = 1
    account_delay_seconds: float = 1.0
    probe_settle_seconds: float = 2.0
    probe_confirm_attempts: int = 1
    probe_model: str = "claude-3-haiku-20240307"
    probe_max_tokens: int = 10
    probe_prompt: str = "Hi"
    probe_user_agent: str = "quotawake/usage-monitor"
    required_scopes: list[str] = field(
        default_factory=lambda: ["user:profile", "user:inference"]
    )

    def __post_init__(self) -> None:
        for name in (
            "base_interval_minutes",
            "after_reset_minutes",
            "reset_threshold_minutes",
            "min_interval_minutes",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"monitor.{name} must be positive")
        if self.min_interval_minutes > self.base_interval_minutes:
            raise ConfigurationError(
                "monitor.min_interval_minutes must not exceed base_interval_minutes"
            )
        if self.account_delay_seconds < 0 or self.probe_settle_seconds < 0:
            raise ConfigurationError("monitor delays must not be negative")
        if self.probe_confirm_attempts < 1:
            raise ConfigurationError("monitor.probe_confirm_attempts must be >= 1")
        if self.probe_max_tokens < 1:
            raise ConfigurationError("monitor.probe_max_tokens must be >= 1")

    @property
    def base_interval(self) -> timedelta:
        return timedelta(minutes=self.base_interval_minutes)

    @property
    def after_reset(self) -> timedelta:
        return timedelta(minutes=self.after_reset_minutes)

    @property
    def min_interval(self) -> timedelta:
        return timedelta(minutes=self.min_interval_minutes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, config: Optional[dict[str, Any]]) -> "MonitorConfig":
        """
        Build from a full YAML config dict.

        Args:
            config: Parsed config.yaml. Missing ``monitor`` section means defaults.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        section = (config or {}).get("monitor") or {}
        known = set(cls.__dataclass_fields__)
        unknown = set(section) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown monitor config keys: {sorted(unknown)}",
                details={"keys": sorted(unknown)},
            )
        return cls(**section)


def _find_project_file(*parts: str) -> Optional[str]:
    """Find a file relative to the project root (where pyproject.toml is)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").exists():
            return str(parent.joinpath(*parts))
    return None


def load_yaml_config(config_path: Optional[str] = None) -> dict[str, Any]:
    """
    Load YAML configuration file.

    Args:
        config_path: Path to config file. Defaults to QUOTAWAKE_CONFIG or
            config/config.yaml

    Returns:
        Configuration dictionary
    """
    if config_path is None:
        config_path = (
            os.getenv("QUOTAWAKE_CONFIG")
            or _find_project_file("config", "config.yaml")
            or "config/config.yaml"
        )

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_monitor_config(config_path: Optional[str] = None) -> MonitorConfig:
    """Load monitor tunables, using defaults if no config file exists."""
    try:
        config = load_yaml_config(config_path)
    except FileNotFoundError:
        config = {}
    return MonitorConfig.from_config(config)
