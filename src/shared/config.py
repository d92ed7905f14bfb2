"""Configuration management for the API client.

Supports YAML configuration files and environment variable overrides.
Configuration is loaded once and cached.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"


class HttpSettings(BaseSettings):
    """Transport and token-endpoint configuration."""
    timeout_seconds: float = Field(default=30.0, gt=0)
    error_body_limit: int = Field(default=500, gt=0, description="Max characters of an error body surfaced to callers")
    token_url: str = Field(default=GOOGLE_TOKEN_URL, description="Refresh-token grant endpoint")
    client_auth: Literal["body", "basic"] = Field(
        default="body",
        description="Send client credentials as form fields or as HTTP Basic auth"
    )

    model_config = SettingsConfigDict(
        env_prefix="HTTP_",
        env_file=".env",
        extra="ignore"
    )


class GmailSettings(BaseSettings):
    """Gmail API credentials."""
    base_url: str = Field(default="https://gmail.googleapis.com/gmail/v1/users/me")
    access_token: Optional[str] = Field(default=None)
    refresh_token: Optional[str] = Field(default=None)
    client_id: Optional[str] = Field(default=None)
    client_secret: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="GMAIL_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    http: HttpSettings = Field(default_factory=HttpSettings)
    gmail: GmailSettings = Field(default_factory=GmailSettings)

    model_config = SettingsConfigDict(
        env_prefix="API_CLIENT_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        return cls(**load_yaml_config(path))


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file, returning {} when it does not exist."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("API_CLIENT_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
