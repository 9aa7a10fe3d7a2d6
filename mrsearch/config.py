"""Configuration management for the mrsearch application."""

from typing import cast

from pydantic import AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from mrsearch.models import Scope, State


class ConfigurationError(ValueError):
    """Raised when a required setting is missing before any network call."""


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_prefix="MRSEARCH_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    gitlab_instance: AnyHttpUrl = Field(
        default=cast("AnyHttpUrl", "https://gitlab.com"),
        description="Base URL of the GitLab instance, without the /api/v4 suffix.",
    )
    gitlab_token: SecretStr = Field(
        default=SecretStr(""),
        description="Personal access token used to authenticate GitLab API calls.",
    )
    per_page: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Number of merge requests requested in a single list call.",
    )
    approval_lookup_limit: int = Field(
        default=25,
        ge=1,
        description="Number of leading merge requests whose approvals are looked up.",
    )
    default_scope: Scope = Field(
        default="assigned_to_me",
        description="Scope used when none is given on the command line.",
    )
    default_state: State = Field(
        default="opened",
        description="State filter used when none is given on the command line.",
    )
    max_attempts: int = Field(
        default=1,
        ge=1,
        le=5,
        description="Attempts per HTTP request. 1 disables automatic retries.",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds handed to the HTTP transport.",
    )

    @property
    def instance_url(self) -> str:
        """Return the instance URL without a trailing slash."""
        return str(self.gitlab_instance).rstrip("/")

    def require_token(self) -> str:
        """Return the access token or raise ConfigurationError when it is unset."""
        token = self.gitlab_token.get_secret_value()
        if not token:
            msg = "MRSEARCH_GITLAB_TOKEN must be configured"
            raise ConfigurationError(msg)
        return token


def load_settings() -> AppSettings:
    """Load application settings from supported sources."""
    return AppSettings()
