"""Shared pytest fixtures for the mrsearch test suite."""

from __future__ import annotations

import pytest

from mrsearch.config import AppSettings

pytest_plugins = ("respx",)


@pytest.fixture
def settings() -> AppSettings:
    """Provide application settings with deterministic defaults for tests."""
    return AppSettings.model_validate(
        {
            "gitlab_instance": "https://gitlab.example.com",
            "gitlab_token": "token",  # pragma: allowlist secret
        },
    )


@pytest.fixture
def unconfigured_settings() -> AppSettings:
    """Provide settings without an access token."""
    return AppSettings.model_validate({"gitlab_instance": "https://gitlab.example.com", "gitlab_token": ""})
