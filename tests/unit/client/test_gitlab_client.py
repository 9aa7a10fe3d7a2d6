"""Tests for the GitLab HTTP client."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import httpx
import pytest
from httpx import Response

from mrsearch.gitlab_client import GitLabAPIError, GitLabClient

if TYPE_CHECKING:
    from respx import MockRouter

    from mrsearch.config import AppSettings

USER_URL = "https://gitlab.example.com/api/v4/user"


@pytest.mark.asyncio
async def test_requests_carry_private_token(settings: AppSettings, respx_mock: MockRouter) -> None:
    """Every request should authenticate with the configured token."""
    route = respx_mock.get(USER_URL).mock(return_value=Response(200, json={"username": "alice"}))

    async with GitLabClient(settings) as client:
        payload = await client.get_json("/api/v4/user")

    assert payload == {"username": "alice"}
    assert route.calls.last.request.headers["PRIVATE-TOKEN"] == "token"


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 404, 500, 503, 429])
async def test_error_statuses_raise_without_retry(
    settings: AppSettings,
    respx_mock: MockRouter,
    status_code: int,
) -> None:
    """Non-2xx responses should surface as GitLabAPIError after a single attempt."""
    route = respx_mock.get(USER_URL).mock(return_value=Response(status_code))

    async with GitLabClient(settings) as client:
        with pytest.raises(GitLabAPIError) as excinfo:
            await client.get_json("/api/v4/user")

    assert excinfo.value.status_code == status_code
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_network_failures_raise_api_error(settings: AppSettings, respx_mock: MockRouter) -> None:
    """Transport failures should be mapped onto GitLabAPIError without a status."""
    respx_mock.get(USER_URL).mock(side_effect=httpx.ConnectError("connection refused"))

    async with GitLabClient(settings) as client:
        with pytest.raises(GitLabAPIError, match="connection refused") as excinfo:
            await client.get_json("/api/v4/user")

    assert excinfo.value.status_code is None


@pytest.mark.asyncio
async def test_server_errors_retry_when_attempts_allow(settings: AppSettings, respx_mock: MockRouter) -> None:
    """With more than one attempt configured, 5xx responses should be retried."""
    route = respx_mock.get(USER_URL)
    route.side_effect = [Response(502), Response(200, json={"username": "alice"})]
    retrying_settings = settings.model_copy(update={"max_attempts": 2})

    async with GitLabClient(retrying_settings) as client:
        payload = await client.get_json("/api/v4/user")

    assert payload == {"username": "alice"}
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_rate_limit_waits_for_retry_after(settings: AppSettings, respx_mock: MockRouter) -> None:
    """A 429 should be retried after the server's Retry-After delay, without extra backoff."""
    route = respx_mock.get(USER_URL)
    route.side_effect = [
        Response(429, headers={"Retry-After": "0"}),
        Response(200, json={"username": "alice"}),
    ]
    retrying_settings = settings.model_copy(update={"max_attempts": 2})

    started = time.monotonic()
    async with GitLabClient(retrying_settings) as client:
        payload = await client.get_json("/api/v4/user")
    elapsed = time.monotonic() - started

    assert payload == {"username": "alice"}
    assert route.call_count == 2
    assert elapsed < 0.5


@pytest.mark.asyncio
async def test_invalid_json_raises_api_error(settings: AppSettings, respx_mock: MockRouter) -> None:
    """Undecodable bodies should raise GitLabAPIError with the response status."""
    respx_mock.get(USER_URL).mock(return_value=Response(200, text="<html>", headers={"Content-Type": "text/html"}))

    async with GitLabClient(settings) as client:
        with pytest.raises(GitLabAPIError, match="invalid JSON payload"):
            await client.get_json("/api/v4/user")
