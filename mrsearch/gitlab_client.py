"""Async GitLab API client with an attempt policy and JSON helpers."""

import logging
from types import TracebackType
from typing import Any, Self, TYPE_CHECKING
from collections.abc import Mapping

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

if TYPE_CHECKING:
    from mrsearch.config import AppSettings

LOGGER = logging.getLogger(__name__)

_RETRY_FAILURE_MESSAGE = "GitLab API request failed after retries"
_RATE_LIMIT_STATUS = 429
_SERVER_ERROR_LOWER = 500
_SERVER_ERROR_UPPER = 600
_BACKOFF = wait_exponential_jitter(initial=1, max=10)


class RateLimitError(RuntimeError):
    """Raised when the GitLab API responds with a rate limit status."""

    def __init__(self, retry_after: float | None = None) -> None:
        """Store the retry delay suggested by the server."""
        super().__init__("GitLab API rate limit encountered")
        self.retry_after = 1.0 if retry_after is None else retry_after


class GitLabAPIError(RuntimeError):
    """Raised when a GitLab API call fails with a non-2xx status or a network error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Attach HTTP status metadata to the exception instance."""
        super().__init__(message)
        self.status_code = status_code


class GitLabClient:
    """Asynchronous client for the GitLab REST API authenticated with a static token."""

    def __init__(self, settings: "AppSettings") -> None:
        """Configure the HTTP client with authentication headers and attempt policy."""
        self._settings = settings
        headers = {
            "User-Agent": "mrsearch/0.1",
            "Accept": "application/json",
        }
        token = settings.gitlab_token.get_secret_value()
        if token:
            headers["PRIVATE-TOKEN"] = token
        self._client = httpx.AsyncClient(
            base_url=settings.instance_url,
            headers=headers,
            timeout=httpx.Timeout(settings.request_timeout),
        )
        self._max_attempts = settings.max_attempts

    async def __aenter__(self) -> Self:
        """Enter the async context manager and return the client."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Ensure the underlying HTTP client is closed when exiting the context."""
        del exc_type, exc, tb
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Perform an HTTP request, mapping every failure onto GitLabAPIError."""
        try:
            return await self._request_with_retry(method, path, params=params, headers=headers)
        except RateLimitError as exc:
            raise GitLabAPIError(str(exc), status_code=_RATE_LIMIT_STATUS) from exc
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            message = f"GitLab API returned {status_code}: {exc.response.reason_phrase}"
            raise GitLabAPIError(message, status_code=status_code) from exc
        except httpx.TransportError as exc:
            raise GitLabAPIError(f"GitLab API request failed: {exc}") from exc
        except RetryError as exc:  # pragma: no cover - reraise=True surfaces the last error instead
            raise GitLabAPIError(_RETRY_FAILURE_MESSAGE) from exc

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
    ) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            retry=retry_if_exception_type((RateLimitError, httpx.HTTPStatusError, httpx.TransportError)),
            wait=_wait_for_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                LOGGER.debug("%s %s params=%s", method, path, params)
                response = await self._client.request(method, path, params=params, headers=headers)
                if response.status_code == _RATE_LIMIT_STATUS:
                    retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                    LOGGER.warning("Rate limit hit, server asked to wait %ss", retry_after)
                    raise RateLimitError(retry_after)
                try:
                    response.raise_for_status()
                except httpx.HTTPStatusError as exc:
                    status_code = exc.response.status_code
                    if _SERVER_ERROR_LOWER <= status_code < _SERVER_ERROR_UPPER:
                        raise
                    message = f"GitLab API returned {status_code}: {exc.response.reason_phrase}"
                    raise GitLabAPIError(message, status_code=status_code) from exc
                return response
        raise GitLabAPIError(_RETRY_FAILURE_MESSAGE)  # pragma: no cover

    def parse_json(self, response: httpx.Response) -> Any:
        """Decode a JSON response or raise a GitLabAPIError on failure."""
        try:
            return response.json()
        except ValueError as exc:
            content_type = response.headers.get("Content-Type", "unknown")
            message = (
                "GitLab API returned an invalid JSON payload "
                f"(status {response.status_code}, content-type {content_type})"
            )
            raise GitLabAPIError(message, status_code=response.status_code) from exc

    async def get_json(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Issue a GET request and return the decoded JSON body."""
        response = await self.request("GET", path, params=params, headers=headers)
        return self.parse_json(response)


def _wait_for_retry(retry_state: RetryCallState) -> float:
    """Wait as long as a rate-limited response asked, otherwise back off exponentially."""
    outcome = retry_state.outcome
    if outcome is not None:
        error = outcome.exception()
        if isinstance(error, RateLimitError):
            return error.retry_after
    return _BACKOFF(retry_state)


def _parse_retry_after(value: str | None) -> float:
    if not value:
        return 1.0
    try:
        return float(value)
    except ValueError:  # pragma: no cover - HTTP-date Retry-After values
        return 1.0
