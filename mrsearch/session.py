"""Search session keeping the last merge request list visible while reloading."""

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mrsearch.config import ConfigurationError
from mrsearch.fetchers import merge_requests
from mrsearch.gitlab_client import GitLabAPIError
from mrsearch.models import MergeRequest
from mrsearch.query import build_merge_request_request, should_execute

if TYPE_CHECKING:
    from mrsearch.config import AppSettings
    from mrsearch.gitlab_client import GitLabClient
    from mrsearch.models import MergeRequestQuery

LOGGER = logging.getLogger(__name__)

ErrorNotifier = Callable[[Exception], None]


def _empty_merge_requests() -> list[MergeRequest]:
    return []


class ListState(BaseModel):
    """Snapshot of a search session handed to the presentation layer."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: list[MergeRequest] = Field(default_factory=_empty_merge_requests)
    is_loading: bool = False
    error: Exception | None = None
    deferred: bool = Field(
        default=False,
        description="True when the query was held back until search text is entered.",
    )


class MergeRequestSearch:
    """Run merge request list queries for a single search session.

    The last successful list is kept and reported while a newer query is in
    flight and after a query fails. Starting a query cancels the previous one.
    """

    def __init__(
        self,
        settings: "AppSettings",
        client: "GitLabClient",
        *,
        on_error: ErrorNotifier | None = None,
    ) -> None:
        """Bind the session to its settings, client, and failure notifier."""
        self._settings = settings
        self._client = client
        self._on_error = on_error
        self._items: list[MergeRequest] = []
        self._is_loading = False
        self._error: Exception | None = None
        self._deferred = False
        self._last_query: MergeRequestQuery | None = None
        self._task: asyncio.Task[list[MergeRequest]] | None = None

    @property
    def state(self) -> ListState:
        """Return the current snapshot of the session."""
        return ListState(
            items=[] if self._deferred else list(self._items),
            is_loading=self._is_loading,
            error=self._error,
            deferred=self._deferred,
        )

    async def list_merge_requests(self, query: "MergeRequestQuery") -> ListState:
        """Load the merge requests matching `query` and return the resulting state."""
        self._last_query = query
        self._cancel_pending()
        try:
            request = build_merge_request_request(query, self._settings)
        except ConfigurationError as exc:
            self._deferred = False
            self._fail(exc)
            return self.state
        if not should_execute(query):
            LOGGER.debug("Deferring scope=all query until search text is provided")
            self._deferred = True
            self._is_loading = False
            self._error = None
            return self.state

        self._deferred = False
        self._is_loading = True
        task = asyncio.create_task(merge_requests.fetch_merge_requests(self._client, request))
        self._task = task
        try:
            items = await task
        except asyncio.CancelledError:
            if self._task is not task:
                return self.state
            raise
        except (GitLabAPIError, ValidationError) as exc:
            if self._task is task:
                self._task = None
                self._fail(exc)
            return self.state
        if self._task is task:
            self._task = None
            self._items = items
            self._error = None
            self._is_loading = False
            LOGGER.debug("Loaded %s merge requests", len(items))
        return self.state

    async def refresh(self) -> ListState:
        """Re-run the most recent query, if there was one."""
        if self._last_query is None:
            return self.state
        return await self.list_merge_requests(self._last_query)

    def _cancel_pending(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _fail(self, exc: Exception) -> None:
        self._is_loading = False
        self._error = exc
        LOGGER.error("Failed loading merge requests: %s", exc)
        if self._on_error is not None:
            self._on_error(exc)
