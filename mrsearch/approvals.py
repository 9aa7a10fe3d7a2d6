"""Approval resolution for batches of merge requests."""

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from mrsearch.fetchers import approvals
from mrsearch.gitlab_client import GitLabAPIError

if TYPE_CHECKING:
    from mrsearch.gitlab_client import GitLabClient
    from mrsearch.models import MergeRequest, MergeRequestApprovals

LOGGER = logging.getLogger(__name__)

DEFAULT_LOOKUP_LIMIT = 25

LookupResult = tuple[int, bool] | None | BaseException


def is_approved(state: "MergeRequestApprovals") -> bool:
    """Collapse the approval fields GitLab reports into a single flag.

    A merge request counts as approved only when a human actually approved it:
    with approval rules in place every required approval must be given and at
    least one approver recorded; without rules the server-side `approved` flag
    is ignored unless somebody did approve.
    """
    required = state.approvals_required or 0
    left = state.approvals_left
    if left is None and required == 0:
        left = 0
    approvers = len(state.approved_by or [])

    approved = False
    if required > 0:
        approved = left == 0 and approvers > 0
    if not approved and state.approved is True and approvers > 0:
        approved = True
    return approved


class ApprovalResolver:
    """Resolve approval flags for the leading merge requests of a list.

    Each call to `resolve` starts a new batch and cancels the lookups of any
    batch still in flight. Only the newest batch commits its results.
    """

    def __init__(self, client: "GitLabClient", *, limit: int = DEFAULT_LOOKUP_LIMIT) -> None:
        """Bind the resolver to a client and the size of the looked-up prefix."""
        self._client = client
        self._limit = limit
        self._generation = 0
        self._inflight: list[asyncio.Task[tuple[int, bool] | None]] = []
        self._approved: dict[int, bool] = {}

    @property
    def approved(self) -> dict[int, bool]:
        """Return a copy of the most recently committed approval mapping."""
        return dict(self._approved)

    async def resolve(self, merge_requests: Sequence["MergeRequest"]) -> dict[int, bool]:
        """Look up approvals for the first `limit` merge requests concurrently."""
        self._generation += 1
        generation = self._generation
        self._cancel_inflight()

        subset = list(merge_requests[: self._limit])
        if not subset:
            return self.approved
        tasks = [asyncio.create_task(self._lookup(merge_request)) for merge_request in subset]
        self._inflight = tasks
        results: list[LookupResult] = await asyncio.gather(*tasks, return_exceptions=True)

        if generation != self._generation:
            LOGGER.debug("Discarding approvals of superseded batch %s", generation)
            return self.approved
        self._inflight = []
        batch = _collect_results(results)
        self._approved = {**self._approved, **batch}
        return self.approved

    def cancel(self) -> None:
        """Cancel the lookups of the batch in flight, if any."""
        self._generation += 1
        self._cancel_inflight()

    def _cancel_inflight(self) -> None:
        for task in self._inflight:
            task.cancel()
        self._inflight = []

    async def _lookup(self, merge_request: "MergeRequest") -> tuple[int, bool] | None:
        try:
            state = await approvals.fetch_merge_request_approvals(
                self._client,
                merge_request.project_id,
                merge_request.iid,
            )
        except (GitLabAPIError, httpx.HTTPError, ValidationError) as exc:
            LOGGER.debug(
                "Approval lookup failed for project %s !%s: %s",
                merge_request.project_id,
                merge_request.iid,
                exc,
            )
            return None
        return merge_request.id, is_approved(state)


def _collect_results(results: Sequence[LookupResult]) -> dict[int, bool]:
    batch: dict[int, bool] = {}
    for result in results:
        if result is None or isinstance(result, asyncio.CancelledError):
            continue
        if isinstance(result, BaseException):
            raise result
        merge_request_id, approved = result
        batch[merge_request_id] = approved
    return batch
