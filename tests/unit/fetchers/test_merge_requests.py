"""Tests for merge request fetchers."""

from typing import TYPE_CHECKING

import pytest
from httpx import Response

from mrsearch.fetchers.approvals import fetch_merge_request_approvals
from mrsearch.fetchers.merge_requests import fetch_merge_requests
from mrsearch.gitlab_client import GitLabAPIError, GitLabClient
from mrsearch.models import MergeRequestQuery
from mrsearch.query import build_merge_request_request
from tests.factories import approvals_payload, merge_request_payload

if TYPE_CHECKING:
    from mrsearch.config import AppSettings
    from respx import MockRouter


@pytest.mark.asyncio
async def test_fetch_merge_requests_sends_query(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """The list fetcher should send the built filters and hydrate models."""
    query = MergeRequestQuery(search="", scope="assigned_to_me", state="opened", per_page=20)
    request = build_merge_request_request(query, settings)
    route = respx_mock.get("https://gitlab.example.com/api/v4/merge_requests").mock(
        return_value=Response(
            200,
            json=[
                merge_request_payload(501, head_pipeline={"id": 9, "status": "success"}),
                merge_request_payload(502, state="merged", merged_at="2024-01-07T12:00:00Z"),
                merge_request_payload(503, reviewers=[{"id": 11, "name": "Bob", "username": "bob"}]),
            ],
        ),
    )

    async with GitLabClient(settings) as client:
        merge_requests = await fetch_merge_requests(client, request)

    assert [merge_request.id for merge_request in merge_requests] == [501, 502, 503]
    assert merge_requests[0].head_pipeline is not None
    assert merge_requests[1].is_merged
    assert merge_requests[2].reviewers[0].username == "bob"
    sent = dict(route.calls.last.request.url.params)
    assert sent == {
        "scope": "assigned_to_me",
        "state": "opened",
        "order_by": "updated_at",
        "sort": "desc",
        "per_page": "20",
    }


@pytest.mark.asyncio
async def test_fetch_merge_requests_rejects_non_list_payload(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """An object payload should be reported as an API error."""
    request = build_merge_request_request(MergeRequestQuery(), settings)
    respx_mock.get("https://gitlab.example.com/api/v4/merge_requests").mock(
        return_value=Response(200, json={"message": "unexpected"}),
    )

    async with GitLabClient(settings) as client:
        with pytest.raises(GitLabAPIError, match="Unexpected response payload"):
            await fetch_merge_requests(client, request)


@pytest.mark.asyncio
async def test_fetch_merge_request_approvals(
    settings: "AppSettings",
    respx_mock: "MockRouter",
) -> None:
    """The approvals fetcher should target the per merge request resource."""
    route = respx_mock.get("https://gitlab.example.com/api/v4/projects/1/merge_requests/42/approvals").mock(
        return_value=Response(200, json=approvals_payload(approvals_required=1, approvals_left=0, approvers=1)),
    )

    async with GitLabClient(settings) as client:
        approvals = await fetch_merge_request_approvals(client, 1, 42)

    assert route.called
    assert approvals.approvals_left == 0
    assert approvals.approved_by is not None
    assert len(approvals.approved_by) == 1
