"""Merge request list fetcher."""

from typing import TYPE_CHECKING

from mrsearch.gitlab_client import GitLabAPIError
from mrsearch.models import MergeRequest

if TYPE_CHECKING:
    from mrsearch.gitlab_client import GitLabClient
    from mrsearch.query import RequestDescriptor


async def fetch_merge_requests(client: "GitLabClient", request: "RequestDescriptor") -> list[MergeRequest]:
    """Return the single page of merge requests described by `request`."""
    payload = await client.get_json(request.path, params=request.params, headers=request.headers)
    if not isinstance(payload, list):
        msg = "Unexpected response payload type"
        raise GitLabAPIError(msg)
    return [MergeRequest.model_validate(item) for item in payload]
