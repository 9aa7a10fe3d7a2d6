"""Approval fetchers for merge requests."""

from typing import TYPE_CHECKING

from mrsearch.models import MergeRequestApprovals

if TYPE_CHECKING:
    from mrsearch.gitlab_client import GitLabClient


async def fetch_merge_request_approvals(
    client: "GitLabClient",
    project_id: int,
    merge_request_iid: int,
) -> MergeRequestApprovals:
    """Return the approval state of a merge request."""
    payload = await client.get_json(f"/api/v4/projects/{project_id}/merge_requests/{merge_request_iid}/approvals")
    return MergeRequestApprovals.model_validate(payload)
