"""Pydantic models describing the GitLab entities used by mrsearch."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

Scope = Literal["assigned_to_me", "created_by_me", "reviews_for_me", "all"]
State = Literal["opened", "merged", "closed", "all"]
MergeRequestState = Literal["opened", "merged", "closed", "locked"]


class GitLabUser(BaseModel):
    """Subset of GitLab user metadata shown in the list."""

    id: int
    username: str
    name: str
    avatar_url: str | None = None


def _empty_users() -> list["GitLabUser"]:
    return []


class HeadPipeline(BaseModel):
    """Most recent pipeline attached to a merge request's head commit."""

    id: int
    status: str
    web_url: str | None = None


class MergeRequest(BaseModel):
    """Merge request row returned by the instance-wide listing endpoint."""

    id: int
    iid: int
    project_id: int
    title: str
    description: str | None = None
    state: MergeRequestState
    created_at: datetime
    updated_at: datetime
    merged_at: datetime | None = None
    web_url: str
    author: GitLabUser
    reviewers: list[GitLabUser] = Field(default_factory=_empty_users)
    head_pipeline: HeadPipeline | None = None
    source_branch: str
    target_branch: str
    draft: bool = False
    work_in_progress: bool | None = None
    approvals_required: int | None = None
    upvotes: int = 0
    downvotes: int = 0

    @property
    def is_draft(self) -> bool:
        """Return True for drafts, including the legacy work-in-progress flag."""
        return self.draft or bool(self.work_in_progress)

    @property
    def is_merged(self) -> bool:
        """Return True when the merge request has been merged."""
        return self.merged_at is not None or self.state == "merged"


class Approver(BaseModel):
    """Entry of the `approved_by` list of the approvals resource.

    Only the number of entries matters, so the user summary is kept as-is.
    """

    user: dict[str, Any] | None = None


def _empty_approvers() -> list[Approver]:
    return []


class MergeRequestApprovals(BaseModel):
    """Approval state reported for a single merge request.

    Every field is optional because GitLab editions and approval rule
    configurations disagree on which of them are present.
    """

    approved: bool | None = None
    approvals_required: int | None = None
    approvals_left: int | None = None
    approved_by: list[Approver] | None = Field(default_factory=_empty_approvers)


class MergeRequestQuery(BaseModel):
    """Filters for a merge request list query."""

    search: str = ""
    scope: Scope = "assigned_to_me"
    state: State = "opened"
    per_page: int = Field(default=20, ge=1, le=100)
