"""Models representing rows of the merge request list."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class PipelineBadge(BaseModel):
    """Icon describing the state of the head pipeline."""

    icon: str
    tooltip: str


class ReviewerBadge(BaseModel):
    """Badge naming the first reviewer of a merge request."""

    name: str
    icon: str
    tag: str = "Reviews"
    tooltip: str


class ListRow(BaseModel):
    """Display-ready representation of a merge request."""

    id: int
    title: str
    subtitle: str
    icon: str
    pipeline: PipelineBadge | None = None
    approved: bool = False
    reviewer: ReviewerBadge | None = None
    state: str
    draft: bool = False
    updated_at: datetime
    updated_tooltip: str
    updated_relative: str
    web_url: str
    source_branch: str
    target_branch: str
    upvotes: int = Field(default=0, ge=0)
    downvotes: int = Field(default=0, ge=0)
