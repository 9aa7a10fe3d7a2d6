"""Shaping merge requests into list rows and rendering them for the terminal."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

import orjson
import pendulum
from jinja2 import Environment, FileSystemLoader, select_autoescape

from mrsearch.render.models import ListRow, PipelineBadge, ReviewerBadge

if TYPE_CHECKING:
    from datetime import datetime

    from mrsearch.models import MergeRequest

DEFERRED_TITLE = "Type to search across all merge requests"
DEFERRED_DESCRIPTION = "Searching 'all' without text is disabled to avoid timeouts."

_PIPELINE_ICONS = {
    "running": "gitlab-running.png",
    "pending": "gitlab-pending.png",
    "success": "gitlab-success.png",
}
_PERSON_ICON = "person"
_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def state_icon(merge_request: MergeRequest) -> str:
    """Return the list icon matching the merge request state."""
    if merge_request.is_merged:
        return "pr-merged.png"
    if merge_request.state == "closed":
        return "pr-closed.png"
    return "pr-open.png"


def pipeline_status_icon(status: str) -> str | None:
    """Return the icon for a pipeline status, or None for statuses shown without one."""
    return _PIPELINE_ICONS.get(status)


def build_row(
    merge_request: MergeRequest,
    *,
    approved: bool = False,
    reference: datetime | None = None,
) -> ListRow:
    """Build the display row for a single merge request."""
    updated = pendulum.instance(merge_request.updated_at)
    now = pendulum.instance(reference) if reference is not None else pendulum.now("UTC")
    return ListRow(
        id=merge_request.id,
        title=merge_request.title,
        subtitle=f"{merge_request.author.name} • !{merge_request.iid}",
        icon=state_icon(merge_request),
        pipeline=_pipeline_badge(merge_request),
        approved=approved,
        reviewer=_reviewer_badge(merge_request),
        state=merge_request.state,
        draft=merge_request.is_draft,
        updated_at=merge_request.updated_at,
        updated_tooltip=f"Updated at {updated.to_day_datetime_string()}",
        updated_relative=updated.diff_for_humans(now),
        web_url=merge_request.web_url,
        source_branch=merge_request.source_branch,
        target_branch=merge_request.target_branch,
        upvotes=merge_request.upvotes,
        downvotes=merge_request.downvotes,
    )


def build_rows(
    merge_requests: Iterable[MergeRequest],
    approvals: Mapping[int, bool],
    *,
    reference: datetime | None = None,
) -> list[ListRow]:
    """Build rows in list order; merge requests missing from `approvals` are not approved."""
    return [
        build_row(merge_request, approved=approvals.get(merge_request.id, False), reference=reference)
        for merge_request in merge_requests
    ]


def _pipeline_badge(merge_request: MergeRequest) -> PipelineBadge | None:
    pipeline = merge_request.head_pipeline
    if pipeline is None or not pipeline.status:
        return None
    icon = pipeline_status_icon(pipeline.status)
    if icon is None:
        return None
    return PipelineBadge(icon=icon, tooltip=f"Pipeline: {pipeline.status}")


def _reviewer_badge(merge_request: MergeRequest) -> ReviewerBadge | None:
    if not merge_request.reviewers:
        return None
    first = merge_request.reviewers[0]
    label = "Reviewers" if len(merge_request.reviewers) > 1 else "Reviewer"
    names = ", ".join(reviewer.name for reviewer in merge_request.reviewers)
    return ReviewerBadge(
        name=first.name,
        icon=first.avatar_url or _PERSON_ICON,
        tooltip=f"{label}: {names}",
    )


def badge_line(row: ListRow) -> str:
    """Join the pipeline, approval, reviewer and timestamp badges of a row."""
    parts: list[str] = []
    if row.pipeline is not None:
        parts.append(row.pipeline.tooltip)
    if row.approved:
        parts.append("APPROVED")
    if row.reviewer is not None:
        parts.append(row.reviewer.tooltip)
    parts.append(f"updated {row.updated_relative}")
    return " | ".join(parts)


class RenderService:
    """Render list rows as plain text or JSON."""

    def __init__(self, *, template_dir: Path = _TEMPLATE_DIR) -> None:
        """Initialise a renderer reading templates from `template_dir`."""
        self._env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._env.filters["badges"] = badge_line

    def render_text(self, rows: list[ListRow], *, deferred: bool = False) -> str:
        """Render rows with the terminal list template."""
        template = self._env.get_template("list.txt.j2")
        return template.render(
            rows=rows,
            deferred=deferred,
            deferred_title=DEFERRED_TITLE,
            deferred_description=DEFERRED_DESCRIPTION,
        )

    def render_json(self, rows: list[ListRow]) -> str:
        """Render rows as an indented JSON array."""
        payload = [row.model_dump(mode="json") for row in rows]
        return orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode()
