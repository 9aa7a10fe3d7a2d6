"""Construction of merge request list requests."""

from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel

if TYPE_CHECKING:
    from mrsearch.config import AppSettings
    from mrsearch.models import MergeRequestQuery

MERGE_REQUESTS_PATH = "/api/v4/merge_requests"


class RequestDescriptor(BaseModel):
    """Everything needed to dispatch a GET against the GitLab API."""

    path: str
    params: dict[str, str]
    headers: dict[str, str]
    url: str


def should_execute(query: "MergeRequestQuery") -> bool:
    """Return False when the query would scan every merge request on the instance."""
    return not (query.scope == "all" and not query.search)


def build_merge_request_request(query: "MergeRequestQuery", settings: "AppSettings") -> RequestDescriptor:
    """Build the list request for `query`, newest activity first.

    Empty optional filters are left out of the query string and `state=all` is
    dropped because GitLab treats a missing state as every state. Raises
    ConfigurationError when no access token is configured.
    """
    token = settings.require_token()
    candidates: dict[str, str | int | None] = {
        "search": query.search or None,
        "in": "title" if query.search else None,
        "scope": query.scope,
        "state": None if query.state == "all" else query.state,
        "order_by": "updated_at",
        "sort": "desc",
        "per_page": query.per_page,
    }
    params = {key: str(value) for key, value in candidates.items() if value not in (None, "")}
    url = httpx.URL(f"{settings.instance_url}{MERGE_REQUESTS_PATH}", params=params)
    return RequestDescriptor(
        path=MERGE_REQUESTS_PATH,
        params=params,
        headers={"PRIVATE-TOKEN": token},
        url=str(url),
    )
