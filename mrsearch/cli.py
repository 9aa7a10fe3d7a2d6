"""Command-line entry point for mrsearch."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated, NoReturn

import typer
from pydantic import ValidationError

from mrsearch.approvals import ApprovalResolver
from mrsearch.config import AppSettings, load_settings
from mrsearch.gitlab_client import GitLabAPIError, GitLabClient
from mrsearch.models import MergeRequestQuery
from mrsearch.render.service import RenderService, build_rows
from mrsearch.session import ListState, MergeRequestSearch

app = typer.Typer(add_completion=False, help="Search GitLab merge requests from the terminal.")


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", help="Enable verbose logging output.")] = False,
) -> None:
    """Configure logging before executing a sub-command."""
    _configure_logging(verbose)


@app.command()
def search(
    text: Annotated[
        str,
        typer.Option("--search", "-s", help="Search merge requests by title."),
    ] = "",
    scope: Annotated[
        str | None,
        typer.Option(
            "--scope",
            help="assigned_to_me, created_by_me, reviews_for_me or all (all requires --search).",
        ),
    ] = None,
    state: Annotated[
        str | None,
        typer.Option("--state", help="opened, merged, closed or all."),
    ] = None,
    per_page: Annotated[
        int | None,
        typer.Option("--per-page", help="Number of merge requests to list."),
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print rows as JSON.")] = False,
    no_approvals: Annotated[
        bool,
        typer.Option("--no-approvals", help="Skip the per merge request approval lookups."),
    ] = False,
) -> None:
    """List merge requests matching the given filters."""
    try:
        settings = load_settings()
        settings.require_token()
    except ValueError as exc:
        _handle_settings_error(exc)
    query = _build_query(settings, text=text, scope=scope, state=state, per_page=per_page)
    list_state, approvals = asyncio.run(_search(settings, query, resolve_approvals=not no_approvals))
    if list_state.error is not None:
        raise typer.Exit(code=1)
    rows = build_rows(list_state.items, approvals)
    renderer = RenderService()
    if as_json:
        typer.echo(renderer.render_json(rows))
    else:
        typer.echo(renderer.render_text(rows, deferred=list_state.deferred))


@app.command()
def doctor() -> None:
    """Validate configuration and verify GitLab API connectivity."""
    try:
        settings = load_settings()
        settings.require_token()
    except ValueError as exc:
        _handle_settings_error(exc)
    typer.echo(f"Loaded configuration for instance: {settings.instance_url}")
    asyncio.run(_doctor(settings))


async def _search(
    settings: AppSettings,
    query: MergeRequestQuery,
    *,
    resolve_approvals: bool,
) -> tuple[ListState, dict[int, bool]]:
    async with GitLabClient(settings) as client:
        session = MergeRequestSearch(settings, client, on_error=_notify_failure)
        list_state = await session.list_merge_requests(query)
        if list_state.error is not None or not list_state.items or not resolve_approvals:
            return list_state, {}
        resolver = ApprovalResolver(client, limit=settings.approval_lookup_limit)
        approvals = await resolver.resolve(list_state.items)
    return list_state, approvals


async def _doctor(settings: AppSettings) -> None:
    try:
        async with GitLabClient(settings) as client:
            payload = await client.get_json("/api/v4/user")
    except GitLabAPIError as exc:
        typer.secho(f"Failed to reach GitLab API: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    username = payload.get("username", "unknown") if isinstance(payload, dict) else "unknown"
    typer.echo(f"Authenticated as: {username}")


def _build_query(
    settings: AppSettings,
    *,
    text: str,
    scope: str | None,
    state: str | None,
    per_page: int | None,
) -> MergeRequestQuery:
    try:
        return MergeRequestQuery.model_validate(
            {
                "search": text,
                "scope": scope or settings.default_scope,
                "state": state or settings.default_state,
                "per_page": per_page or settings.per_page,
            },
        )
    except ValidationError as exc:
        typer.secho(f"Invalid filters: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc


def _notify_failure(exc: Exception) -> None:
    typer.secho(f"Failed loading merge requests: {exc}", fg=typer.colors.RED, err=True)


def _handle_settings_error(exc: ValueError) -> NoReturn:
    typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


if __name__ == "__main__":
    app()
