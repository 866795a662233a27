"""Taskhive CLI: run the server and poke at a running instance.

Usage:
    taskhive serve                       # Run the API + WebSocket server
    taskhive init-db                     # Create database tables
    taskhive health                      # Query /api/v1/health of a running server
    taskhive projects                    # List your projects
    taskhive tasks -p <project-id>       # List a project's tasks

Commands that talk to a running server read TASKHIVE_API_URL (default
http://localhost:8000) and TASKHIVE_TOKEN (an access token).
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Optional

import click
import httpx

from taskhive import __version__

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("TASKHIVE_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Async HTTP client pointed at the Taskhive server, authenticated if a token is set."""
    headers = {}
    token = os.environ.get("TASKHIVE_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k) or "-")[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _fail(response: httpx.Response):
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = response.text
    click.secho(f"Error {response.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="taskhive")
def main():
    """Taskhive: collaborative project boards with live updates."""


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: TASKHIVE_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: TASKHIVE_PORT)")
@click.option("--reload", is_flag=True, help="Restart on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API and WebSocket server with uvicorn."""
    import uvicorn

    from taskhive.config import settings

    uvicorn.run(
        "taskhive.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@main.command("init-db")
def init_db():
    """Create all database tables."""
    from taskhive.db.engine import create_schema

    asyncio.run(create_schema())
    click.secho("Database schema created.", fg="green")


# ---------------------------------------------------------------------------
# Client commands
# ---------------------------------------------------------------------------


@main.command()
def health():
    """Show the health of a running server."""
    asyncio.run(_health_impl())


async def _health_impl():
    async with _client() as c:
        r = await c.get("/api/v1/health")
        data = r.json()
    color = "green" if data.get("status") == "healthy" else "yellow"
    click.secho(f"Status: {data.get('status')}", fg=color, bold=True)
    click.echo(json.dumps(data, indent=2))


@main.command()
def projects():
    """List the projects you own or have joined."""
    asyncio.run(_projects_impl())


async def _projects_impl():
    async with _client() as c:
        r = await c.get("/api/v1/projects")
    if r.is_error:
        _fail(r)
    rows = r.json()
    if not rows:
        click.echo("No projects found.")
        return
    _print_table(rows, [
        ("ID", "id", 36),
        ("Invite", "invite_code", 8),
        ("Name", "name", 40),
    ])


@main.command()
@click.option("--project-id", "-p", required=True, help="Project UUID")
@click.option("--status", "-s", "status_filter", help="Filter by status")
def tasks(project_id: str, status_filter: Optional[str]):
    """List a project's tasks in board order."""
    asyncio.run(_tasks_impl(project_id, status_filter))


async def _tasks_impl(project_id: str, status_filter: Optional[str]):
    params = {"status": status_filter} if status_filter else {}
    async with _client() as c:
        r = await c.get(f"/api/v1/projects/{project_id}/tasks", params=params)
    if r.is_error:
        _fail(r)
    rows = r.json()
    if not rows:
        click.echo("No tasks found.")
        return
    click.secho(f"Tasks ({len(rows)}):", bold=True)
    _print_table(rows, [
        ("ID", "id", 36),
        ("Status", "status", 12),
        ("Priority", "priority", 8),
        ("Title", "title", 50),
    ])


if __name__ == "__main__":
    main()
