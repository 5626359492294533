"""PulseForge CLI — run the server, bootstrap the schema, probe health.

Usage:
    pulseforge serve                       # uvicorn on pulseforge.main:app
    pulseforge serve --reload              # dev server with autoreload
    pulseforge bootstrap                   # create/upgrade schema, sync admin roles
    pulseforge health                      # GET /api/v1/health on a running server
    pulseforge health --url https://api.example.com
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from pulseforge import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8080"


def _api_url(url: Optional[str] = None) -> str:
    return (url or os.environ.get("PULSEFORGE_API_URL", DEFAULT_API_URL)).rstrip("/")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="pulseforge")
def main():
    """PulseForge — multi-tenant workspace backend."""


# ---------------------------------------------------------------------------
# pulseforge serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: PULSEFORGE_HOST)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: PULSEFORGE_PORT)")
@click.option("--reload", is_flag=True, help="Restart on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from pulseforge.config import settings

    uvicorn.run(
        "pulseforge.main:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
        reload=reload,
    )


# ---------------------------------------------------------------------------
# pulseforge bootstrap
# ---------------------------------------------------------------------------


async def _bootstrap_impl():
    from pulseforge.config import settings
    from pulseforge.db.bootstrap import ensure_schema
    from pulseforge.db.engine import engine

    try:
        return await ensure_schema(engine, settings.system_admins)
    finally:
        await engine.dispose()


@main.command()
def bootstrap():
    """Create missing tables, columns and indexes; sync admin roles."""
    report = _run(_bootstrap_impl())

    click.secho("Schema bootstrap complete", fg="green", bold=True)
    click.echo(f"  tables created:        {', '.join(report.tables_created) or '—'}")
    click.echo(f"  columns added:         {', '.join(report.columns_added) or '—'}")
    click.echo(f"  public ids backfilled: {report.public_ids_backfilled}")
    click.echo(f"  admins promoted:       {report.admins_promoted}")


# ---------------------------------------------------------------------------
# pulseforge health
# ---------------------------------------------------------------------------


async def _health_impl(base_url: str) -> dict:
    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:
        resp = await client.get("/api/v1/health")
        resp.raise_for_status()
        return resp.json()


@main.command()
@click.option("--url", default=None, help="Server URL (or set PULSEFORGE_API_URL)")
def health(url: Optional[str]):
    """Check a running server and its database."""
    base_url = _api_url(url)
    try:
        data = _run(_health_impl(base_url))
    except httpx.HTTPError as e:
        click.secho(f"Health check failed for {base_url}: {e}", fg="red", err=True)
        sys.exit(1)

    click.echo(_pretty_json(data))
    if data.get("status") != "healthy":
        sys.exit(1)


if __name__ == "__main__":
    main()
