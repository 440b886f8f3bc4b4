"""PrayOverUs CLI — run the server, mint dev tokens, post and browse prayers.

Usage:
    prayoverus serve                              # Run the API + /ws server
    prayoverus token alice --first-name Alice     # Mint a dev access token
    prayoverus post "Job interview" "Please pray for my interview on Monday" --public
    prayoverus feed                               # List the public feed
    prayoverus browse                             # Page through the feed (n/p/q)

The client commands read PRAYOVERUS_CLIENT_API_URL and PRAYOVERUS_TOKEN.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
import sys
from typing import Optional

import click

from prayoverus import __version__
from prayoverus.client.api import ApiError, NetworkError, PrayerApiClient
from prayoverus.client.paging import NavOutcome, PagingController
from prayoverus.client.submission import PrayerDraft, SubmissionController, SubmissionStatus
from prayoverus.config import client_settings, settings
from prayoverus.logging_config import configure_logging


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when a loop is already running (e.g. CliRunner
    invoked from an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def _client() -> PrayerApiClient:
    token = os.environ.get("PRAYOVERUS_TOKEN")
    if not token:
        click.secho("Error: set PRAYOVERUS_TOKEN (see `prayoverus token`)", fg="red", err=True)
        sys.exit(1)
    return PrayerApiClient(base_url=client_settings.api_url, token=token)


def _author(item: dict) -> str:
    user = item.get("user") or {}
    name = " ".join(p for p in (user.get("first_name"), user.get("last_name")) if p)
    return name or "Anonymous"


def _print_prayer(item: dict) -> None:
    status_color = "green" if item.get("status") == "answered" else "yellow"
    click.secho(item["title"], bold=True)
    click.echo(f"  by {_author(item)}  ·  {click.style(item['status'], fg=status_color)}")
    click.echo(f"  {item['content']}")
    if "support_count" in item:
        click.echo(
            f"  🙏 {item['support_count']}  💬 {item['comment_count']}"
        )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="prayoverus")
def main():
    """PrayOverUs — prayer requests with real-time community support."""
    configure_logging(os.environ.get("PRAYOVERUS_LOG_LEVEL", "WARNING"))


@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", default=None, type=int, help="Port (default from settings)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the REST API and /ws notification server."""
    import uvicorn

    uvicorn.run(
        "prayoverus.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.argument("user_id")
@click.option("--email", default=None)
@click.option("--first-name", default=None)
@click.option("--last-name", default=None)
@click.option("--minutes", default=None, type=int, help="Lifetime in minutes")
def token(user_id: str, email: Optional[str], first_name: Optional[str],
          last_name: Optional[str], minutes: Optional[int]):
    """Mint a development access token for USER_ID."""
    from prayoverus.auth.jwt import create_access_token

    if settings.environment != "development":
        click.secho("Refusing to mint tokens outside development.", fg="red", err=True)
        sys.exit(1)
    click.echo(create_access_token(
        user_id,
        expires_minutes=minutes,
        email=email,
        first_name=first_name,
        last_name=last_name,
    ))


# ---------------------------------------------------------------------------
# prayoverus post
# ---------------------------------------------------------------------------


@main.command()
@click.argument("title")
@click.argument("content")
@click.option("--public", "is_public", is_flag=True, help="Share with the community")
@click.option("--retries", default=2, show_default=True, help="Resends on network failure")
def post(title: str, content: str, is_public: bool, retries: int):
    """Post a prayer request (safe to retry: one key per submission)."""
    _run(_post_impl(title, content, is_public, retries))


async def _post_impl(title: str, content: str, is_public: bool, retries: int):
    async with _client() as api:
        controller = SubmissionController(api=api)
        result = await controller.submit(PrayerDraft(title, content, is_public))

        attempts = 0
        while result.status is SubmissionStatus.QUEUED_LOCALLY and attempts < retries:
            attempts += 1
            click.secho(f"Network error, retrying ({attempts}/{retries})...", fg="yellow")
            await asyncio.sleep(attempts)
            result = await controller.retry()

    if result.status is SubmissionStatus.CONFIRMED:
        click.secho(result.message, fg="green")
        click.echo(f"  id:  {result.record['id']}")
        click.echo(f"  key: {result.idempotency_key}")
    elif result.status is SubmissionStatus.QUEUED_LOCALLY:
        click.secho("Could not reach the server. Re-run to try again.", fg="yellow")
        sys.exit(2)
    else:
        click.secho(f"Error: {result.message}", fg="red", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# prayoverus feed / browse
# ---------------------------------------------------------------------------


@main.command()
@click.option("--limit", default=20, show_default=True)
def feed(limit: int):
    """List the public prayer feed."""
    _run(_feed_impl(limit))


async def _feed_impl(limit: int):
    async with _client() as api:
        try:
            prayers = await api.get_public_prayers(limit=limit)
        except (ApiError, NetworkError) as e:
            click.secho(f"Error: {e}", fg="red", err=True)
            sys.exit(1)

    if not prayers:
        click.echo("No public prayers yet.")
        return
    for item in prayers:
        _print_prayer(item)
        click.echo()


@main.command()
def browse():
    """Page through the public feed one prayer at a time (n=next, p=prev, q=quit)."""
    _run(_browse_impl())


async def _browse_impl():
    async with _client() as api:
        try:
            prayers = await api.get_public_prayers()
        except (ApiError, NetworkError) as e:
            click.secho(f"Error: {e}", fg="red", err=True)
            sys.exit(1)
        if not prayers:
            click.echo("No public prayers yet.")
            return

        pager = PagingController(
            api.get_prayer,
            [p["id"] for p in prayers],
            on_close=lambda: click.echo("Closed."),
        )
        result = await pager.open()
        while not pager.closed:
            if result.outcome is NavOutcome.FAILED:
                click.secho(result.error, fg="red")
                break
            if result.outcome is NavOutcome.BOUNCED:
                click.secho("(no more prayers that way)", dim=True)
            click.secho(f"[{pager.counter_label()}]", fg="cyan")
            _print_prayer(pager.record)

            key = click.prompt("n/p/q", default="n", show_default=False)
            if key == "q":
                pager.close()
            elif key == "p":
                result = await pager.previous()
            else:
                result = await pager.next()


if __name__ == "__main__":
    main()
