"""News subcommand."""

from __future__ import annotations

import asyncio

import httpx
import typer

from skewmarket.deals.orchestrator import DealsOrchestrator
from skewmarket.exceptions import UpstreamError
from skewmarket.models import NewsItem
from skewmarket.news.feed import CATEGORY_QUERIES, NewsFeed

app = typer.Typer(help="Headlines ranked by overlap with live event titles")


async def _fetch(settings, category: str | None, match_events: bool) -> list[NewsItem]:
    events = []
    if match_events:
        orch = DealsOrchestrator(settings)
        try:
            events = [s.event for s in await orch.poll_once()]
        finally:
            await orch.aclose()
    async with httpx.AsyncClient(timeout=settings.gamma_timeout_sec, follow_redirects=True) as client:
        feed = NewsFeed(client, settings.news_base_url, settings.news_min_refetch_sec)
        return await feed.fetch(category, events, force=True)


@app.callback(invoke_without_command=True)
def news(
    ctx: typer.Context,
    category: str | None = typer.Option(None, "--category", "-c", help=f"One of: {', '.join(CATEGORY_QUERIES)}"),
    match_events: bool = typer.Option(True, "--match/--no-match", help="Rank against current events"),
    limit: int = typer.Option(20, "--limit", "-n"),
) -> None:
    if ctx.invoked_subcommand is not None:
        return
    try:
        items = asyncio.run(_fetch(ctx.obj["settings"], category, match_events))
    except UpstreamError as e:
        typer.echo(f"News unavailable: {e}", err=True)
        raise typer.Exit(1)
    for item in items[:limit]:
        when = f"{item.published_at:%Y-%m-%d %H:%M}" if item.published_at else "-"
        typer.echo(f"  [{item.relevance}] {when}  {item.source[:20]:<20} {item.title[:80]}")
    typer.echo(f"Total: {len(items)} articles")
