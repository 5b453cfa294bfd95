"""Deals subcommand: list, watch."""

from __future__ import annotations

import asyncio
import signal
import sys

import typer

from skewmarket.deals.edge import edge_side
from skewmarket.deals.filters import FILTERS
from skewmarket.deals.orchestrator import DealsOrchestrator
from skewmarket.exceptions import ConfigError
from skewmarket.models import ScoredEvent

app = typer.Typer(help="Scored prediction-market events")


def format_deal(scored: ScoredEvent) -> str:
    m = scored.mispricing
    c = scored.confidence
    days = f"{scored.days_left:.1f}d" if scored.days_left is not None else "-"
    line = (
        f"  {scored.combined_score:6.1f}  edge {m.edge_percent:5.2f}% {m.type.value:<8}"
        f" conf {c.confidence_pct:3d}  hot {scored.hot_deal.score:3d}  {days:>7}  {scored.event.display_title[:60]}"
    )
    side = edge_side(scored)
    if side is not None:
        line += f"\n          -> {side.side}: {side.reason}"
    return line


async def _poll(orch: DealsOrchestrator) -> None:
    try:
        await orch.poll_once()
    finally:
        await orch.aclose()


@app.command("list")
def list_deals(
    ctx: typer.Context,
    filter_name: str = typer.Option("verified", "--filter", "-f", help=f"One of: {', '.join(FILTERS)}"),
    category: str | None = typer.Option(None, "--category", "-c", help="e.g. Politics, Crypto"),
    search: str | None = typer.Option(None, "--search", "-s", help="Title substring"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max events to show"),
) -> None:
    """Poll Gamma once, score and rank events, record new edges in the ledger."""
    settings = ctx.obj["settings"]
    orch = DealsOrchestrator(settings)
    asyncio.run(_poll(orch))
    if orch.last_error:
        typer.echo(f"Poll failed: {orch.last_error}", err=True)
        raise typer.Exit(1)
    try:
        items = orch.view(filter_name, category=category, search=search, limit=limit)
    except ConfigError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(2)
    for scored in items:
        typer.echo(format_deal(scored))
    typer.echo(f"Showing {len(items)} of {len(orch.events)} events")


@app.command("watch")
def watch(ctx: typer.Context) -> None:
    """Poll on an interval with the odds and spot feeds connected (Ctrl+C to stop)."""
    settings = ctx.obj["settings"]
    orch = DealsOrchestrator(settings)
    stop_event = asyncio.Event()

    def shutdown() -> None:
        stop_event.set()

    async def main() -> None:
        loop = asyncio.get_running_loop()
        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, shutdown)
            loop.add_signal_handler(signal.SIGTERM, shutdown)
        try:
            await orch.run(stop_event=stop_event)
        finally:
            await orch.aclose()

    typer.echo("Watching deals (Ctrl+C to stop)...")
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    typer.echo("Stopped.")
