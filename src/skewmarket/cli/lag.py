"""Lag subcommand: scan."""

from __future__ import annotations

import asyncio

import typer

from skewmarket.deals.orchestrator import DealsOrchestrator

app = typer.Typer(help="CEX lag detection (spot vs. odds)")


async def _scan(orch: DealsOrchestrator, wait_sec: float) -> None:
    """Poll once and give the spot feed up to wait_sec to deliver a price per symbol."""
    orch.spot_feed.start()
    try:
        await orch.poll_once()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_sec
        wanted = set(orch.spot_feed.keys)
        while loop.time() < deadline and not wanted <= set(orch.spot_feed.prices):
            await asyncio.sleep(0.25)
    finally:
        await orch.aclose()


@app.command("scan")
def scan(
    ctx: typer.Context,
    wait: float = typer.Option(10.0, "--wait", "-w", help="Seconds to wait for spot prices"),
    lagging_only: bool = typer.Option(False, "--lagging", help="Only show lagging markets"),
) -> None:
    """Compare Binance spot prices against crypto threshold markets."""
    settings = ctx.obj["settings"]
    orch = DealsOrchestrator(settings)
    asyncio.run(_scan(orch, wait))
    if orch.last_error:
        typer.echo(f"Poll failed: {orch.last_error}", err=True)
        raise typer.Exit(1)
    spot = orch.spot_feed.prices
    if not spot:
        typer.echo("No spot prices received.", err=True)
        raise typer.Exit(1)
    typer.echo("Spot: " + "  ".join(f"{k} {v:,.2f}" for k, v in sorted(spot.items())))
    shown = 0
    for opp in orch.lag_opportunities():
        lag = opp.lag
        if lagging_only and not lag.is_lagging:
            continue
        shown += 1
        typer.echo(
            f"  {opp.symbol} {opp.direction.value} {opp.threshold:,.0f}  implied {lag.implied_yes:.2f}"
            f" vs yes {lag.actual_yes:.2f}  lag {lag.lag_pct:5.1f}%  {lag.signal or '-':<7}"
            f" {lag.confidence:<6} {opp.event.event.display_title[:50]}"
        )
    typer.echo(f"Signals: {shown}")
