"""Alpha subcommand: list, stats."""

from __future__ import annotations

import typer

from skewmarket.alpha.ledger import AlphaLedger
from skewmarket.storage.alpha import DuckDBLedgerStore

app = typer.Typer(help="Alpha ledger (tracked edges and their outcome)")


def _ledger(settings) -> AlphaLedger:
    return AlphaLedger(
        DuckDBLedgerStore(settings.db_path, settings.alpha_storage_key),
        max_entries=settings.alpha_max_entries,
        max_age_days=settings.alpha_max_age_days,
        min_edge=settings.min_edge_percent,
    )


@app.command("list")
def list_entries(
    ctx: typer.Context,
    resolved_only: bool = typer.Option(False, "--resolved", help="Only resolved entries"),
) -> None:
    """List ledger entries, newest first."""
    ledger = _ledger(ctx.obj["settings"])
    entries = [e for e in ledger.entries if e.resolved or not resolved_only]
    for e in entries:
        state = f"profit {e.profit:+.1f}" if e.resolved and e.profit is not None else "open"
        typer.echo(
            f"  {e.detected_at:%Y-%m-%d %H:%M}  edge {e.edge_percent:5.2f}%  yes {e.yes_price:.2f}"
            f" -> {e.current_yes_price:.2f}  {state:<12} {e.title[:50]}"
        )
    typer.echo(f"Total: {len(entries)} entries")


@app.command("stats")
def stats(ctx: typer.Context) -> None:
    """Win rate, average resolution time and theoretical profit."""
    s = _ledger(ctx.obj["settings"]).stats()
    typer.echo(f"Edges tracked:       {s.total_edges}")
    typer.echo(f"Resolved:            {s.resolved_count}")
    typer.echo(f"Win rate:            {s.win_rate:.1f}%")
    typer.echo(f"Avg resolution:      {s.avg_resolution_days:.1f} days")
    typer.echo(f"Theoretical profit:  {s.total_theoretical_profit:.1f}")
