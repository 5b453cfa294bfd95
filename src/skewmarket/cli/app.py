"""`skew` entry point. Subcommands live in sibling modules and share the loaded Settings via ctx.obj."""

from pathlib import Path

import typer

from skewmarket import __version__
from skewmarket.config import configure_logging, get_settings

app = typer.Typer(
    name="skew",
    help="SkewMarket - mispriced prediction markets, CEX lag signals and an alpha ledger.",
    no_args_is_help=True,
)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"skewmarket {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None, "--config-dir", "-C", help="Directory holding default.toml (default: ./config)"
    ),
    profile: str | None = typer.Option(None, "--profile", "-p", help="Overlay <profile>.toml, e.g. dev"),
    log_level: str | None = typer.Option(None, "--log-level", help="Override [logging] level"),
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show version and exit"
    ),
) -> None:
    settings = get_settings(profile, config_dir)
    if log_level:
        settings.logging["level"] = log_level
    configure_logging(settings)
    ctx.obj = {"settings": settings, "config_dir": config_dir, "profile": profile}


from skewmarket.cli import alpha, api_cmd, deals, lag, news  # noqa: E402

for sub in (deals, lag, alpha, news):
    app.add_typer(sub.app, name=sub.__name__.rsplit(".", 1)[-1])
app.add_typer(api_cmd.app, name="api")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
