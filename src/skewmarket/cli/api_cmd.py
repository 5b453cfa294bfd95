"""api subcommand - uvicorn in front of the FastAPI app."""

import typer

from skewmarket.api.main import run_api

app = typer.Typer(help="Start the HTTP API")


@app.callback(invoke_without_command=True)
def api(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Bind host"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
    with_feeds: bool = typer.Option(
        True, "--with-feeds/--no-feeds", help="Run the poll loop and both WebSocket feeds in the same process",
    ),
) -> None:
    """Serve /deals, /lag, /alpha, /feeds/status and /news with uvicorn."""
    run_api(host=host, port=port, with_feeds=with_feeds, settings=ctx.obj["settings"])
