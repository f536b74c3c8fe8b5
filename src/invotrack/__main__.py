"""Entry point: `invotrack` CLI commands, or the HTTP API with `--mode api`."""

from typing import Optional

import typer

from invotrack.cli import app as cli_app
from invotrack.config import get_config

app = typer.Typer(
    help="InvoTrack POS integration - CLI or API mode.",
    no_args_is_help=False,
)
app.add_typer(cli_app, name="", help="InvoTrack CLI commands.")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    mode: str = typer.Option(
        "cli",
        "--mode",
        help="Run mode: cli (default) or api",
    ),
    host: Optional[str] = typer.Option(
        None, "--host", help="API bind host (default: API_HOST)"
    ),
    port: Optional[int] = typer.Option(
        None, "--port", help="API bind port (default: API_PORT)"
    ),
) -> None:
    """InvoTrack POS integration - CLI or API mode."""
    if mode == "api":
        import uvicorn

        config = get_config()
        uvicorn.run(
            "invotrack.api:app",
            host=host or config.api_host,
            port=port or config.api_port,
            reload=False,
        )
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


if __name__ == "__main__":
    app()
