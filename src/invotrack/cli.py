"""CLI interface for POS connectivity checks, syncs and invoice scans."""

import asyncio
import base64
import json
import logging
import mimetypes
import time
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import InvoTrackConfig, get_config_unvalidated
from .models import PosConnectionConfig, SyncResult
from .pos.http_client import HttpxVendorClient, VendorHttpClient
from .pos.manager import ADAPTER_CLASSES, SYNC_TYPES, IntegrationManager
from .pos.token_cache import TokenCache
from .scanner import InvoiceScanner

app = typer.Typer(
    name="invotrack",
    help="""
    [bold]InvoTrack POS CLI[/bold]

    Check POS connections, pull catalog data and scan invoice images.

    [cyan]Examples:[/cyan]
      invotrack systems
      invotrack test-connection caspit --user me --pwd secret --tax-id 512345678
      invotrack sync hashavshevet --type products --output products.json
      invotrack scan invoice.jpg --mock

    Credentials can also come from POS_USER, POS_PASSWORD, POS_TAX_ID,
    POS_API_KEY and POS_ENDPOINT_URL.
    """,
    no_args_is_help=True,
)

console = Console()
logger = logging.getLogger(__name__)

__version__ = "0.1.0"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_vendor_client(config: InvoTrackConfig) -> VendorHttpClient:
    """Build the HTTP client used for vendor calls."""
    return HttpxVendorClient(timeout=config.http_timeout_sec)


async def _with_manager(config: InvoTrackConfig, action):  # type: ignore[no-untyped-def]
    http = create_vendor_client(config)
    token_cache = TokenCache(
        lifetime_sec=config.token_lifetime_sec,
        safety_margin_sec=config.token_safety_margin_sec,
    )
    try:
        return await action(IntegrationManager(http, token_cache, config))
    finally:
        if isinstance(http, HttpxVendorClient):
            await http.aclose()


def _connection_config(
    system_id: str,
    user: Optional[str],
    pwd: Optional[str],
    tax_id: Optional[str],
    api_key: Optional[str],
    endpoint_url: Optional[str],
) -> PosConnectionConfig:
    if system_id not in {cls.system_id for cls in ADAPTER_CLASSES}:
        known = ", ".join(cls.system_id for cls in ADAPTER_CLASSES)
        console.print(f"[bold red]✗ Unknown POS system:[/bold red] {system_id} (known: {known})")
        raise typer.Exit(code=2)
    return PosConnectionConfig(
        system_id=system_id,
        user=user,
        pwd=pwd,
        tax_id=tax_id,
        api_key=api_key,
        endpoint_url=endpoint_url,
    )


UserOption = typer.Option(None, "--user", envvar="POS_USER", help="POS username")
PwdOption = typer.Option(None, "--pwd", envvar="POS_PASSWORD", help="POS password")
TaxIdOption = typer.Option(
    None, "--tax-id", envvar="POS_TAX_ID", help="Business tax id (Osek Morshe)"
)
ApiKeyOption = typer.Option(None, "--api-key", envvar="POS_API_KEY", help="POS API key")
EndpointOption = typer.Option(
    None, "--endpoint-url", envvar="POS_ENDPOINT_URL", help="Override the POS API base URL"
)
VerboseOption = typer.Option(
    False, "--verbose", "-v", help="Show detailed processing information"
)


@app.command()
def systems():
    """List supported POS systems."""
    table = Table(title="Supported POS systems")
    table.add_column("System ID", style="cyan")
    table.add_column("Name")
    for cls in ADAPTER_CLASSES:
        table.add_row(cls.system_id, cls.system_name)
    console.print(table)


@app.command("test-connection")
def test_connection(
    system_id: str = typer.Argument(..., help="POS system id, e.g. caspit"),
    user: Optional[str] = UserOption,
    pwd: Optional[str] = PwdOption,
    tax_id: Optional[str] = TaxIdOption,
    api_key: Optional[str] = ApiKeyOption,
    endpoint_url: Optional[str] = EndpointOption,
    verbose: bool = VerboseOption,
):
    """Authenticate against a POS system."""
    _configure_logging(verbose)
    config = get_config_unvalidated()
    connection = _connection_config(system_id, user, pwd, tax_id, api_key, endpoint_url)

    result = asyncio.run(
        _with_manager(config, lambda m: m.test_connection(system_id, connection))
    )
    if result.success:
        console.print(f"[bold green]✓ {result.message}[/bold green]")
        return
    console.print(f"[bold red]✗ {result.message}[/bold red]")
    raise typer.Exit(code=1)


@app.command()
def sync(
    system_id: str = typer.Argument(..., help="POS system id, e.g. caspit"),
    sync_type: str = typer.Option(
        "all",
        "--type",
        "-t",
        help=f"What to sync: {', '.join(SYNC_TYPES)} or all",
    ),
    output_file: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output JSON file (default: stdout)",
        resolve_path=True,
    ),
    user: Optional[str] = UserOption,
    pwd: Optional[str] = PwdOption,
    tax_id: Optional[str] = TaxIdOption,
    api_key: Optional[str] = ApiKeyOption,
    endpoint_url: Optional[str] = EndpointOption,
    verbose: bool = VerboseOption,
):
    """Pull products, suppliers, sales or documents from a POS system."""
    _configure_logging(verbose)
    if sync_type != "all" and sync_type not in SYNC_TYPES:
        console.print(f"[bold red]✗ Unknown sync type:[/bold red] {sync_type}")
        raise typer.Exit(code=2)

    config = get_config_unvalidated()
    connection = _connection_config(system_id, user, pwd, tax_id, api_key, endpoint_url)

    start_time = time.time()
    results: list[SyncResult] = asyncio.run(
        _with_manager(
            config, lambda m: m.sync_with_system(system_id, connection, sync_type)
        )
    )
    payload = [r.model_dump(mode="json", exclude_none=True) for r in results]

    if output_file:
        _save_output(payload, output_file)
    else:
        print(json.dumps(payload, indent=2, ensure_ascii=False))

    for result in results:
        style = "green" if result.success else "red"
        console.print(f"[{style}]{result.message}[/{style}]")

    if not all(r.success for r in results):
        raise typer.Exit(code=1)
    elapsed = time.time() - start_time
    console.print(f"\n[bold green]✓ Sync finished[/bold green] ({elapsed:.1f}s)")


@app.command()
def scan(
    input_file: Path = typer.Argument(
        ...,
        help="Invoice image to scan",
        exists=True,
    ),
    output_file: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output JSON file (default: stdout)",
        resolve_path=True,
    ),
    mock: bool = typer.Option(
        False,
        "--mock",
        help="Use mock data instead of calling OpenAI API (for testing without API key)",
    ),
    verbose: bool = VerboseOption,
):
    """Extract line items from an invoice image."""
    _configure_logging(verbose)
    config = get_config_unvalidated()
    if mock:
        config.mock = True
        console.print(
            "[yellow]⚠️  Using mock mode - no OpenAI API calls will be made[/yellow]\n"
        )

    try:
        config.validate_config()
        mime = mimetypes.guess_type(input_file.name)[0] or "image/jpeg"
        encoded = base64.b64encode(input_file.read_bytes()).decode("ascii")
        result = InvoiceScanner(config).scan(f"data:{mime};base64,{encoded}")
    except Exception as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {str(e)}")
        if verbose:
            import traceback

            console.print(f"[dim white]{traceback.format_exc()}[/dim white]")
        raise typer.Exit(code=1)

    payload = result.model_dump(mode="json")
    if output_file:
        _save_output(payload, output_file)
    else:
        print(json.dumps(payload, indent=2, ensure_ascii=False))


def _save_output(payload: Any, output_file: Path):
    """Save a JSON payload to file."""
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    console.print(f"[dim]Saved output to {output_file}[/dim]")


@app.command()
def version():
    """Show version information."""
    console.print(f"invotrack version {__version__}")


if __name__ == "__main__":
    app()
