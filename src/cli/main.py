"""OrderDesk CLI.

Usage:
    orderdesk orders list              List the pending bucket
    orderdesk orders set-status ID S   Move an order to status S
    orderdesk config show              Print resolved configuration
    orderdesk serve                    Run the HTTP API
"""

import asyncio
import logging
from typing import List, Optional

import typer
from rich.console import Console

from src.cli.config import load_config
from src.cli.factory import build_board
from src.cli.output import format_config, format_failure, format_order_table
from src.errors.domain import DomainError
from src.services.errors import RemoteWriteError
from src.services.order_view import ViewParams

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="orderdesk",
    help="Order workflow dashboard CLI",
    no_args_is_help=True,
)
orders_app = typer.Typer(help="Inspect and update orders")
config_app = typer.Typer(help="Configuration management")

app.add_typer(orders_app, name="orders")
app.add_typer(config_app, name="config")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to orderdesk.yaml config file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """OrderDesk: order workflow dashboard."""
    global _config_path
    _config_path = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _load():
    try:
        return load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except (ValueError, TypeError) as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


# --- Order commands ---


@orders_app.command("list")
def orders_list(
    status: str = typer.Option("pending", "--status", "-s", help="Status bucket or 'all'"),
    search: str = typer.Option("", "--search", "-q", help="Search name, customer or phone"),
    item: Optional[List[str]] = typer.Option(None, "--item", help="Pinned item (repeatable)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List orders in a status bucket."""
    cfg = _load()
    params = ViewParams(status=status, search=search, items=frozenset(item or ()))

    async def _run():
        board = build_board(cfg, params=params)
        try:
            visible = await board.refresh()
        finally:
            board.store.close()
        console.print(format_order_table(visible, board.view.resolver, as_json=json_output))

    try:
        asyncio.run(_run())
    except DomainError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except RemoteWriteError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@orders_app.command("set-status")
def orders_set_status(
    order_id: int = typer.Argument(help="Order ID"),
    status: str = typer.Argument(help="Target status"),
    reason: Optional[str] = typer.Option(None, "--reason", help="Cancellation reason"),
):
    """Move an order to a new status and wait for the platform to confirm."""
    cfg = _load()

    async def _run() -> bool:
        board = build_board(cfg)
        try:
            await board.refresh()
            outcome = await board.set_status(order_id, status, reason=reason)
        finally:
            board.store.close()
        if outcome.noop:
            console.print(f"Order {order_id} is already {status}.")
        elif outcome.ok:
            console.print(f"[green]Order {order_id} moved to {status}.[/green]")
        else:
            console.print(format_failure(outcome.failure))
        return outcome.ok

    try:
        ok = asyncio.run(_run())
    except DomainError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except RemoteWriteError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    if not ok:
        raise typer.Exit(1)


# --- Config commands ---


@config_app.command("show")
def config_show(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Display resolved configuration (secrets masked)."""
    cfg = _load()
    console.print(format_config(cfg, as_json=json_output))


# --- Server ---


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
):
    """Run the OrderDesk HTTP API."""
    import os

    import uvicorn

    cfg = _load()
    final_host = host or cfg.daemon.host
    final_port = port or cfg.daemon.port
    if _config_path:
        os.environ["ORDERDESK_CONFIG_PATH"] = str(_config_path)

    console.print(f"[bold]Starting OrderDesk API on {final_host}:{final_port}[/bold]")
    uvicorn.run(
        "src.api.main:app",
        host=final_host,
        port=final_port,
        workers=1,
        log_level=cfg.daemon.log_level,
        lifespan="on",
    )


if __name__ == "__main__":
    app()
