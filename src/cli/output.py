"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich table output (default) and machine-parseable
JSON output (--json flag). All formatting goes through these functions
so the CLI commands stay clean.
"""

import json
from datetime import datetime
from typing import Iterable

from rich.console import Console
from rich.table import Table

from src.cli.config import OrderDeskConfig
from src.models.order import Order
from src.models.status import OrderStatus
from src.services.due_dates import DueDateResolver
from src.services.label_codec import decode
from src.services.order_cache import MutationFailure

console = Console()

# Status color map (matches web UI column colors)
STATUS_COLORS = {
    OrderStatus.PENDING: "yellow",
    OrderStatus.ORDER_READY: "cyan",
    OrderStatus.ON_HOLD: "magenta",
    OrderStatus.CONFIRMED: "blue",
    OrderStatus.READY_TO_SHIP: "bright_blue",
    OrderStatus.SHIPPED: "green",
    OrderStatus.FULFILLED: "bright_green",
    OrderStatus.PAID: "green",
    OrderStatus.CANCELLED: "dim",
}


def format_days_left(days: int) -> str:
    """Format days remaining as "today", "3d" or "2d overdue"."""
    if days == 0:
        return "today"
    if days < 0:
        return f"{abs(days)}d overdue"
    return f"{days}d"


def order_row(order: Order, resolver: DueDateResolver, now: datetime | None = None) -> dict:
    """Plain-dict projection of an order used by both output modes."""
    facts = decode(order.tags)
    return {
        "id": order.id,
        "name": order.name,
        "customer": order.customer.full_name.strip() if order.customer else "",
        "status": facts.status.value,
        "days_left": resolver.days_remaining(order, now, facts),
        "priority": facts.is_priority,
    }


def format_order_table(
    orders: Iterable[Order],
    resolver: DueDateResolver,
    now: datetime | None = None,
    as_json: bool = False,
) -> str:
    """Format orders as a Rich table or JSON.

    Args:
        orders: Orders in display order.
        resolver: Resolver used for the days-left column.
        now: Reference instant.
        as_json: If True, return JSON string instead of Rich table.

    Returns:
        Formatted string output.
    """
    rows = [order_row(order, resolver, now) for order in orders]
    if as_json:
        return json.dumps(rows, indent=2)

    if not rows:
        return "No orders found."

    table = Table(title="Orders", show_lines=False)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Customer")
    table.add_column("Status")
    table.add_column("Days Left", justify="right")
    table.add_column("Priority", justify="center")

    for row in rows:
        color = STATUS_COLORS.get(OrderStatus(row["status"]), "white")
        days = row["days_left"]
        days_text = format_days_left(days)
        if days < 0:
            days_text = f"[red]{days_text}[/red]"
        table.add_row(
            str(row["id"]),
            row["name"] or "—",
            row["customer"] or "—",
            f"[{color}]{row['status']}[/{color}]",
            days_text,
            "[bold red]★[/bold red]" if row["priority"] else "",
        )

    with console.capture() as capture:
        console.print(table)
    return capture.get()


def format_failure(failure: MutationFailure) -> str:
    error = failure.error
    ids = ", ".join(str(i) for i in failure.order_ids)
    lines = [f"[red]{error.code}[/red]: {error.message}"]
    if ids:
        lines.append(f"  Orders: {ids}")
    if error.remediation:
        lines.append(f"  Action: {error.remediation}")
    return "\n".join(lines)


def format_config(config: OrderDeskConfig, as_json: bool = False) -> str:
    """Format resolved configuration with the API key masked."""
    data = config.model_dump()
    key = data["remote"].get("api_key")
    if key:
        data["remote"]["api_key"] = "***" + key[-4:] if len(key) > 4 else "***"
    if as_json:
        return json.dumps(data, indent=2)

    lines = []
    for section, values in data.items():
        lines.append(f"[bold]{section}:[/bold]")
        for name, value in values.items():
            lines.append(f"  {name}: {value}")
    return "\n".join(lines)
