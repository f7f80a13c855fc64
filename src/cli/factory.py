"""Factory for wiring the order stack from configuration.

CLI commands and the API lifespan never construct gateways or stores
directly; they go through these functions so both surfaces share one
wiring.
"""

from src.cli.config import OrderDeskConfig
from src.services.due_dates import DueDateResolver
from src.services.order_board import OrderBoard
from src.services.order_cache import OrderCacheStore
from src.services.order_gateway import HttpOrderGateway, OrderGateway
from src.services.order_view import ViewParams


def build_gateway(config: OrderDeskConfig) -> HttpOrderGateway:
    """Create the HTTP gateway for the configured order platform."""
    return HttpOrderGateway(
        base_url=config.remote.base_url,
        timeout=config.remote.timeout_seconds,
        api_key=config.remote.api_key,
    )


def build_resolver(config: OrderDeskConfig) -> DueDateResolver:
    return DueDateResolver(
        default_making_days=config.workflow.default_making_days,
        utc_offset_hours=config.workflow.timezone_offset_hours,
    )


def build_board(
    config: OrderDeskConfig,
    gateway: OrderGateway | None = None,
    params: ViewParams | None = None,
) -> OrderBoard:
    """Create a board over a fresh, empty cache.

    Args:
        config: Loaded configuration.
        gateway: Remote collaborator. Defaults to the configured HTTP gateway.
        params: Initial view parameters.

    Returns:
        OrderBoard whose store has not been loaded yet.
    """
    resolver = build_resolver(config)
    store = OrderCacheStore(
        gateway or build_gateway(config),
        status_grace_seconds=config.workflow.status_grace_seconds,
        refetch_debounce_seconds=config.workflow.refetch_debounce_seconds,
        tz=resolver.tz,
    )
    return OrderBoard(store, params, resolver)
