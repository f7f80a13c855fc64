"""Remote collaborator contract for the order platform.

The cache store never talks HTTP itself; it calls an OrderGateway. Every
write takes the fully-resolved new value (never a diff) and either
returns or raises RemoteWriteError with a human-readable message.

HttpOrderGateway is the reference implementation against the dashboard
backend's REST API:

    GET  /api/orders
    PUT  /api/orders/{id}/tags            {"tags": [...]}
    PUT  /api/orders/{id}/note            {"note": "..."}
    PUT  /api/orders/{id}/priority        {"isPriority": true}
    PUT  /api/orders/{id}/status          {"status": "customer_confirmed"}
    PUT  /api/orders/bulk/status          {"orderIds": [...], "status": "..."}
    PUT  /api/orders/{id}/due-date        {"custom_due_date": "..."}
    PUT  /api/orders/{id}/start-date      {"custom_start_date": "..."}
    POST /api/orders/{id}/fulfill
    POST /api/orders/{id}/location-tags   {"cityId", "neighborhoodId", "subZoneId"}
    POST /api/shipping/create-shipments   {"orderIds": [...]}
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import BaseModel, Field, field_validator

from src.models.order import Order
from src.services.errors import RemoteWriteError

logger = logging.getLogger(__name__)


class BulkFailure(BaseModel):
    """One order the platform failed to update in a bulk request."""

    order_id: int = Field(..., alias="orderId")
    error: str = "Unknown error"

    model_config = {"populate_by_name": True}


class BulkResult(BaseModel):
    """Per-order outcome of a bulk status update."""

    successful: list[int] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)

    @property
    def failed_ids(self) -> set[int]:
        return {f.order_id for f in self.failed}


class ShipmentPackage(BaseModel):
    """One package in the shipping provider's create-shipments reply.

    The provider does not echo order ids; packages are matched back to
    orders by customer name and mobile number.
    """

    customer_name: str = Field("", alias="CustomerName")
    mobile_no: str = Field("", alias="MobileNo")
    barcode: str | None = Field(None, alias="BarCode")

    model_config = {"populate_by_name": True}

    @field_validator("customer_name", "mobile_no", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("barcode", mode="before")
    @classmethod
    def _coerce_barcode(cls, v: Any) -> str | None:
        return str(v) if v not in (None, "") else None


class ShipmentResult(BaseModel):
    """Barcodes assigned by the shipping provider.

    ``barcodes`` holds assignments already keyed by order id; ``packages``
    holds provider packages still to be matched with match().
    """

    barcodes: dict[int, str] = Field(default_factory=dict)
    packages: list[ShipmentPackage] = Field(default_factory=list)

    def match(self, orders: list[Order]) -> dict[int, str]:
        """Resolve barcodes for ``orders``.

        A package belongs to the first not-yet-matched order whose customer
        name and normalized shipping phone equal the package's.
        """
        assigned = {
            order.id: self.barcodes[order.id] for order in orders if order.id in self.barcodes
        }
        for package in self.packages:
            if not package.barcode:
                continue
            for order in orders:
                if order.id in assigned:
                    continue
                if (
                    customer_name(order) == package.customer_name
                    and format_phone(shipping_phone(order)) == package.mobile_no
                ):
                    assigned[order.id] = package.barcode
                    break
            else:
                logger.warning(
                    "Shipment package matched no order: customer=%s", package.customer_name
                )
        return assigned


def format_phone(phone: str) -> str:
    """Normalize a phone number to the provider's ``20XXXXXXXXXX`` form."""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        return "20" + digits[1:]
    if not digits.startswith("20"):
        return "20" + digits
    return digits


def customer_name(order: Order) -> str:
    return order.customer.full_name.strip() if order.customer else ""


def shipping_phone(order: Order) -> str:
    if order.shipping_address and order.shipping_address.phone:
        return order.shipping_address.phone
    return ""


class OrderGateway(ABC):
    """Abstract remote order platform.

    Concrete implementations must:
    - Return the full order collection from fetch_orders()
    - Apply each write atomically for a single order
    - Raise RemoteWriteError on any failure
    """

    @abstractmethod
    async def fetch_orders(self) -> list[Order]:
        """Fetch every order visible to the dashboard."""
        ...

    @abstractmethod
    async def update_tags(self, order_id: int, tags: list[str]) -> None:
        """Replace an order's whole label collection."""
        ...

    @abstractmethod
    async def update_note(self, order_id: int, note: str) -> None:
        ...

    @abstractmethod
    async def update_priority(self, order_id: int, is_priority: bool) -> None:
        ...

    @abstractmethod
    async def update_status(self, order_id: int, status_label: str) -> None:
        """Set an order's status using its canonical wire label."""
        ...

    @abstractmethod
    async def bulk_update_status(
        self, order_ids: list[int], status_label: str
    ) -> BulkResult:
        """Set the status of several orders in one request.

        Returns:
            BulkResult listing the orders the platform could not update.
        """
        ...

    @abstractmethod
    async def update_due_date(self, order_id: int, due_date: str) -> None:
        ...

    @abstractmethod
    async def update_start_date(self, order_id: int, start_date: str) -> None:
        ...

    @abstractmethod
    async def fulfill_order(self, order_id: int) -> None:
        ...

    @abstractmethod
    async def add_location_tags(
        self,
        order_id: int,
        city_id: str,
        neighborhood_id: str,
        subzone_id: str,
    ) -> None:
        ...

    @abstractmethod
    async def create_shipments(self, order_ids: list[int]) -> ShipmentResult:
        """Create shipments with the shipping provider.

        Returns:
            ShipmentResult carrying barcodes keyed by order id, or provider
            packages to be matched to orders by customer name and phone.
        """
        ...


class HttpOrderGateway(OrderGateway):
    """OrderGateway backed by the dashboard backend's REST API.

    Example:
        gateway = HttpOrderGateway("https://orders.example.com", timeout=15)
        orders = await gateway.fetch_orders()
        await gateway.update_note(1001, "Call before delivery")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        api_key: str | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            base_url: Backend root URL (without the /api suffix).
            timeout: Per-request timeout in seconds.
            api_key: Optional bearer token sent on every request.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._api_key = api_key

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self._base_url}/api{path}"

    @staticmethod
    def _error_message(response: httpx.Response) -> tuple[str, dict | None]:
        """Extract the server's error text from a failed response."""
        try:
            body = response.json()
        except ValueError:
            return (response.text or f"HTTP {response.status_code}", None)
        if isinstance(body, dict):
            message = body.get("details") or body.get("error") or f"HTTP {response.status_code}"
            return (str(message), body)
        return (f"HTTP {response.status_code}", None)

    async def _request(
        self,
        method: str,
        path: str,
        json_body: dict | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            RemoteWriteError: On non-2xx responses or transport failures.
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(
                    method,
                    self._url(path),
                    headers=self._get_headers(),
                    json=json_body,
                )
        except httpx.RequestError as e:
            logger.warning("Order platform request failed: %s %s error=%s", method, path, e)
            raise RemoteWriteError.from_response(None, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            message, details = self._error_message(response)
            logger.warning(
                "Order platform rejected request: %s %s status=%d error=%s",
                method, path, response.status_code, message,
            )
            raise RemoteWriteError.from_response(response.status_code, message, details)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def fetch_orders(self) -> list[Order]:
        data = await self._request("GET", "/orders")
        if isinstance(data, dict):
            data = data.get("orders", [])
        return [Order.model_validate(raw) for raw in data or []]

    async def update_tags(self, order_id: int, tags: list[str]) -> None:
        await self._request("PUT", f"/orders/{order_id}/tags", {"tags": list(tags)})

    async def update_note(self, order_id: int, note: str) -> None:
        await self._request("PUT", f"/orders/{order_id}/note", {"note": note})

    async def update_priority(self, order_id: int, is_priority: bool) -> None:
        await self._request(
            "PUT", f"/orders/{order_id}/priority", {"isPriority": is_priority}
        )

    async def update_status(self, order_id: int, status_label: str) -> None:
        await self._request(
            "PUT", f"/orders/{order_id}/status", {"status": status_label}
        )

    async def bulk_update_status(
        self, order_ids: list[int], status_label: str
    ) -> BulkResult:
        data = await self._request(
            "PUT",
            "/orders/bulk/status",
            {"orderIds": list(order_ids), "status": status_label},
        )
        details = data.get("details") if isinstance(data, dict) else None
        if not isinstance(details, dict):
            details = {}
        return BulkResult.model_validate({
            "successful": details.get("successful", list(order_ids)),
            "failed": details.get("failed", []),
        })

    async def update_due_date(self, order_id: int, due_date: str) -> None:
        await self._request(
            "PUT", f"/orders/{order_id}/due-date", {"custom_due_date": due_date}
        )

    async def update_start_date(self, order_id: int, start_date: str) -> None:
        await self._request(
            "PUT", f"/orders/{order_id}/start-date", {"custom_start_date": start_date}
        )

    async def fulfill_order(self, order_id: int) -> None:
        await self._request("POST", f"/orders/{order_id}/fulfill")

    async def add_location_tags(
        self,
        order_id: int,
        city_id: str,
        neighborhood_id: str,
        subzone_id: str,
    ) -> None:
        await self._request(
            "POST",
            f"/orders/{order_id}/location-tags",
            {
                "cityId": city_id,
                "neighborhoodId": neighborhood_id,
                "subZoneId": subzone_id,
            },
        )

    async def create_shipments(self, order_ids: list[int]) -> ShipmentResult:
        data = await self._request(
            "POST", "/shipping/create-shipments", {"orderIds": list(order_ids)}
        )
        value = data.get("Value") if isinstance(data, dict) else None
        packages = value.get("PackageList") if isinstance(value, dict) else None
        return ShipmentResult(packages=[
            ShipmentPackage.model_validate(package)
            for package in packages or []
            if isinstance(package, dict)
        ])
