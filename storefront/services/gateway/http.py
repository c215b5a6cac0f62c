"""HTTP implementation of the store gateway."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from storefront.core.config import Settings, settings
from storefront.core.errors import FieldError, GatewayError
from storefront.services.cart.models import (
    AddCartItemRequest,
    ServerCart,
    ServerCartItem,
)
from storefront.services.checkout.models import (
    Address,
    AddressInput,
    InvoiceSummary,
    OrderConfirmation,
    OrderPayload,
)
from storefront.services.gateway.base import StoreGateway
from storefront.services.pricing.models import LineItem

logger = logging.getLogger(__name__)

USER_HEADER = "X-User-Id"
IDEMPOTENCY_HEADER = "Idempotency-Key"


def parse_error(response: httpx.Response, default_message: str) -> GatewayError:
    """Turn a non-2xx response into a GatewayError.

    FastAPI reports HTTPException as {"detail": "..."} and request validation
    failures as {"detail": [{"loc": [...], "msg": "..."}]}.
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    message = default_message
    field_errors: List[FieldError] = []
    if isinstance(body, dict):
        detail = body.get("detail", body.get("message"))
        if isinstance(detail, str) and detail:
            message = detail
        elif isinstance(detail, list):
            for entry in detail:
                if not isinstance(entry, dict):
                    continue
                loc = [str(part) for part in entry.get("loc", []) if part != "body"]
                field_errors.append(
                    FieldError(".".join(loc), entry.get("msg", "is invalid"))
                )
    return GatewayError(message, response.status_code, field_errors)


class HttpStoreGateway(StoreGateway):
    """Talks to the storefront API over HTTP."""

    def __init__(self, client: httpx.AsyncClient, user_id: Optional[str] = None):
        self.client = client
        self.user_id = user_id

    @classmethod
    def from_settings(
        cls, user_id: Optional[str] = None, config: Optional[Settings] = None
    ) -> "HttpStoreGateway":
        config = config or settings
        client = httpx.AsyncClient(
            base_url=config.api_base_url,
            timeout=config.request_timeout_seconds,
        )
        return cls(client, user_id=user_id)

    async def aclose(self) -> None:
        await self.client.aclose()

    def _headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        headers = {}
        if self.user_id:
            headers[USER_HEADER] = self.user_id
        if idempotency_key:
            headers[IDEMPOTENCY_HEADER] = idempotency_key
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        default_message: str,
        json: Any = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        try:
            response = await self.client.request(
                method, url, json=json, headers=self._headers(idempotency_key)
            )
        except httpx.HTTPError as e:
            logger.error(
                f"[GATEWAY] {method} {url} failed - Error: {type(e).__name__}: {str(e)}"
            )
            raise GatewayError("Network error. Please try again.") from e

        if response.is_error:
            error = parse_error(response, default_message)
            logger.warning(
                f"[GATEWAY] {method} {url} returned {response.status_code} - {error.message}"
            )
            raise error

        if not response.content:
            return None
        return response.json()

    async def login_admin(self, password: str) -> None:
        """Open an admin session; the cookie stays on the client."""
        await self._request(
            "POST", "/api/auth/login", "Invalid password", json={"password": password}
        )

    async def get_cart(self) -> ServerCart:
        data = await self._request("GET", "/api/dashboard/cart", "Failed to fetch cart")
        return ServerCart.model_validate(data)

    async def add_cart_item(self, request: AddCartItemRequest) -> ServerCart:
        data = await self._request(
            "POST",
            "/api/dashboard/cart/items",
            "Failed to add item to cart",
            json=request.model_dump(mode="json"),
        )
        return ServerCart.model_validate(data)

    async def replace_cart(self, items: List[LineItem]) -> ServerCart:
        body = {
            "items": [
                ServerCartItem.from_line_item(item).model_dump(mode="json")
                for item in items
            ]
        }
        data = await self._request(
            "PUT", "/api/dashboard/cart", "Failed to update cart", json=body
        )
        return ServerCart.model_validate(data)

    async def clear_cart(self) -> None:
        await self._request("DELETE", "/api/dashboard/cart", "Failed to clear cart")

    async def get_addresses(self) -> List[Address]:
        data = await self._request(
            "GET", "/api/dashboard/addresses", "Failed to fetch addresses"
        )
        return [Address.model_validate(entry) for entry in data or []]

    async def add_address(self, address: AddressInput) -> Address:
        data = await self._request(
            "POST",
            "/api/dashboard/addresses",
            "Failed to save address",
            json=address.model_dump(mode="json"),
        )
        return Address.model_validate(data)

    async def create_order(
        self,
        payload: OrderPayload,
        admin: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> OrderConfirmation:
        url = "/api/admin/orders" if admin else "/api/orders"
        data = await self._request(
            "POST",
            url,
            "Failed to create order",
            json=payload.model_dump(mode="json", exclude_none=True),
            idempotency_key=idempotency_key,
        )
        return OrderConfirmation.model_validate(data)

    async def create_invoice(self, order_id: str) -> InvoiceSummary:
        data = await self._request(
            "POST",
            "/api/admin/invoices",
            "Failed to create invoice",
            json={"order_id": order_id},
        )
        return InvoiceSummary.model_validate(data)
