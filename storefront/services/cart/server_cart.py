"""Server-persisted cart source."""
import logging
from typing import List

from storefront.services.cart.base import CartSource
from storefront.services.gateway.base import StoreGateway
from storefront.services.pricing.models import LineItem

logger = logging.getLogger(__name__)


class ServerCartSource(CartSource):
    """Cart of a signed-in customer, stored by the backend."""

    def __init__(self, gateway: StoreGateway):
        self.gateway = gateway

    async def get(self) -> List[LineItem]:
        cart = await self.gateway.get_cart()
        return [item.to_line_item() for item in cart.items]

    async def set(self, items: List[LineItem]) -> None:
        await self.gateway.replace_cart(items)

    async def clear(self) -> None:
        await self.gateway.clear_cart()
        logger.info("[CART] Server cart cleared")
