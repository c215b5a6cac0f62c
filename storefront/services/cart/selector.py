"""Cart source selection."""
import logging
from typing import List, Optional

from storefront.core.config import Settings
from storefront.core.errors import CartFetchError, EmptyCartError, GatewayError
from storefront.services.cart.base import CartSource
from storefront.services.cart.local_cart import (
    CartEvents,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    LocalCartSource,
)
from storefront.services.cart.server_cart import ServerCartSource
from storefront.services.checkout.models import Authenticated, Identity
from storefront.services.gateway.base import StoreGateway
from storefront.services.pricing.models import LineItem

logger = logging.getLogger(__name__)


class CartSourceSelector:
    """Picks the server or the guest cart for an identity."""

    def __init__(
        self,
        gateway: StoreGateway,
        guest_store: KeyValueStore,
        guest_cart_key: str = "ekomart-cart",
        events: Optional[CartEvents] = None,
    ):
        self.gateway = gateway
        self.guest_store = guest_store
        self.guest_cart_key = guest_cart_key
        self.events = events or CartEvents()

    @classmethod
    def from_settings(
        cls,
        gateway: StoreGateway,
        settings: Settings,
        events: Optional[CartEvents] = None,
    ) -> "CartSourceSelector":
        """Guest carts go to files under guest_cart_dir, else stay in memory."""
        if settings.guest_cart_dir:
            store: KeyValueStore = JsonFileStore(settings.guest_cart_dir)
        else:
            store = InMemoryStore()
        return cls(gateway, store, settings.guest_cart_key, events)

    def source_for(self, identity: Identity) -> CartSource:
        if isinstance(identity, Authenticated):
            return ServerCartSource(self.gateway)
        return LocalCartSource(self.guest_store, self.guest_cart_key, self.events)

    async def resolve_items(self, identity: Identity) -> List[LineItem]:
        """
        Load the checkout items for an identity.

        Raises:
            CartFetchError: the cart could not be loaded
            EmptyCartError: the cart has no items (checkout redirects away)
        """
        source = self.source_for(identity)
        try:
            items = await source.get()
        except GatewayError as e:
            logger.error(
                f"[CART] Failed to fetch server cart - Identity: {identity.kind}, "
                f"Error: {e.message}"
            )
            raise CartFetchError(e.message or None, redirect_to="/products") from e
        except ValueError as e:
            logger.error(f"[CART] Failed to read guest cart - Error: {str(e)}")
            raise CartFetchError(redirect_to="/cart") from e

        if not items:
            logger.info(f"[CART] Cart is empty - Identity: {identity.kind}")
            raise EmptyCartError(redirect_to="/products")

        logger.info(f"[CART] Resolved {len(items)} items - Identity: {identity.kind}")
        return items
