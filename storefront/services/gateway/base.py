"""Store backend gateway interface."""
from abc import ABC, abstractmethod
from typing import List, Optional

from storefront.services.cart.models import AddCartItemRequest, ServerCart
from storefront.services.checkout.models import (
    Address,
    AddressInput,
    InvoiceSummary,
    OrderConfirmation,
    OrderPayload,
)
from storefront.services.pricing.models import LineItem


class StoreGateway(ABC):
    """Abstract base class for the backend calls checkout depends on.

    Implementations raise GatewayError when a call fails.
    """

    @abstractmethod
    async def get_cart(self) -> ServerCart:
        """Get the signed-in customer's cart."""
        pass

    @abstractmethod
    async def add_cart_item(self, request: AddCartItemRequest) -> ServerCart:
        """Add a product to the server cart."""
        pass

    @abstractmethod
    async def replace_cart(self, items: List[LineItem]) -> ServerCart:
        """Replace the server cart contents."""
        pass

    @abstractmethod
    async def clear_cart(self) -> None:
        """Empty the server cart."""
        pass

    @abstractmethod
    async def get_addresses(self) -> List[Address]:
        """Get the signed-in customer's address book."""
        pass

    @abstractmethod
    async def add_address(self, address: AddressInput) -> Address:
        """Persist an address and return it with its id."""
        pass

    @abstractmethod
    async def create_order(
        self,
        payload: OrderPayload,
        admin: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> OrderConfirmation:
        """Create an order through the checkout or the admin endpoint."""
        pass

    @abstractmethod
    async def create_invoice(self, order_id: str) -> InvoiceSummary:
        """Issue an invoice for an existing order."""
        pass
