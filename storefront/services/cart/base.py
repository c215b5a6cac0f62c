"""Cart source interface."""
from abc import ABC, abstractmethod
from typing import List

from storefront.services.pricing.models import LineItem


class CartSource(ABC):
    """Abstract base class for where a shopper's cart items live."""

    @abstractmethod
    async def get(self) -> List[LineItem]:
        """Get the cart as line items."""
        pass

    @abstractmethod
    async def set(self, items: List[LineItem]) -> None:
        """Replace the cart contents."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Empty the cart."""
        pass
