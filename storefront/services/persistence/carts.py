"""Server cart persistence service."""
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, select

from storefront.db.models import CartItem
from storefront.services.cart.models import (
    AddCartItemRequest,
    CatalogVariant,
    ServerCartItem,
    effective_price,
    effective_stock,
)


class InsufficientStock(Exception):
    """Requested quantity exceeds the variant or product stock."""


def same_variant(stored: Optional[Dict[str, Any]], variant: Optional[CatalogVariant]) -> bool:
    """A line without a variant matches only another line without one.

    Variants match on variant_id, or on name when either side has no id.
    """
    if stored is None or variant is None:
        return stored is None and variant is None
    if variant.variant_id and stored.get("variant_id"):
        return stored["variant_id"] == variant.variant_id
    return stored.get("name") == variant.name


class CartPersistenceService:
    """Service for persisting signed-in customers' carts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_items(self, user_id: str) -> List[CartItem]:
        """Get cart items in insertion order."""
        result = await self.db.execute(
            select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
        )
        return list(result.scalars().all())

    async def add_item(self, user_id: str, request: AddCartItemRequest) -> List[CartItem]:
        """Add a product; the same product and variant increments the quantity.

        Raises:
            InsufficientStock: the cart would hold more than is in stock
        """
        variant = request.variant
        stock = effective_stock(request.product, variant)
        if stock is not None and request.quantity > stock:
            raise InsufficientStock("Insufficient stock")

        for item in await self.get_items(user_id):
            if item.product_id == request.product.id and same_variant(item.variant, variant):
                quantity = item.quantity + request.quantity
                if stock is not None and quantity > stock:
                    raise InsufficientStock("Cannot add more items. Stock limit reached.")
                item.quantity = quantity
                await self.db.commit()
                return await self.get_items(user_id)

        self.db.add(
            CartItem(
                user_id=user_id,
                product_id=request.product.id,
                name=request.product.name,
                sku=(variant.sku if variant and variant.sku else request.product.sku),
                price=effective_price(request.product, variant),
                quantity=request.quantity,
                variant=(
                    variant.to_line_variant().model_dump(mode="json") if variant else None
                ),
            )
        )
        await self.db.commit()
        return await self.get_items(user_id)

    async def replace_items(
        self, user_id: str, items: List[ServerCartItem]
    ) -> List[CartItem]:
        """Replace the whole cart."""
        await self.db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        for item in items:
            self.db.add(
                CartItem(
                    user_id=user_id,
                    product_id=item.product_id,
                    name=item.name,
                    sku=item.sku,
                    price=item.price,
                    quantity=item.quantity,
                    variant=item.variant.model_dump(mode="json") if item.variant else None,
                )
            )
        await self.db.commit()
        return await self.get_items(user_id)

    async def clear(self, user_id: str) -> None:
        """Empty the cart."""
        await self.db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        await self.db.commit()
