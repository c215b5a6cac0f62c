"""Cart models."""
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from storefront.services.pricing.models import LineItem, LineItemVariant


class CatalogProduct(BaseModel):
    """Product as shown on the listing and detail pages."""

    id: str
    name: str
    price: Decimal = Field(ge=0)
    stock: Optional[int] = None
    sku: Optional[str] = None
    image: Optional[str] = None


class CatalogVariant(BaseModel):
    """Selected product variant. Its price and stock override the product's."""

    variant_id: Optional[str] = None
    name: Optional[str] = None
    attributes: Dict[str, str] = {}
    sku: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    stock: Optional[int] = None

    def to_line_variant(self) -> LineItemVariant:
        return LineItemVariant(
            variant_id=self.variant_id,
            name=self.name,
            attributes=dict(self.attributes),
            sku=self.sku,
        )


def effective_price(product: CatalogProduct, variant: Optional[CatalogVariant]) -> Decimal:
    """Variant price when the variant carries one, else the product price."""
    if variant is not None and variant.price is not None:
        return variant.price
    return product.price


def effective_stock(
    product: CatalogProduct, variant: Optional[CatalogVariant]
) -> Optional[int]:
    if variant is not None and variant.stock is not None:
        return variant.stock
    return product.stock


class StoredCartEntry(BaseModel):
    """One entry of the client-persisted guest cart blob."""

    product: CatalogProduct
    quantity: int = Field(ge=1)
    variant: Optional[CatalogVariant] = None

    def variant_name(self) -> Optional[str]:
        return self.variant.name if self.variant else None

    def matches(self, product_id: str, variant_name: Optional[str] = None) -> bool:
        """Same product, and same variant when a variant name is given."""
        if self.product.id != product_id:
            return False
        return variant_name is None or self.variant_name() == variant_name

    def to_line_item(self) -> LineItem:
        return LineItem(
            product_ref=self.product.id,
            name=self.product.name,
            unit_price=effective_price(self.product, self.variant),
            quantity=self.quantity,
            sku=(self.variant.sku if self.variant and self.variant.sku else self.product.sku),
            variant=self.variant.to_line_variant() if self.variant else None,
        )

    @classmethod
    def from_line_item(cls, item: LineItem) -> "StoredCartEntry":
        variant = None
        if item.variant is not None:
            variant = CatalogVariant(
                **item.variant.model_dump(), price=item.unit_price
            )
        return cls(
            product=CatalogProduct(
                id=item.product_ref,
                name=item.name,
                price=item.unit_price,
                sku=item.sku,
            ),
            quantity=item.quantity,
            variant=variant,
        )


class StoredCart(BaseModel):
    """Guest cart blob: {"items": [...]}."""

    items: List[StoredCartEntry] = []

    def item_count(self) -> int:
        return sum(entry.quantity for entry in self.items)


class ServerCartItem(BaseModel):
    """Item of the server-persisted cart. Price was fixed at add-to-cart time."""

    product_id: str
    name: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    sku: Optional[str] = None
    variant: Optional[LineItemVariant] = None

    def to_line_item(self) -> LineItem:
        return LineItem(
            product_ref=self.product_id,
            name=self.name,
            unit_price=self.price,
            quantity=self.quantity,
            sku=self.sku,
            variant=self.variant,
        )

    @classmethod
    def from_line_item(cls, item: LineItem) -> "ServerCartItem":
        return cls(
            product_id=item.product_ref,
            name=item.name,
            price=item.unit_price,
            quantity=item.quantity,
            sku=item.sku,
            variant=item.variant,
        )


class ServerCart(BaseModel):
    user_id: str
    items: List[ServerCartItem] = []
    subtotal: Decimal = Decimal("0")


class AddCartItemRequest(BaseModel):
    """Add-to-cart request for the server cart."""

    product: CatalogProduct
    quantity: int = Field(default=1, ge=1)
    variant: Optional[CatalogVariant] = None
