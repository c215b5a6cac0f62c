"""Pricing models."""
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, computed_field

CUSTOM_PRODUCT_REF = "custom"

ZERO = Decimal("0.00")


class ShippingOption(str, Enum):
    """Delivery zones offered at customer checkout."""

    INSIDE_REGION = "inside-region"
    OUTSIDE_REGION = "outside-region"

    def __str__(self) -> str:
        return self.value


class LineItemVariant(BaseModel):
    """Variant selected for a line item."""

    variant_id: Optional[str] = None
    name: Optional[str] = None
    attributes: Dict[str, str] = {}
    sku: Optional[str] = None


class LineItem(BaseModel):
    """Identity-agnostic order line."""

    product_ref: str
    name: str
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    sku: Optional[str] = None
    variant: Optional[LineItemVariant] = None

    @computed_field
    @property
    def line_total(self) -> Decimal:
        """Always derived from price and quantity."""
        return self.unit_price * self.quantity

    @property
    def is_custom(self) -> bool:
        return self.product_ref == CUSTOM_PRODUCT_REF


class OrderTotals(BaseModel):
    """Monetary summary of an order, rounded to cents."""

    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    shipping: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO
