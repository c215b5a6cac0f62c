"""Order totals calculation."""
import logging
from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Optional, Union

from storefront.core.config import Settings
from storefront.core.errors import DiscountExceedsTotalError, ValidationError
from storefront.services.pricing.models import (
    LineItem,
    OrderTotals,
    ShippingOption,
)

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]

CENTS = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without picking up binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round2(value: Number) -> Decimal:
    """Round half-up to two decimal places."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def subtotal_of(items: Iterable[LineItem]) -> Decimal:
    """Sum of line totals, product and custom items alike."""
    return sum((item.line_total for item in items), Decimal("0"))


def compute_totals(
    items: Iterable[LineItem],
    shipping_fee: Number,
    tax_rate: Number,
    discount: Number = 0,
    discount_policy: str = "clamp",
) -> OrderTotals:
    """
    Compute order totals.

    Args:
        items: Line items (product and custom)
        shipping_fee: Fee already resolved by the flow's shipping policy
        tax_rate: Fraction, e.g. 0.08
        discount: Absolute discount amount
        discount_policy: "clamp" keeps the discount within
            [0, subtotal + tax + shipping], "reject" raises instead

    Returns:
        OrderTotals with every field rounded to cents, all zeros for no items
    """
    items = list(items)
    if not items:
        return OrderTotals()

    subtotal = round2(subtotal_of(items))
    tax = round2(subtotal * to_decimal(tax_rate))
    shipping = round2(shipping_fee)
    discount = round2(discount)

    if discount < 0:
        if discount_policy == "reject":
            raise ValidationError("Discount must be non-negative")
        discount = round2(0)

    gross = subtotal + tax + shipping
    if discount > gross:
        if discount_policy == "reject":
            raise DiscountExceedsTotalError()
        logger.warning(
            f"[PRICING] Discount {discount} exceeds order value {gross}, clamping"
        )
        discount = gross

    return OrderTotals(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        discount=discount,
        total=gross - discount,
    )


class ShippingPolicy(ABC):
    """Resolves the shipping fee for a subtotal."""

    @abstractmethod
    def fee_for(self, subtotal: Decimal) -> Decimal:
        pass


class ThresholdShipping(ShippingPolicy):
    """Flat fee, free once the subtotal passes the threshold."""

    def __init__(self, fee: Number, free_over: Number):
        self.fee = to_decimal(fee)
        self.free_over = to_decimal(free_over)

    def fee_for(self, subtotal: Decimal) -> Decimal:
        # Strictly greater: a subtotal equal to the threshold still pays
        if subtotal > self.free_over:
            return Decimal("0")
        return self.fee


class ZoneShipping(ShippingPolicy):
    """Fixed fee per delivery zone, independent of the subtotal."""

    def __init__(self, fees: Dict[ShippingOption, Number], option: ShippingOption):
        self.fees = {zone: to_decimal(fee) for zone, fee in fees.items()}
        self.option = option

    def fee_for(self, subtotal: Decimal) -> Decimal:
        return self.fees[self.option]


class TotalsCalculator:
    """Binds a tax rate, shipping policy and discount policy for one flow."""

    def __init__(
        self,
        shipping_policy: ShippingPolicy,
        tax_rate: Number,
        discount_policy: str = "clamp",
    ):
        self.shipping_policy = shipping_policy
        self.tax_rate = to_decimal(tax_rate)
        self.discount_policy = discount_policy

    @classmethod
    def for_admin(cls, settings: Settings) -> "TotalsCalculator":
        """Manual order creation in the admin back-office."""
        return cls(
            ThresholdShipping(
                settings.admin_shipping_fee, settings.admin_free_shipping_threshold
            ),
            settings.tax_rate,
            settings.discount_policy,
        )

    @classmethod
    def for_checkout(
        cls, settings: Settings, option: Optional[ShippingOption] = None
    ) -> "TotalsCalculator":
        """Customer-facing checkout."""
        return cls(
            ZoneShipping(
                {
                    ShippingOption.INSIDE_REGION: settings.inside_region_fee,
                    ShippingOption.OUTSIDE_REGION: settings.outside_region_fee,
                },
                option or ShippingOption.INSIDE_REGION,
            ),
            settings.tax_rate,
            settings.discount_policy,
        )

    def calculate(self, items: Iterable[LineItem], discount: Number = 0) -> OrderTotals:
        items = list(items)
        fee = self.shipping_policy.fee_for(round2(subtotal_of(items)))
        return compute_totals(
            items, fee, self.tax_rate, discount, self.discount_policy
        )
