"""Server-side order intake."""
import logging
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import Settings
from storefront.core.errors import CheckoutError
from storefront.db.models import Order
from storefront.services.checkout.models import OrderPayload
from storefront.services.persistence.addresses import AddressPersistenceService
from storefront.services.persistence.carts import CartPersistenceService
from storefront.services.persistence.orders import OrderPersistenceService
from storefront.services.pricing.calculator import TotalsCalculator
from storefront.services.pricing.models import LineItem

logger = logging.getLogger(__name__)


class IntakeError(Exception):
    """Order request rejected by the backend."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def address_snapshot(address) -> Dict[str, Any]:
    return {
        "name": address.name,
        "phone": address.phone,
        "email": address.email or None,
        "address": address.address,
        "city": address.city,
        "state": address.state or None,
        "zip_code": address.zip_code or None,
        "country": address.country,
    }


class OrderIntakeService:
    """Validates order requests and persists them with recomputed totals.

    Client totals are never trusted: both entry points recompute with the
    calculator of their flow.
    """

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.addresses = AddressPersistenceService(db)
        self.carts = CartPersistenceService(db)
        self.orders = OrderPersistenceService(db)

    async def _existing(self, idempotency_key: Optional[str]) -> Optional[Order]:
        if not idempotency_key:
            return None
        order = await self.orders.get_order_by_idempotency_key(idempotency_key)
        if order:
            logger.info(
                f"[ORDER INTAKE] Duplicate submission - Key: {idempotency_key}, "
                f"Order: {order.order_number}"
            )
        return order

    async def _resolve_addresses(
        self, payload: OrderPayload, owner_id: Optional[str]
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        shipping = await self._resolve_one(
            payload.shipping_address_id, payload.shipping_address, owner_id
        )
        if shipping is None:
            raise IntakeError("Shipping address is required")
        billing = await self._resolve_one(
            payload.billing_address_id, payload.billing_address, owner_id
        )
        return shipping, billing or shipping

    async def _resolve_one(
        self, address_id: Optional[str], inline, owner_id: Optional[str]
    ) -> Optional[Dict[str, Any]]:
        if address_id:
            if not owner_id:
                raise IntakeError("Saved addresses require a signed-in customer")
            address = await self.addresses.get_address(owner_id, address_id)
            if address is None:
                raise IntakeError("Address not found", status_code=404)
            return address_snapshot(address)
        if inline is not None:
            missing = inline.missing_fields()
            if missing:
                raise IntakeError(
                    f"Shipping address is missing: {', '.join(missing)}"
                )
            return address_snapshot(inline)
        return None

    async def place_checkout_order(
        self,
        payload: OrderPayload,
        user_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Order:
        """
        Place a customer checkout order.

        Signed-in customers are charged for their server cart; guests for the
        items in the request. The server cart is emptied afterwards.
        """
        existing = await self._existing(idempotency_key)
        if existing:
            return existing

        if user_id:
            cart_items = await self.carts.get_items(user_id)
            items: List[LineItem] = [
                LineItem(
                    product_ref=item.product_id,
                    name=item.name,
                    unit_price=item.price,
                    quantity=item.quantity,
                    sku=item.sku,
                    variant=item.variant,
                )
                for item in cart_items
            ]
            if not items:
                raise IntakeError("Your cart is empty")
        else:
            items = [line.to_line_item() for line in payload.items]
            if not items:
                raise IntakeError("At least one item is required")

        shipping, billing = await self._resolve_addresses(payload, user_id)

        calculator = TotalsCalculator.for_checkout(self.settings, payload.shipping_option)
        try:
            totals = calculator.calculate(items, payload.discount)
        except CheckoutError as e:
            raise IntakeError(e.message) from e

        order = await self.orders.create_order(
            items=items,
            totals=totals,
            shipping_address=shipping,
            billing_address=billing,
            payment_method=payload.payment_method.value,
            currency=payload.currency or self.settings.checkout_currency,
            user_id=user_id,
            guest_email=None if user_id else payload.guest_email,
            channel="checkout",
            idempotency_key=idempotency_key,
            shipping_option=payload.shipping_option.value if payload.shipping_option else None,
            notes=payload.notes,
        )

        if user_id:
            await self.carts.clear(user_id)

        logger.info(
            f"[ORDER INTAKE] Checkout order placed - Order: {order.order_number}, "
            f"Customer: {user_id or 'guest'}, Total: {order.total} {order.currency}"
        )
        return order

    async def place_admin_order(
        self,
        payload: OrderPayload,
        idempotency_key: Optional[str] = None,
    ) -> Order:
        """Place a manual order on behalf of a customer."""
        existing = await self._existing(idempotency_key)
        if existing:
            return existing

        if not payload.customer_id:
            raise IntakeError("Customer is required")
        items = [line.to_line_item() for line in payload.items]
        if not items:
            raise IntakeError("At least one item is required")

        shipping, billing = await self._resolve_addresses(payload, payload.customer_id)

        calculator = TotalsCalculator.for_admin(self.settings)
        try:
            totals = calculator.calculate(items, payload.discount)
        except CheckoutError as e:
            raise IntakeError(e.message) from e

        order = await self.orders.create_order(
            items=items,
            totals=totals,
            shipping_address=shipping,
            billing_address=billing,
            payment_method=payload.payment_method.value,
            currency=payload.currency or self.settings.admin_currency,
            user_id=payload.customer_id,
            channel="admin",
            idempotency_key=idempotency_key,
            status=payload.order_status or "pending",
            payment_status=payload.payment_status or "pending",
            notes=payload.notes,
        )
        logger.info(
            f"[ORDER INTAKE] Admin order placed - Order: {order.order_number}, "
            f"Customer: {payload.customer_id}, Total: {order.total} {order.currency}"
        )
        return order
