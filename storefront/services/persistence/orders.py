"""Order persistence service."""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from storefront.db.models import Order, OrderItem
from storefront.services.pricing.models import LineItem, OrderTotals

logger = logging.getLogger(__name__)

# Concurrent inserts can race for the same count-based number
NUMBER_ATTEMPTS = 3


class OrderPersistenceService:
    """Service for persisting order data."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def next_order_number(self) -> str:
        """Sequential order number, e.g. ORD-000001."""
        result = await self.db.execute(select(func.count(Order.id)))
        count = result.scalar() or 0
        return f"ORD-{count + 1:06d}"

    async def create_order(
        self,
        items: List[LineItem],
        totals: OrderTotals,
        shipping_address: Dict[str, Any],
        billing_address: Optional[Dict[str, Any]] = None,
        payment_method: str = "cod",
        currency: str = "BDT",
        user_id: Optional[str] = None,
        guest_email: Optional[str] = None,
        channel: str = "checkout",
        idempotency_key: Optional[str] = None,
        status: str = "pending",
        payment_status: str = "pending",
        shipping_option: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Create an order with its items in one commit.

        A concurrent request that stored the same idempotency key first wins,
        and its order is returned. An order number collision is retried with
        a fresh number.
        """
        for attempt in range(1, NUMBER_ATTEMPTS + 1):
            order = Order(
                order_number=await self.next_order_number(),
                user_id=user_id,
                guest_email=guest_email,
                channel=channel,
                idempotency_key=idempotency_key,
                status=status,
                payment_method=payment_method,
                payment_status=payment_status,
                shipping_option=shipping_option,
                shipping_address=shipping_address,
                billing_address=billing_address or shipping_address,
                notes=notes,
                subtotal=totals.subtotal,
                tax=totals.tax,
                shipping=totals.shipping,
                discount=totals.discount,
                total=totals.total,
                currency=currency,
            )
            order.items = [
                OrderItem(
                    product_ref=item.product_ref,
                    name=item.name,
                    sku=item.sku,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    line_total=item.line_total,
                    variant=item.variant.model_dump(mode="json") if item.variant else None,
                )
                for item in items
            ]
            self.db.add(order)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                if idempotency_key:
                    existing = await self.get_order_by_idempotency_key(idempotency_key)
                    if existing:
                        logger.info(
                            f"[ORDERS] Idempotency key already stored - Order: "
                            f"{existing.order_number}"
                        )
                        return existing
                if attempt == NUMBER_ATTEMPTS:
                    raise
                logger.warning(
                    f"[ORDERS] Order number {order.order_number} taken, retrying"
                )
                continue
            return await self.get_order_by_id(order.id)

    async def get_order_by_id(self, order_id: str) -> Optional[Order]:
        """Get order by ID with items."""
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_order_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Get the order a previous request with this key created."""
        result = await self.db.execute(
            select(Order)
            .where(Order.idempotency_key == key)
            .options(selectinload(Order.items))
        )
        return result.scalar_one_or_none()
