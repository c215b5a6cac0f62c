"""Invoice persistence service."""
import logging
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select

from storefront.db.models import Invoice, Order
from storefront.services.persistence.orders import NUMBER_ATTEMPTS

logger = logging.getLogger(__name__)


class InvoiceAlreadyExists(Exception):
    """An order can have only one invoice."""


class InvoicePersistenceService:
    """Service for persisting invoices."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_invoice_for_order(self, order_id: str) -> Optional[Invoice]:
        result = await self.db.execute(
            select(Invoice).where(Invoice.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def next_invoice_number(self) -> str:
        """Sequential invoice number, e.g. INV-000001."""
        result = await self.db.execute(select(func.count(Invoice.id)))
        count = result.scalar() or 0
        return f"INV-{count + 1:06d}"

    async def create_invoice(self, order: Order) -> Invoice:
        """Issue an invoice for the full order total."""
        order_id, amount, currency = order.id, order.total, order.currency
        if await self.get_invoice_for_order(order_id):
            raise InvoiceAlreadyExists(order_id)

        for attempt in range(1, NUMBER_ATTEMPTS + 1):
            invoice = Invoice(
                invoice_number=await self.next_invoice_number(),
                order_id=order_id,
                amount=amount,
                currency=currency,
            )
            self.db.add(invoice)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                await self.db.refresh(order)
                if await self.get_invoice_for_order(order_id):
                    raise InvoiceAlreadyExists(order_id)
                if attempt == NUMBER_ATTEMPTS:
                    raise
                logger.warning(
                    f"[INVOICES] Invoice number {invoice.invoice_number} taken, retrying"
                )
                continue
            await self.db.refresh(invoice)
            return invoice
