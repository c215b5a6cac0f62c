"""Invoice API endpoints."""
import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.auth import require_admin
from storefront.db.database import get_db
from storefront.services.checkout.models import InvoiceSummary
from storefront.services.persistence.invoices import (
    InvoiceAlreadyExists,
    InvoicePersistenceService,
)
from storefront.services.persistence.orders import OrderPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateInvoiceRequest(BaseModel):
    """Create invoice request model."""
    order_id: str = Field(min_length=1)


@router.post(
    "/api/admin/invoices",
    response_model=InvoiceSummary,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def create_invoice(
    request: CreateInvoiceRequest,
    db: AsyncSession = Depends(get_db),
):
    """Issue an invoice for an order."""
    order = await OrderPersistenceService(db).get_order_by_id(request.order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")

    try:
        invoice = await InvoicePersistenceService(db).create_invoice(order)
    except InvoiceAlreadyExists:
        raise HTTPException(status_code=400, detail="Invoice already exists for this order")
    except Exception as e:
        logger.error(
            f"[INVOICES] Error creating invoice - Order: {request.order_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to create invoice")

    logger.info(
        f"[INVOICES] Invoice issued - Invoice: {invoice.invoice_number}, "
        f"Order: {order.order_number}, Amount: {invoice.amount} {invoice.currency}"
    )
    return InvoiceSummary.model_validate(invoice, from_attributes=True)
