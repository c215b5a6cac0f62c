"""Order API endpoints."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.auth import require_admin
from storefront.core.config import settings
from storefront.core.dependencies import get_optional_user_id
from storefront.db.database import get_db
from storefront.db.models import Order
from storefront.services.checkout.intake import IntakeError, OrderIntakeService
from storefront.services.checkout.models import OrderConfirmation, OrderPayload
from storefront.services.persistence.orders import OrderPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)


class OrderItemResponse(BaseModel):
    """Order item response model."""
    id: int
    product_ref: str
    name: str
    sku: Optional[str] = None
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    variant: Optional[dict] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Order response model."""
    id: str
    order_number: str
    status: str
    channel: str
    payment_method: str
    payment_status: str
    shipping_option: Optional[str] = None
    shipping_address: dict
    billing_address: dict
    notes: Optional[str] = None
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    currency: str
    created_at: datetime
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


def to_confirmation(order: Order) -> OrderConfirmation:
    return OrderConfirmation(
        order_id=order.id, order_number=order.order_number, total=order.total
    )


@router.post("/api/orders", response_model=OrderConfirmation, status_code=201)
async def create_checkout_order(
    request: Request,
    payload: OrderPayload,
    user_id: Optional[str] = Depends(get_optional_user_id),
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    db: AsyncSession = Depends(get_db),
):
    """Create an order from customer checkout (signed-in or guest)."""
    logger.info(
        f"[ORDERS] Checkout order request - Customer: {user_id or 'guest'}, "
        f"Items: {len(payload.items)}, Payment: {payload.payment_method.value}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )
    try:
        order = await OrderIntakeService(db, settings).place_checkout_order(
            payload, user_id=user_id, idempotency_key=idempotency_key
        )
        return to_confirmation(order)
    except IntakeError as e:
        logger.warning(f"[ORDERS] Checkout order rejected - {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(
            f"[ORDERS] Error creating checkout order - Customer: {user_id or 'guest'}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to create order")


@router.post(
    "/api/admin/orders",
    response_model=OrderConfirmation,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def create_admin_order(
    payload: OrderPayload,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    db: AsyncSession = Depends(get_db),
):
    """Create a manual order from the admin back-office."""
    logger.info(
        f"[ORDERS] Admin order request - Customer: {payload.customer_id}, "
        f"Items: {len(payload.items)}"
    )
    try:
        order = await OrderIntakeService(db, settings).place_admin_order(
            payload, idempotency_key=idempotency_key
        )
        return to_confirmation(order)
    except IntakeError as e:
        logger.warning(f"[ORDERS] Admin order rejected - {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(
            f"[ORDERS] Error creating admin order - Customer: {payload.customer_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to create order")


@router.get("/api/orders/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, db: AsyncSession = Depends(get_db)):
    """Get an order for the confirmation page."""
    order = await OrderPersistenceService(db).get_order_by_id(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderResponse.model_validate(order)
