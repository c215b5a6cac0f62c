"""Checkout quote endpoint."""
import logging
from decimal import Decimal
from typing import List
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from storefront.core.config import settings
from storefront.core.errors import CheckoutError
from storefront.services.checkout.models import OrderFlow, OrderLine
from storefront.services.pricing.calculator import TotalsCalculator
from storefront.services.pricing.models import OrderTotals, ShippingOption

router = APIRouter()
logger = logging.getLogger(__name__)


class QuoteRequest(BaseModel):
    """Quote request model."""
    flow: OrderFlow = OrderFlow.CHECKOUT
    items: List[OrderLine] = []
    shipping_option: ShippingOption = ShippingOption.INSIDE_REGION
    discount: Decimal = Decimal("0")


@router.post("/api/checkout/quote", response_model=OrderTotals)
async def quote(request: QuoteRequest):
    """Compute order totals for either flow without creating anything."""
    if request.flow == OrderFlow.ADMIN:
        calculator = TotalsCalculator.for_admin(settings)
    else:
        calculator = TotalsCalculator.for_checkout(settings, request.shipping_option)

    try:
        return calculator.calculate(
            [line.to_line_item() for line in request.items], request.discount
        )
    except CheckoutError as e:
        logger.info(f"[CHECKOUT] Quote rejected - {e.message}")
        raise HTTPException(status_code=400, detail=e.message)
