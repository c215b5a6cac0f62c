"""Server cart API endpoints."""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.dependencies import require_user_id
from storefront.db.database import get_db
from storefront.db.models import CartItem
from storefront.services.cart.models import (
    AddCartItemRequest,
    ServerCart,
    ServerCartItem,
)
from storefront.services.persistence.carts import (
    CartPersistenceService,
    InsufficientStock,
)
from storefront.services.pricing.calculator import round2

router = APIRouter()
logger = logging.getLogger(__name__)


class ReplaceCartRequest(BaseModel):
    """Replace cart request model."""
    items: List[ServerCartItem] = []


def to_server_cart(user_id: str, rows: List[CartItem]) -> ServerCart:
    """Build the cart response from stored rows."""
    items = [
        ServerCartItem(
            product_id=row.product_id,
            name=row.name,
            price=row.price,
            quantity=row.quantity,
            sku=row.sku,
            variant=row.variant,
        )
        for row in rows
    ]
    subtotal = round2(sum((item.price * item.quantity for item in items), 0))
    return ServerCart(user_id=user_id, items=items, subtotal=subtotal)


@router.get("/api/dashboard/cart", response_model=ServerCart)
async def get_cart(
    user_id: str = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get the signed-in customer's cart."""
    try:
        rows = await CartPersistenceService(db).get_items(user_id)
        logger.info(f"[CART] Cart loaded - User: {user_id}, Items: {len(rows)}")
        return to_server_cart(user_id, rows)
    except Exception as e:
        logger.error(
            f"[CART] Error fetching cart - User: {user_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to fetch cart")


@router.post("/api/dashboard/cart/items", response_model=ServerCart)
async def add_cart_item(
    request: AddCartItemRequest,
    user_id: str = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Add a product to the cart."""
    try:
        rows = await CartPersistenceService(db).add_item(user_id, request)
        logger.info(
            f"[CART] Item added - User: {user_id}, Product: {request.product.id}, "
            f"Qty: {request.quantity}"
        )
        return to_server_cart(user_id, rows)
    except InsufficientStock as e:
        logger.warning(
            f"[CART] Stock limit - User: {user_id}, Product: {request.product.id}, {str(e)}"
        )
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(
            f"[CART] Error adding item - User: {user_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to add item to cart")


@router.put("/api/dashboard/cart", response_model=ServerCart)
async def replace_cart(
    request: ReplaceCartRequest,
    user_id: str = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Replace the cart contents."""
    try:
        rows = await CartPersistenceService(db).replace_items(user_id, request.items)
        return to_server_cart(user_id, rows)
    except Exception as e:
        logger.error(
            f"[CART] Error replacing cart - User: {user_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to update cart")


@router.delete("/api/dashboard/cart")
async def clear_cart(
    user_id: str = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Empty the cart."""
    try:
        await CartPersistenceService(db).clear(user_id)
        logger.info(f"[CART] Cart cleared - User: {user_id}")
        return {"success": True, "message": "Cart cleared"}
    except Exception as e:
        logger.error(
            f"[CART] Error clearing cart - User: {user_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to clear cart")
