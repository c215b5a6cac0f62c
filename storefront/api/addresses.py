"""Address book API endpoints."""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.dependencies import require_user_id
from storefront.db.database import get_db
from storefront.services.checkout.models import Address, AddressInput
from storefront.services.persistence.addresses import AddressPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/api/dashboard/addresses", response_model=List[Address])
async def get_addresses(
    user_id: str = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get the customer's addresses, default first."""
    try:
        addresses = await AddressPersistenceService(db).list_addresses(user_id)
        return [Address.model_validate(a, from_attributes=True) for a in addresses]
    except Exception as e:
        logger.error(
            f"[ADDRESSES] Error fetching addresses - User: {user_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to fetch addresses")


@router.post("/api/dashboard/addresses", response_model=Address, status_code=201)
async def add_address(
    address: AddressInput,
    user_id: str = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Save a new address."""
    try:
        created = await AddressPersistenceService(db).create_address(user_id, address)
        logger.info(
            f"[ADDRESSES] Address saved - User: {user_id}, Address ID: {created.id}, "
            f"Default: {created.is_default}"
        )
        return Address.model_validate(created, from_attributes=True)
    except Exception as e:
        logger.error(
            f"[ADDRESSES] Error saving address - User: {user_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to save address")
