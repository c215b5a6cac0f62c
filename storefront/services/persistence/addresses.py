"""Address persistence service."""
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from storefront.db.models import Address
from storefront.services.checkout.models import AddressInput


class AddressPersistenceService:
    """Service for persisting customer addresses."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_addresses(self, user_id: str) -> List[Address]:
        """Get a customer's addresses, default first."""
        result = await self.db.execute(
            select(Address)
            .where(Address.user_id == user_id)
            .order_by(Address.is_default.desc(), Address.created_at)
        )
        return list(result.scalars().all())

    async def get_address(self, user_id: str, address_id: str) -> Optional[Address]:
        """Get an address owned by the customer."""
        result = await self.db.execute(
            select(Address).where(Address.id == address_id, Address.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_address(self, user_id: str, data: AddressInput) -> Address:
        """Create an address. The first one always becomes the default."""
        existing = await self.list_addresses(user_id)
        is_default = data.is_default or not existing

        if is_default and existing:
            await self.db.execute(
                update(Address)
                .where(Address.user_id == user_id)
                .values(is_default=False)
            )

        address = Address(
            user_id=user_id,
            **data.model_dump(exclude={"is_default"}),
            is_default=is_default,
        )
        self.db.add(address)
        await self.db.commit()
        await self.db.refresh(address)
        return address
