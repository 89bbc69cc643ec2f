"""
Purchase-specific database repository.

Purchases are append-only: rows are inserted once per completed buy and
never updated or deleted.
"""

import uuid
from datetime import datetime

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Listing, Purchase
from app.db.repositories.base_repo import BaseRepository


class PurchaseRepository(BaseRepository[Purchase]):
    """Repository for Purchase records and buyer history."""

    owner_field = "buyer_id"

    def __init__(self, session: AsyncSession):
        super().__init__(session, Purchase)

    async def record(
        self,
        listing_id: uuid.UUID,
        buyer_id: str,
        purchased_at: datetime,
        buyer_email: str = "",
    ) -> Purchase:
        """
        Insert a purchase row.

        Raises:
            sqlalchemy.exc.IntegrityError: a purchase for this listing already exists.
        """
        return await self.create(
            listing_id=listing_id,
            buyer_id=buyer_id,
            buyer_email=buyer_email,
            purchased_at=purchased_at,
        )

    async def exists_for_listing(self, listing_id: uuid.UUID) -> bool:
        stmt = select(exists().where(Purchase.listing_id == listing_id))
        result = await self.session.execute(stmt)
        return bool(result.scalar())

    async def find_by_buyer(
        self,
        buyer_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[tuple[Purchase, Listing]]:
        """
        Purchases made by one buyer joined with the purchased listing.

        Returns:
            (Purchase, Listing) pairs, most recent purchase first.
        """
        stmt = (
            select(Purchase, Listing)
            .join(Listing, Listing.id == Purchase.listing_id)
            .where(Purchase.buyer_id == buyer_id)
            .order_by(Purchase.purchased_at.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def listing_ids_for_buyer(self, buyer_id: str) -> set[str]:
        """IDs of every listing this buyer has purchased."""
        stmt = select(Purchase.listing_id).where(Purchase.buyer_id == buyer_id)
        result = await self.session.execute(stmt)
        return {str(listing_id) for listing_id in result.scalars().all()}
