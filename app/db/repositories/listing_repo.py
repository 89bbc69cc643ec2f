"""
Listing-specific database repository.

Owns the listing lifecycle rules that live at the persistence layer:
creation from a confirmed draft, the available/sold visibility filter,
the delete guard, and the single conditional ``available → sold`` update.
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ForbiddenError,
    ListingNotFoundError,
    ListingValidationError,
)
from app.core.models import Category, ListingCreate, ListingStatus
from app.db.mappers import listing_from_create
from app.db.models import Listing
from app.db.repositories.base_repo import BaseRepository
from app.db.repositories.purchase_repo import PurchaseRepository

logger = logging.getLogger(__name__)

_CATEGORY_VALUES = {c.value for c in Category}


def _is_available():
    """Status filter: available, or NULL on legacy rows."""
    return or_(Listing.status == ListingStatus.AVAILABLE.value, Listing.status.is_(None))


class ListingRepository(BaseRepository[Listing]):
    """Repository for Listing CRUD, browse queries and status transitions."""

    owner_field = "owner_id"

    def __init__(self, session: AsyncSession):
        super().__init__(session, Listing)

    async def create_from_draft(self, payload: ListingCreate, owner_id: str) -> Listing:
        """
        Persist a confirmed draft as an available listing.

        Raises:
            ListingValidationError: title, price or category missing/invalid.
        """
        _validate_payload(payload)
        listing = listing_from_create(payload, owner_id=owner_id)
        await self.add(listing)
        logger.info(f"Listing {listing.id} created by {owner_id} ({listing.category})")
        return listing

    @staticmethod
    def _available(stmt, search: str | None, category: str | None):
        stmt = stmt.where(_is_available())
        if search and search.strip():
            term = search.strip()
            stmt = stmt.where(
                or_(
                    Listing.title.icontains(term, autoescape=True),
                    Listing.description.icontains(term, autoescape=True),
                )
            )
        if category:
            stmt = stmt.where(Listing.category == category)
        return stmt

    async def list_available(
        self,
        search: str | None = None,
        category: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Listing]:
        """
        Listings buyers can see, newest first.

        Args:
            search: Case-insensitive substring matched against title or description.
            category: Restrict to one category.
        """
        stmt = self._available(select(Listing), search, category)
        return await self.fetch_page(stmt, Listing.created_at, limit=limit, offset=offset)

    async def count_available(
        self, search: str | None = None, category: str | None = None
    ) -> int:
        """Number of listings ``list_available`` would page through."""
        stmt = self._available(select(func.count()).select_from(Listing), search, category)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_for_owner(
        self,
        owner_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Listing]:
        """All listings of one owner regardless of status, newest first."""
        return await self.fetch_page(
            self.select_owned(owner_id), Listing.created_at, limit=limit, offset=offset
        )

    async def delete_owned(self, listing_id: uuid.UUID, requester_id: str) -> None:
        """
        Delete a listing on behalf of its owner.

        Purchase rows are checked directly rather than trusting the status
        column, so an orphan purchase still blocks deletion.

        Raises:
            ListingNotFoundError: no such listing.
            ForbiddenError: requester is not the owner, or the listing was sold
                or purchased.
        """
        listing = await self.get_by_id(listing_id, refresh=True)
        if listing is None:
            raise ListingNotFoundError(f"Listing {listing_id} not found")

        if listing.owner_id != requester_id:
            raise ForbiddenError("You can only delete your own listings")

        if await PurchaseRepository(self.session).exists_for_listing(listing_id):
            raise ForbiddenError(
                "This item has been purchased and cannot be deleted.",
                details={"listing_id": str(listing_id)},
            )

        if listing.status == ListingStatus.SOLD.value:
            raise ForbiddenError(
                "You cannot delete items that have been sold.",
                details={"listing_id": str(listing_id)},
            )

        await self.session.delete(listing)
        await self.session.flush()
        logger.info(f"Listing {listing_id} deleted by owner {requester_id}")

    async def mark_sold(
        self,
        listing_id: uuid.UUID,
        buyer_id: str,
        sold_at: datetime,
    ) -> bool:
        """
        Transition a listing to sold if, and only if, it is still available.

        A single conditional UPDATE: of several concurrent callers, at most
        one sees a row change.

        Returns:
            True if this call performed the transition.
        """
        stmt = (
            update(Listing)
            .where(Listing.id == listing_id, _is_available())
            .values(
                status=ListingStatus.SOLD.value,
                buyer_id=buyer_id,
                sold_at=sold_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    def group_by_category(listings: list[Listing]) -> dict[str, list[Listing]]:
        """Group listings by category, preserving the input order inside each group."""
        grouped: dict[str, list[Listing]] = defaultdict(list)
        for listing in listings:
            grouped[listing.category].append(listing)
        return dict(grouped)


def _validate_payload(payload: ListingCreate) -> None:
    missing = []
    if not payload.title or not str(payload.title).strip():
        missing.append("title")
    if payload.price is None or payload.price <= 0:
        missing.append("price")
    category = getattr(payload.category, "value", payload.category)
    if not category or category not in _CATEGORY_VALUES:
        missing.append("category")
    if not payload.image_url:
        missing.append("image_url")

    if missing:
        raise ListingValidationError(
            f"Listing is missing required fields: {', '.join(missing)}",
            details={"fields": missing},
        )
