"""
Purchase orchestration.

A buy is one savepoint on the request's session:

    insert Purchase → conditional UPDATE listings SET status='sold'

The conditional update and the unique constraint on
``purchases.listing_id`` together guarantee that of any number of
concurrent buyers exactly one wins; the others get
``ListingAlreadySoldError`` and leave nothing behind. Notifying the
seller happens afterwards in its own savepoint and never undoes a sale.
"""

import logging
import uuid

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ListingAlreadySoldError,
    ListingNotFoundError,
    PurchaseFailedError,
    SnapMarketError,
)
from app.core.models import NotificationType, PurchaseReceipt
from app.core.session import Identity, SessionContext
from app.db.mappers import listing_state
from app.db.models import Listing, Purchase, utc_now
from app.db.repositories.listing_repo import ListingRepository
from app.db.repositories.purchase_repo import PurchaseRepository
from app.services.notification_service import NotificationService, purchase_message

logger = logging.getLogger(__name__)


class PurchaseService:
    """
    Executes buys and answers "what did I buy?".

    Usage:
        service = PurchaseService(db)
        receipt = await service.buy(listing_id, session_ctx)
    """

    def __init__(
        self,
        session: AsyncSession,
        notifications: NotificationService | None = None,
    ):
        self._db = session
        self._listings = ListingRepository(session)
        self._purchases = PurchaseRepository(session)
        self._notifications = notifications or NotificationService(session)

    async def buy(self, listing_id: uuid.UUID, session_ctx: SessionContext) -> PurchaseReceipt:
        """
        Buy a listing as the current identity.

        Raises:
            AuthRequiredError: no authenticated identity; nothing is written.
            ListingNotFoundError: unknown listing.
            ListingAlreadySoldError: someone else (or an earlier call) bought it.
            PurchaseFailedError: the purchase could not be recorded.
        """
        buyer = session_ctx.require()

        listing = await self._listings.get_by_id(listing_id, refresh=True)
        if listing is None:
            raise ListingNotFoundError(f"Listing {listing_id} not found")
        if listing_state(listing).is_sold:
            raise ListingAlreadySoldError(str(listing_id))

        sold_at = utc_now()
        purchase = await self._record_sale(listing_id, buyer, sold_at)
        logger.info(f"Listing {listing_id} sold to {buyer.user_id}")

        listing = await self._listings.get_by_id(listing_id, refresh=True)
        notified = await self._notify_seller(listing, buyer)

        return PurchaseReceipt(
            purchase_id=str(purchase.id),
            listing_id=str(listing_id),
            buyer_id=buyer.user_id,
            sold_at=sold_at,
            seller_notified=notified,
        )

    async def _record_sale(self, listing_id: uuid.UUID, buyer: Identity, sold_at) -> Purchase:
        try:
            async with self._db.begin_nested():
                purchase = await self._purchases.record(
                    listing_id=listing_id,
                    buyer_id=buyer.user_id,
                    purchased_at=sold_at,
                    buyer_email=buyer.email,
                )
                if not await self._listings.mark_sold(listing_id, buyer.user_id, sold_at):
                    raise ListingAlreadySoldError(str(listing_id))
        except IntegrityError as e:
            logger.info(f"Duplicate purchase rejected for listing {listing_id}")
            raise ListingAlreadySoldError(str(listing_id)) from e
        except SQLAlchemyError as e:
            logger.error(f"Purchase of {listing_id} failed: {type(e).__name__}")
            raise PurchaseFailedError(
                "Failed to complete purchase",
                details={"listing_id": str(listing_id)},
            ) from e
        return purchase

    async def _notify_seller(self, listing: Listing | None, buyer: Identity) -> bool:
        """Best-effort purchase notification. Returns whether one was written."""
        if listing is None or listing.owner_id == buyer.user_id:
            return False

        # Plain values: a rolled-back savepoint may expire the instance
        listing_id, owner_id, title = listing.id, listing.owner_id, listing.title
        try:
            async with self._db.begin_nested():
                await self._notifications.append(
                    recipient_id=owner_id,
                    message=purchase_message(title, buyer.contact),
                    type=NotificationType.PURCHASE,
                )
        except (SQLAlchemyError, SnapMarketError) as e:
            logger.error(
                f"Seller notification for listing {listing_id} failed: {type(e).__name__}"
            )
            return False
        return True

    async def purchases_for(
        self,
        session_ctx: SessionContext,
        limit: int = 100,
        offset: int = 0,
    ) -> list[tuple[Purchase, Listing]]:
        """The caller's purchases with the purchased listings, newest first."""
        buyer = session_ctx.require()
        return await self._purchases.find_by_buyer(buyer.user_id, limit=limit, offset=offset)
