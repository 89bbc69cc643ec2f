"""
Pydantic ↔ ORM mapping helpers for SnapMarket.

Bridges the domain models (ListingCreate, ListingState) and the
SQLAlchemy rows (Listing, Purchase, Notification), plus the JSON shapes
returned by the API.

Usage:
    from app.db.mappers import listing_from_create, listing_state

    listing_orm = listing_from_create(payload, owner_id=identity.user_id)
    state = listing_state(listing_orm)
"""

from app.core.models import (
    Available,
    ListingCreate,
    ListingState,
    ListingStatus,
    Sold,
)
from app.db.models import Listing, Notification, Purchase


def listing_from_create(payload: ListingCreate, owner_id: str) -> Listing:
    """
    Map a confirmed draft to a new (unsaved) Listing row.

    Args:
        payload: Validated listing fields.
        owner_id: Identity of the seller.

    Returns:
        A Listing ORM instance with status ``available`` and no buyer.
    """
    return Listing(
        owner_id=owner_id,
        title=payload.title,
        description=payload.description,
        price=payload.price,
        category=payload.category.value,
        condition=payload.condition.value,
        image_url=payload.image_url,
        status=ListingStatus.AVAILABLE.value,
        buyer_id=None,
        sold_at=None,
    )


def listing_state(listing: Listing) -> ListingState:
    """
    Derive the tagged state of a listing row.

    Rows with a NULL status predate the status column and are available.
    """
    if listing.status == ListingStatus.SOLD.value:
        return Sold(buyer_id=listing.buyer_id or "", sold_at=listing.sold_at)
    return Available()


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def listing_to_dict(listing: Listing) -> dict:
    """Serialize a listing for API responses."""
    state = listing_state(listing)
    return {
        "id": str(listing.id),
        "owner_id": listing.owner_id,
        "title": listing.title,
        "description": listing.description,
        "price": listing.price,
        "category": listing.category,
        "condition": listing.condition,
        "image_url": listing.image_url,
        "status": ListingStatus.SOLD.value if state.is_sold else ListingStatus.AVAILABLE.value,
        "buyer_id": state.buyer_id if isinstance(state, Sold) else None,
        "sold_at": _iso(state.sold_at) if isinstance(state, Sold) else None,
        "created_at": _iso(listing.created_at),
    }


def purchase_to_dict(purchase: Purchase, listing: Listing | None = None) -> dict:
    """Serialize a purchase, optionally embedding the purchased listing."""
    return {
        "id": str(purchase.id),
        "buyer_id": purchase.buyer_id,
        "listing_id": str(purchase.listing_id),
        "purchased_at": _iso(purchase.purchased_at),
        "listing": listing_to_dict(listing) if listing is not None else None,
    }


def notification_to_dict(notification: Notification) -> dict:
    return {
        "id": str(notification.id),
        "message": notification.message,
        "type": notification.type,
        "read": notification.read,
        "created_at": _iso(notification.created_at),
    }
