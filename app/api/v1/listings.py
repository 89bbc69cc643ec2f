"""
Marketplace listing API endpoints.

Provides:
- POST   /api/v1/listings                 — Publish a confirmed draft
- GET    /api/v1/listings                 — Browse available listings
- GET    /api/v1/listings/by-category     — Browse, grouped by category
- GET    /api/v1/listings/mine            — The caller's own listings
- DELETE /api/v1/listings/{id}            — Delete an unsold listing
- POST   /api/v1/listings/{id}/buy        — Buy a listing

Browsing is open to anonymous callers; everything else requires a
bearer token from the identity provider.
"""

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import Category, ListingCreate
from app.core.session import Identity, SessionContext
from app.db.database import get_db
from app.db.mappers import listing_to_dict
from app.db.repositories.listing_repo import ListingRepository
from app.db.repositories.purchase_repo import PurchaseRepository
from app.middleware.auth_middleware import get_current_identity, get_session_context
from app.services.purchase_service import PurchaseService

router = APIRouter(prefix="/listings", tags=["Listings"])


async def _purchased_ids(db: AsyncSession, ctx: SessionContext) -> set[str]:
    if not ctx.is_authenticated:
        return set()
    return await PurchaseRepository(db).listing_ids_for_buyer(ctx.identity.user_id)


# ─── Endpoints ───────────────────────────────────────────────


@router.post("", status_code=status.HTTP_201_CREATED, summary="Publish a listing")
async def create_listing(
    payload: ListingCreate,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Persist a confirmed draft as an available listing owned by the caller."""
    listing = await ListingRepository(db).create_from_draft(payload, owner_id=identity.user_id)
    return listing_to_dict(listing)


@router.get("", summary="Browse available listings")
async def browse_listings(
    search: str | None = Query(default=None, max_length=200, description="Title/description substring"),
    category: Category | None = Query(default=None, description="Restrict to one category"),
    limit: int = Query(default=100, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    ctx: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Available listings, newest first. Sold listings never appear.

    ``total`` counts every match, not just this page.
    """
    repo = ListingRepository(db)
    category_value = category.value if category else None
    listings = await repo.list_available(
        search=search, category=category_value, limit=limit, offset=offset
    )
    purchased = await _purchased_ids(db, ctx)
    return {
        "listings": [
            {**listing_to_dict(lst), "purchased": str(lst.id) in purchased}
            for lst in listings
        ],
        "total": await repo.count_available(search=search, category=category_value),
    }


@router.get("/by-category", summary="Browse available listings grouped by category")
async def browse_by_category(
    search: str | None = Query(default=None, max_length=200),
    limit: int = Query(default=200, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    ctx: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db),
):
    """Same filter and paging as the browse list; empty categories are omitted."""
    repo = ListingRepository(db)
    listings = await repo.list_available(search=search, limit=limit, offset=offset)
    purchased = await _purchased_ids(db, ctx)
    grouped = repo.group_by_category(listings)
    return {
        "categories": {
            category: [
                {**listing_to_dict(lst), "purchased": str(lst.id) in purchased}
                for lst in items
            ]
            for category, items in grouped.items()
        },
        "total": await repo.count_available(search=search),
    }


@router.get("/mine", summary="List my listings")
async def my_listings(
    limit: int = Query(default=100, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """All of the caller's listings, sold ones included, newest first."""
    repo = ListingRepository(db)
    listings = await repo.list_for_owner(identity.user_id, limit=limit, offset=offset)
    return {
        "listings": [listing_to_dict(lst) for lst in listings],
        "total": await repo.count_owned(identity.user_id),
    }


@router.delete(
    "/{listing_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a listing",
)
async def delete_listing(
    listing_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Only the owner may delete, and only while nobody has bought the item."""
    await ListingRepository(db).delete_owned(listing_id, requester_id=identity.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{listing_id}/buy", summary="Buy a listing")
async def buy_listing(
    listing_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Buy an available listing.

    Returns 409 when someone else already bought it.
    """
    receipt = await PurchaseService(db).buy(listing_id, ctx)
    return receipt.model_dump(mode="json")
