"""
Purchase history endpoint.

Provides:
- GET /api/v1/purchases — The caller's purchases with listing details
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.session import SessionContext
from app.db.database import get_db
from app.db.mappers import purchase_to_dict
from app.db.repositories.purchase_repo import PurchaseRepository
from app.middleware.auth_middleware import get_session_context
from app.services.purchase_service import PurchaseService

router = APIRouter(prefix="/purchases", tags=["Purchases"])


@router.get("", summary="List my purchases")
async def list_purchases(
    limit: int = Query(default=100, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    ctx: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db),
):
    """Most recent purchase first; ``total`` counts all of the caller's purchases."""
    rows = await PurchaseService(db).purchases_for(ctx, limit=limit, offset=offset)
    return {
        "purchases": [purchase_to_dict(purchase, listing) for purchase, listing in rows],
        "total": await PurchaseRepository(db).count_owned(ctx.identity.user_id),
    }
