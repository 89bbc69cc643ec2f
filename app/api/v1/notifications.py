"""
Notification API endpoints.

Provides:
- GET  /api/v1/notifications           — List my notifications
- POST /api/v1/notifications/{id}/read — Mark one as read
- POST /api/v1/notifications/read-all  — Mark all as read
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.session import Identity
from app.db.database import get_db
from app.db.mappers import notification_to_dict
from app.middleware.auth_middleware import get_current_identity
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", summary="List my notifications")
async def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    service = NotificationService(db)
    notifications = await service.list_for(
        identity.user_id, unread_only=unread_only, limit=limit, offset=offset
    )
    return {
        "notifications": [notification_to_dict(n) for n in notifications],
        "unread": await service.unread_count(identity.user_id),
    }


@router.post("/read-all", summary="Mark all notifications as read")
async def mark_all_read(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    changed = await NotificationService(db).mark_all_read(identity.user_id)
    return {"updated": changed}


@router.post("/{notification_id}/read", summary="Mark a notification as read")
async def mark_read(
    notification_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService(db).mark_read(notification_id, identity.user_id)
    return notification_to_dict(notification)
