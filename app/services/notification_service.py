"""
Notification sink.

Per-recipient, append-only messages whose only mutable attribute is the
``read`` flag.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotificationNotFoundError
from app.core.models import NotificationType
from app.db.models import Notification
from app.db.repositories.notification_repo import NotificationRepository

logger = logging.getLogger(__name__)


def purchase_message(title: str, buyer_contact: str) -> str:
    return f'Your item "{title}" has been purchased by {buyer_contact}!'


class NotificationService:
    """Create, list and acknowledge notifications."""

    def __init__(self, session: AsyncSession):
        self._repo = NotificationRepository(session)

    async def append(
        self,
        recipient_id: str,
        message: str,
        type: NotificationType = NotificationType.SYSTEM,
    ) -> Notification:
        notification = await self._repo.create(
            recipient_id=recipient_id,
            message=message,
            type=NotificationType(type).value,
            read=False,
        )
        logger.info(f"Notification {notification.id} ({notification.type}) for {recipient_id}")
        return notification

    async def list_for(
        self,
        recipient_id: str,
        unread_only: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Notification]:
        """Newest first."""
        return await self._repo.find_by_recipient(
            recipient_id, unread_only=unread_only, limit=limit, offset=offset
        )

    async def unread_count(self, recipient_id: str) -> int:
        return await self._repo.count_unread(recipient_id)

    async def mark_read(
        self, notification_id: uuid.UUID, recipient_id: str
    ) -> Notification:
        """
        Mark one notification as read. Marking it again is a no-op.

        Raises:
            NotificationNotFoundError: no such notification for this recipient.
        """
        notification = await self._repo.find_for_recipient(notification_id, recipient_id)
        if notification is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")

        if not notification.read:
            notification.read = True
            await self._repo.session.flush()
        return notification

    async def mark_all_read(self, recipient_id: str) -> int:
        """Mark every notification of the recipient as read; returns how many changed."""
        changed = await self._repo.mark_all_read(recipient_id)
        if changed:
            logger.info(f"Marked {changed} notifications read for {recipient_id}")
        return changed
