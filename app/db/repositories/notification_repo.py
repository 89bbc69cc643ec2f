"""
Notification-specific database repository.
"""

import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Notification
from app.db.repositories.base_repo import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Repository for per-recipient notifications and read state."""

    owner_field = "recipient_id"

    def __init__(self, session: AsyncSession):
        super().__init__(session, Notification)

    async def find_by_recipient(
        self,
        recipient_id: str,
        unread_only: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Notification]:
        """Notifications for one recipient, newest first."""
        stmt = self.select_owned(recipient_id)
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        return await self.fetch_page(stmt, Notification.created_at, limit=limit, offset=offset)

    async def count_unread(self, recipient_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.read.is_(False))
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def find_for_recipient(
        self, notification_id: uuid.UUID, recipient_id: str
    ) -> Notification | None:
        """A single notification, only if it belongs to the recipient."""
        stmt = (
            self.select_owned(recipient_id)
            .where(Notification.id == notification_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_all_read(self, recipient_id: str) -> int:
        """
        Set ``read`` on every unread notification of the recipient.

        Returns:
            Number of notifications that changed (0 when all were already read).
        """
        stmt = (
            update(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.read.is_(False))
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount
