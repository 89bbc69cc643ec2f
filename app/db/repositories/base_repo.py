"""
Shared plumbing for the async repositories.

Rows are mutated elsewhere through Core UPDATE statements (the sold
transition, bulk read flags), so reads that must reflect the database
rather than the session's identity map go through ``populate_existing``.
"""

import uuid
from typing import Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Session-bound repository for one model.

    ``owner_field`` names the column holding the owning identity
    (seller, buyer, recipient); ``select_owned`` scopes queries to it.
    """

    owner_field: str = ""

    def __init__(self, session: AsyncSession, model: type[ModelType]):
        self.session = session
        self.model = model

    async def get_by_id(
        self, record_id: uuid.UUID, refresh: bool = False
    ) -> ModelType | None:
        """
        Load one row by primary key.

        Args:
            refresh: Re-read column values even when the row is already in
                the identity map.
        """
        return await self.session.get(self.model, record_id, populate_existing=refresh)

    def select_owned(self, owner_id: str) -> Select:
        """``SELECT model WHERE <owner_field> = owner_id``."""
        return select(self.model).where(getattr(self.model, self.owner_field) == owner_id)

    async def fetch_page(
        self,
        stmt: Select,
        order_by,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ModelType]:
        """Run ``stmt`` newest-first by ``order_by`` and return fresh instances."""
        stmt = (
            stmt.order_by(order_by.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add(self, instance: ModelType) -> ModelType:
        """Add a built instance and flush so server-side values are populated."""
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def create(self, **values) -> ModelType:
        return await self.add(self.model(**values))

    async def count_owned(self, owner_id: str) -> int:
        """Rows whose ``owner_field`` equals ``owner_id``."""
        column = getattr(self.model, self.owner_field)
        stmt = select(func.count()).select_from(self.model).where(column == owner_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()
