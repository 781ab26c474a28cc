"""Read-only lookups of categories and departments."""

from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Department, IdeaCategory


class Directory:
    """Category and department records, administered elsewhere."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def active_categories(self) -> Sequence[IdeaCategory]:
        result = await self._session.execute(
            select(IdeaCategory)
            .where(IdeaCategory.is_active.is_(True))
            .order_by(IdeaCategory.name.asc())
        )
        return result.scalars().all()

    async def active_departments(self) -> Sequence[Department]:
        result = await self._session.execute(
            select(Department)
            .where(Department.is_active.is_(True))
            .order_by(Department.name.asc())
        )
        return result.scalars().all()

    async def get_active_category(self, category_id: UUID) -> IdeaCategory | None:
        """Return the category if it exists and is active, else None."""
        category = await self._session.get(IdeaCategory, category_id)
        if category is None or not category.is_active:
            return None
        return category
