"""
Status History Log: the append-only record of an idea's lifecycle.

Records are only ever inserted. The mapper guard on IdeaStatusHistory
refuses UPDATE and DELETE of anything already flushed.
"""

import logging
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models import IdeaStatus, IdeaStatusHistory

logger = logging.getLogger(__name__)


class StatusHistoryLog:
    """Appends and reads status history records within the caller's session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(
        self,
        idea_id: UUID,
        from_status: IdeaStatus | None,
        to_status: IdeaStatus,
        actor_id: UUID,
        note: str | None = None,
    ) -> IdeaStatusHistory:
        """Insert one history record. Called by create and transition only."""
        record = IdeaStatusHistory(
            idea_id=idea_id,
            from_status=from_status,
            to_status=to_status,
            changed_by=actor_id,
            note=note,
        )
        self._session.add(record)
        await self._session.flush()

        logger.debug(
            f"History for idea {idea_id}: "
            f"{from_status.value if from_status else None} -> {to_status.value}"
        )
        return record

    async def history(self, idea_id: UUID) -> Sequence[IdeaStatusHistory]:
        """All records for an idea, oldest first (ties broken by insertion order)."""
        result = await self._session.execute(
            select(IdeaStatusHistory)
            .where(IdeaStatusHistory.idea_id == idea_id)
            .options(selectinload(IdeaStatusHistory.changer))
            .order_by(IdeaStatusHistory.changed_at.asc(), IdeaStatusHistory.id.asc())
        )
        return result.scalars().all()
