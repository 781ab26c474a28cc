"""Notification records for idea lifecycle events.

We only write the in-app record; delivery (email, push) belongs to another
service. Records are written after the triggering transaction commits and a
failure here never reaches the caller.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.database import add_post_commit_hook
from ..models import IdeaStatus, Notification, NotificationType

logger = logging.getLogger(__name__)


STATUS_LABELS = {
    IdeaStatus.SUBMITTED: "Submitted",
    IdeaStatus.UNDER_REVIEW: "Under Review",
    IdeaStatus.SHORTLISTED: "Shortlisted",
    IdeaStatus.IN_PILOT: "In Pilot",
    IdeaStatus.IMPLEMENTED: "Implemented",
    IdeaStatus.CLOSED: "Closed",
}


class NotificationWriter:
    """Writes Notification rows in a session of their own."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from ..core.database import async_session_factory
            session_factory = async_session_factory
        self._session_factory = session_factory

    async def create(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        ref_id: UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Persist one notification. Never raises."""
        try:
            async with self._session_factory() as session:
                session.add(
                    Notification(
                        user_id=user_id,
                        type=type,
                        ref_id=ref_id,
                        title=title,
                        message=message,
                        payload=payload or {},
                    )
                )
                await session.commit()
        except Exception:
            logger.exception(f"Failed to write {type.value} notification for user {user_id}")

    def schedule_status_change(
        self,
        session: AsyncSession,
        recipient_id: UUID,
        idea_id: UUID,
        idea_code: str,
        idea_title: str,
        from_status: IdeaStatus,
        to_status: IdeaStatus,
        note: str | None = None,
    ) -> None:
        """Notify the idea's creator of a status change once ``session`` commits."""
        title = f"{idea_code} is now {STATUS_LABELS[to_status]}"
        message = (
            f'Your idea "{idea_title}" moved from '
            f"{STATUS_LABELS[from_status]} to {STATUS_LABELS[to_status]}."
        )
        if note:
            message += f" Note: {note}"
        payload = {
            "idea_code": idea_code,
            "from_status": from_status.value,
            "to_status": to_status.value,
        }

        async def _hook() -> None:
            await self.create(
                user_id=recipient_id,
                type=NotificationType.IDEA_STATUS_CHANGE,
                title=title,
                message=message,
                ref_id=idea_id,
                payload=payload,
            )

        add_post_commit_hook(session, _hook)
