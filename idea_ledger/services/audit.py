"""
Audit Recorder: append-only audit trail for idea mutations.

Entries are written after the business transaction commits, in a session of
their own, so an audit failure can never roll back or fail a mutation. The
failure is logged and dropped.
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import get_settings
from ..core.database import add_post_commit_hook
from ..models import AuditLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestMetadata:
    """Client details captured from the HTTP request for audit records."""
    ip_address: str | None = None
    user_agent: str | None = None


class AuditRecorder:
    """Writes AuditLog rows, either immediately or as a post-commit hook."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        enabled: bool | None = None,
    ):
        if session_factory is None:
            from ..core.database import async_session_factory
            session_factory = async_session_factory
        self._session_factory = session_factory
        self._enabled = get_settings().audit_enabled if enabled is None else enabled

    async def record(
        self,
        actor_id: UUID | None,
        action: str,
        entity: str,
        entity_id: UUID | str | None,
        detail: dict[str, Any] | None = None,
        request_meta: RequestMetadata | None = None,
    ) -> None:
        """Persist one audit entry in its own transaction. Never raises."""
        if not self._enabled:
            return

        meta = request_meta or RequestMetadata()
        try:
            async with self._session_factory() as session:
                session.add(
                    AuditLog(
                        actor_id=actor_id,
                        action=action,
                        entity=entity,
                        entity_id=str(entity_id) if entity_id is not None else None,
                        detail=detail or {},
                        ip_address=meta.ip_address,
                        user_agent=meta.user_agent,
                    )
                )
                await session.commit()
        except Exception:
            logger.exception(f"Failed to record audit entry {action}/{entity} {entity_id}")

    def schedule(
        self,
        session: AsyncSession,
        actor_id: UUID | None,
        action: str,
        entity: str,
        entity_id: UUID | str | None,
        detail: dict[str, Any] | None = None,
        request_meta: RequestMetadata | None = None,
    ) -> None:
        """Record the entry once ``session`` commits. Dropped on rollback."""
        if not self._enabled:
            return

        async def _hook() -> None:
            await self.record(actor_id, action, entity, entity_id, detail, request_meta)

        add_post_commit_hook(session, _hook)
