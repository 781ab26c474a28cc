"""SQLAlchemy ORM Models for the Idea Ledger."""

from .base import Base, TimestampMixin, UUIDMixin, utcnow
from .models import (
    # Enums
    ACTION_STATUSES,
    IdeaStatus,
    IdeaVisibility,
    NotificationType,
    UserRole,
    # Directory
    Department,
    IdeaCategory,
    User,
    # Ideas
    HistoryImmutableError,
    Idea,
    IdeaStatusHistory,
    IdeaVote,
    # Display-only
    Attachment,
    IdeaComment,
    IdeaOwner,
    # Side effects
    AuditLog,
    Notification,
)

__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "utcnow",
    # Enums
    "ACTION_STATUSES",
    "IdeaStatus",
    "IdeaVisibility",
    "NotificationType",
    "UserRole",
    # Directory
    "Department",
    "IdeaCategory",
    "User",
    # Ideas
    "HistoryImmutableError",
    "Idea",
    "IdeaStatusHistory",
    "IdeaVote",
    # Display-only
    "Attachment",
    "IdeaComment",
    "IdeaOwner",
    # Side effects
    "AuditLog",
    "Notification",
]
