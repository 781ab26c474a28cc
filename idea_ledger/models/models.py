"""SQLAlchemy ORM Models for the Idea Ledger.

Directory tables (departments, users, idea_categories) are owned by other
services and only read here. Ideas, their status history and votes are the
core of this service. Comments, owners and attachments are read for display.
Audit logs and notifications are written as side effects only.
"""

from datetime import date, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDMixin, utcnow


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


# =============================================================================
# ENUMS
# =============================================================================


class UserRole(str, PyEnum):
    EMPLOYEE = "employee"
    MODERATOR = "moderator"
    EXECUTIVE = "executive"
    ADMIN = "admin"


class IdeaStatus(str, PyEnum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    SHORTLISTED = "shortlisted"
    IN_PILOT = "in_pilot"
    IMPLEMENTED = "implemented"
    CLOSED = "closed"


class IdeaVisibility(str, PyEnum):
    PUBLIC = "public"
    DEPARTMENT = "department"
    PRIVATE = "private"


class NotificationType(str, PyEnum):
    IDEA_STATUS_CHANGE = "idea_status_change"
    NEW_COMMENT = "new_comment"
    IDEA_ASSIGNED = "idea_assigned"
    VOTE_RECEIVED = "vote_received"
    SYSTEM_ANNOUNCEMENT = "system_announcement"


# Shared so PostgreSQL creates the type once
idea_status_enum = Enum(IdeaStatus, name="idea_status", values_callable=_enum_values)

# Statuses that count as "action taken" for the idea-to-action metric
ACTION_STATUSES = (IdeaStatus.IN_PILOT, IdeaStatus.IMPLEMENTED)


# =============================================================================
# DIRECTORY MODELS (read-only)
# =============================================================================


class Department(Base, UUIDMixin, TimestampMixin):
    """Organizational department."""

    __tablename__ = "departments"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    code: Mapped[str | None] = mapped_column(String(20), unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    members: Mapped[list["User"]] = relationship(back_populates="department")


class User(Base, UUIDMixin, TimestampMixin):
    """Employee account."""

    __tablename__ = "users"

    employee_no: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=_enum_values),
        default=UserRole.EMPLOYEE,
        nullable=False,
    )
    department_id: Mapped[UUID | None] = mapped_column(ForeignKey("departments.id"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    department: Mapped["Department | None"] = relationship(back_populates="members")

    __table_args__ = (
        Index("idx_users_department", "department_id"),
    )


class IdeaCategory(Base, UUIDMixin, TimestampMixin):
    """Category an idea is filed under."""

    __tablename__ = "idea_categories"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    color: Mapped[str] = mapped_column(String(7), default="#1976d2", nullable=False)
    icon: Mapped[str | None] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


# =============================================================================
# IDEA MODELS (Core)
# =============================================================================


class Idea(Base, UUIDMixin, TimestampMixin):
    """An improvement idea. Never deleted; closed ideas keep their history."""

    __tablename__ = "ideas"

    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("idea_categories.id"), nullable=False
    )
    creator_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    status: Mapped[IdeaStatus] = mapped_column(
        idea_status_enum,
        default=IdeaStatus.SUBMITTED,
        nullable=False,
    )
    visibility: Mapped[IdeaVisibility] = mapped_column(
        Enum(IdeaVisibility, name="idea_visibility", values_callable=_enum_values),
        default=IdeaVisibility.PUBLIC,
        nullable=False,
    )

    # Summary counters, maintained by the vote ledger and collaborators
    vote_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    attachment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    expected_benefit: Mapped[str | None] = mapped_column(Text)
    implementation_notes: Mapped[str | None] = mapped_column(Text)
    due_date: Mapped[date | None] = mapped_column(Date)
    closed_reason: Mapped[str | None] = mapped_column(Text)
    closed_at: Mapped[datetime | None] = mapped_column()

    # Relationships
    creator: Mapped["User"] = relationship(foreign_keys=[creator_id])
    category: Mapped["IdeaCategory"] = relationship()
    votes: Mapped[list["IdeaVote"]] = relationship(
        back_populates="idea", order_by="IdeaVote.created_at"
    )
    comments: Mapped[list["IdeaComment"]] = relationship(
        back_populates="idea", order_by="IdeaComment.created_at"
    )
    status_history: Mapped[list["IdeaStatusHistory"]] = relationship(
        back_populates="idea",
        order_by="[IdeaStatusHistory.changed_at, IdeaStatusHistory.id]",
    )
    owners: Mapped[list["IdeaOwner"]] = relationship(back_populates="idea")
    attachments: Mapped[list["Attachment"]] = relationship(back_populates="idea")

    __table_args__ = (
        Index("idx_ideas_status", "status"),
        Index("idx_ideas_category", "category_id"),
        Index("idx_ideas_creator", "creator_id"),
        Index("idx_ideas_created_at", "created_at"),
        Index("idx_ideas_vote_count", "vote_count"),
    )


class IdeaStatusHistory(Base):
    """Append-only record of an idea's status changes.

    The integer key keeps insertion order, which breaks ties between
    records sharing a changed_at timestamp.
    """

    __tablename__ = "idea_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idea_id: Mapped[UUID] = mapped_column(ForeignKey("ideas.id"), nullable=False)
    from_status: Mapped[IdeaStatus | None] = mapped_column(
        idea_status_enum,
        nullable=True,
    )
    to_status: Mapped[IdeaStatus] = mapped_column(
        idea_status_enum,
        nullable=False,
    )
    changed_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    changed_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    idea: Mapped["Idea"] = relationship(back_populates="status_history")
    changer: Mapped["User"] = relationship(foreign_keys=[changed_by])

    __table_args__ = (
        Index("idx_status_history_idea", "idea_id", "changed_at"),
        Index("idx_status_history_changed_at", "changed_at"),
    )


class HistoryImmutableError(Exception):
    """Raised when a persisted status history record is modified or deleted."""


@event.listens_for(IdeaStatusHistory, "before_update")
def _refuse_history_update(mapper, connection, target):
    raise HistoryImmutableError(
        f"Status history record {target.id} is append-only and cannot be updated"
    )


@event.listens_for(IdeaStatusHistory, "before_delete")
def _refuse_history_delete(mapper, connection, target):
    raise HistoryImmutableError(
        f"Status history record {target.id} is append-only and cannot be deleted"
    )


class IdeaVote(Base, UUIDMixin, TimestampMixin):
    """One user's +1/-1 vote on an idea."""

    __tablename__ = "idea_votes"

    idea_id: Mapped[UUID] = mapped_column(
        ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    vote_type: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    idea: Mapped["Idea"] = relationship(back_populates="votes")
    user: Mapped["User"] = relationship()

    __table_args__ = (
        # One vote per user per idea
        UniqueConstraint("idea_id", "user_id"),
        CheckConstraint("vote_type IN (1, -1)", name="vote_type_valid"),
        Index("idx_idea_votes_user", "user_id"),
        Index("idx_idea_votes_created_at", "created_at"),
    )


# =============================================================================
# DISPLAY-ONLY MODELS
# =============================================================================


class IdeaComment(Base, UUIDMixin, TimestampMixin):
    """Comment on an idea, threaded one level through parent_comment_id."""

    __tablename__ = "idea_comments"

    idea_id: Mapped[UUID] = mapped_column(ForeignKey("ideas.id"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    parent_comment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("idea_comments.id")
    )
    is_moderator_note: Mapped[bool] = mapped_column(Boolean, default=False)
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False)
    edited_at: Mapped[datetime | None] = mapped_column()

    idea: Mapped["Idea"] = relationship(back_populates="comments")
    author: Mapped["User"] = relationship(foreign_keys=[user_id])
    parent: Mapped["IdeaComment | None"] = relationship(
        back_populates="replies", remote_side="IdeaComment.id"
    )
    replies: Mapped[list["IdeaComment"]] = relationship(
        back_populates="parent", order_by="IdeaComment.created_at"
    )

    __table_args__ = (
        Index("idx_idea_comments_idea", "idea_id"),
    )


class IdeaOwner(Base, UUIDMixin, TimestampMixin):
    """User assigned to drive an idea."""

    __tablename__ = "idea_owners"

    idea_id: Mapped[UUID] = mapped_column(ForeignKey("ideas.id"), nullable=False)
    owner_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    assigned_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    role_description: Mapped[str | None] = mapped_column(String(200))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    idea: Mapped["Idea"] = relationship(back_populates="owners")
    owner: Mapped["User"] = relationship(foreign_keys=[owner_user_id])


class Attachment(Base, UUIDMixin, TimestampMixin):
    """File attached to an idea. Storage lives elsewhere."""

    __tablename__ = "attachments"

    idea_id: Mapped[UUID] = mapped_column(ForeignKey("ideas.id"), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    uploaded_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column()

    idea: Mapped["Idea"] = relationship(back_populates="attachments")
    uploader: Mapped["User"] = relationship(foreign_keys=[uploaded_by])


# =============================================================================
# SIDE-EFFECT MODELS
# =============================================================================


class AuditLog(Base, UUIDMixin):
    """Append-only audit trail, written after the business transaction commits."""

    __tablename__ = "audit_logs"

    actor_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64))
    detail: Mapped[dict[str, Any]] = mapped_column(default=dict)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_audit_logs_actor", "actor_id", "created_at"),
        Index("idx_audit_logs_entity", "entity", "entity_id"),
    )


class Notification(Base, UUIDMixin, TimestampMixin):
    """In-app notification record. Delivery is handled elsewhere."""

    __tablename__ = "notifications"

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, name="notification_type", values_callable=_enum_values),
        nullable=False,
    )
    ref_id: Mapped[UUID | None] = mapped_column()
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(default=dict)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        Index("idx_notifications_user", "user_id", "is_read"),
    )
