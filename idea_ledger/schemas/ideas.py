"""Idea, vote and status history schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import Field

from ..models import IdeaStatus, IdeaVisibility
from ..services.idea_store import (
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    EXPECTED_BENEFIT_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
)
from ..services.vote_ledger import VoteOutcome
from .base import (
    CategoryRef,
    LedgerBaseModel,
    PaginatedResponse,
    RequestModel,
    UserBrief,
    UserRef,
)


# =============================================================================
# REQUESTS
# =============================================================================


class IdeaCreateRequest(RequestModel):
    """Request body for submitting an idea."""

    title: str = Field(..., min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    description: str = Field(
        ..., min_length=DESCRIPTION_MIN_LENGTH, max_length=DESCRIPTION_MAX_LENGTH
    )
    category_id: UUID
    expected_benefit: str | None = Field(None, max_length=EXPECTED_BENEFIT_MAX_LENGTH)
    visibility: IdeaVisibility | None = None


class IdeaUpdateRequest(RequestModel):
    """Partial update. Omitted fields are left unchanged."""

    title: str | None = Field(None, min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(
        None, min_length=DESCRIPTION_MIN_LENGTH, max_length=DESCRIPTION_MAX_LENGTH
    )
    expected_benefit: str | None = Field(None, max_length=EXPECTED_BENEFIT_MAX_LENGTH)
    category_id: UUID | None = None
    visibility: IdeaVisibility | None = None
    implementation_notes: str | None = Field(None, max_length=5000)
    due_date: date | None = None


class VoteRequest(RequestModel):
    """+1 to upvote, -1 to downvote. Repeating a vote removes it."""

    vote_type: int


class TransitionRequest(RequestModel):
    """Move an idea to another status."""

    to_status: IdeaStatus
    note: str | None = Field(None, max_length=2000)


# =============================================================================
# RESPONSES
# =============================================================================


class IdeaResponse(LedgerBaseModel):
    """An idea with its creator and category."""

    id: UUID
    code: str
    title: str
    description: str
    status: IdeaStatus
    visibility: IdeaVisibility
    vote_count: int
    comment_count: int
    attachment_count: int
    expected_benefit: str | None = None
    implementation_notes: str | None = None
    due_date: date | None = None
    closed_reason: str | None = None
    closed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None
    creator: UserRef
    category: CategoryRef


class IdeaSummaryResponse(IdeaResponse):
    """Idea as listed, with the caller's vote state."""

    user_vote: int | None = None
    upvotes: int = 0
    downvotes: int = 0
    vote_score: int = 0


class IdeaListResponse(PaginatedResponse):
    items: list[IdeaSummaryResponse]


class VoteEntry(LedgerBaseModel):
    id: UUID
    vote_type: int
    created_at: datetime
    user: UserBrief


class CommentReply(LedgerBaseModel):
    id: UUID
    body: str
    is_moderator_note: bool = False
    is_edited: bool = False
    created_at: datetime
    author: UserBrief


class CommentResponse(CommentReply):
    replies: list[CommentReply] = []


class StatusHistoryResponse(LedgerBaseModel):
    """One status change."""

    id: int
    from_status: IdeaStatus | None = None
    to_status: IdeaStatus
    note: str | None = None
    changed_at: datetime
    changed_by: UserBrief


class OwnerResponse(LedgerBaseModel):
    id: UUID
    role_description: str | None = None
    created_at: datetime
    owner: UserBrief


class AttachmentResponse(LedgerBaseModel):
    id: UUID
    original_name: str
    size: int
    mime_type: str
    created_at: datetime


class IdeaDetailResponse(IdeaSummaryResponse):
    """Everything shown on an idea's page."""

    votes: list[VoteEntry] = []
    comments: list[CommentResponse] = []
    status_history: list[StatusHistoryResponse] = []
    owners: list[OwnerResponse] = []
    attachments: list[AttachmentResponse] = []


class VoteResponse(LedgerBaseModel):
    """Result of casting, removing or flipping a vote."""

    outcome: VoteOutcome
    vote_count: int
    user_vote: int | None = None
    message: str
