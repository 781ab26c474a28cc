"""
Idea API Endpoints.

Domain errors raised by the services are rendered by the application-wide
exception handler, so endpoints only translate between schemas and services.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from ..core.dependencies import ActorDep, SessionDep, get_client_ip
from ..models import IdeaStatus, IdeaStatusHistory
from ..schemas.base import ErrorResponse, UserBrief
from ..schemas.ideas import (
    AttachmentResponse,
    CommentResponse,
    IdeaCreateRequest,
    IdeaDetailResponse,
    IdeaListResponse,
    IdeaResponse,
    IdeaSummaryResponse,
    IdeaUpdateRequest,
    OwnerResponse,
    StatusHistoryResponse,
    TransitionRequest,
    VoteEntry,
    VoteRequest,
    VoteResponse,
)
from ..services.audit import AuditRecorder, RequestMetadata
from ..services.idea_store import (
    IdeaDetail,
    IdeaDraft,
    IdeaFilters,
    IdeaListItem,
    IdeaPatch,
    IdeaStore,
)
from ..services.notifications import NotificationWriter
from ..services.vote_ledger import VoteLedger, VoteOutcome

router = APIRouter(prefix="/ideas", tags=["Ideas"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# =============================================================================
# DEPENDENCIES
# =============================================================================


def get_request_metadata(request: Request) -> RequestMetadata:
    return RequestMetadata(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


def get_audit_recorder() -> AuditRecorder:
    return AuditRecorder()


def get_notification_writer() -> NotificationWriter:
    return NotificationWriter()


RequestMetaDep = Annotated[RequestMetadata, Depends(get_request_metadata)]
AuditRecorderDep = Annotated[AuditRecorder, Depends(get_audit_recorder)]
NotificationWriterDep = Annotated[NotificationWriter, Depends(get_notification_writer)]


def get_idea_store(
    session: SessionDep,
    audit: AuditRecorderDep,
    notifications: NotificationWriterDep,
    request_meta: RequestMetaDep,
) -> IdeaStore:
    return IdeaStore(
        session,
        audit=audit,
        notifications=notifications,
        request_meta=request_meta,
    )


def get_vote_ledger(
    session: SessionDep,
    audit: AuditRecorderDep,
    request_meta: RequestMetaDep,
) -> VoteLedger:
    return VoteLedger(session, audit=audit, request_meta=request_meta)


IdeaStoreDep = Annotated[IdeaStore, Depends(get_idea_store)]
VoteLedgerDep = Annotated[VoteLedger, Depends(get_vote_ledger)]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


VOTE_MESSAGES = {
    VoteOutcome.VOTED: "Vote recorded",
    VoteOutcome.REMOVED: "Vote removed",
    VoteOutcome.CHANGED: "Vote changed",
}


def build_summary_response(item: IdeaListItem) -> IdeaSummaryResponse:
    """Idea plus the caller's vote state."""
    return IdeaSummaryResponse.model_validate(item.idea).model_copy(
        update={
            "user_vote": item.votes.user_vote,
            "upvotes": item.votes.upvotes,
            "downvotes": item.votes.downvotes,
            "vote_score": item.votes.vote_score,
        }
    )


def build_history_response(record: IdeaStatusHistory) -> StatusHistoryResponse:
    return StatusHistoryResponse(
        id=record.id,
        from_status=record.from_status,
        to_status=record.to_status,
        note=record.note,
        changed_at=record.changed_at,
        changed_by=UserBrief.model_validate(record.changer),
    )


def build_detail_response(detail: IdeaDetail) -> IdeaDetailResponse:
    """Full idea page: the idea, vote state, votes, comments, history, owners, files."""
    summary = build_summary_response(IdeaListItem(idea=detail.idea, votes=detail.votes))
    return IdeaDetailResponse(
        **summary.model_dump(),
        votes=[VoteEntry.model_validate(v) for v in detail.idea.votes],
        comments=[CommentResponse.model_validate(c) for c in detail.comments],
        status_history=[build_history_response(h) for h in detail.history],
        owners=[OwnerResponse.model_validate(o) for o in detail.owners],
        attachments=[AttachmentResponse.model_validate(a) for a in detail.attachments],
    )


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.post(
    "",
    response_model=IdeaResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Submit a new idea",
    description="""
    Submit an improvement idea.

    This creates:
    - An Idea with a unique code (VOE-xxxxxx-XXX) in SUBMITTED status
    - The first status history record (none -> submitted)
    - An audit log entry, written after commit

    The category must exist and be active.
    """,
)
async def create_idea(
    request: IdeaCreateRequest,
    actor: ActorDep,
    store: IdeaStoreDep,
):
    """Submit a new idea."""
    idea = await store.create(
        actor,
        IdeaDraft(
            title=request.title,
            description=request.description,
            category_id=request.category_id,
            expected_benefit=request.expected_benefit,
            visibility=request.visibility,
        ),
    )
    return IdeaResponse.model_validate(idea)


@router.get(
    "",
    response_model=IdeaListResponse,
    responses=ERROR_RESPONSES,
    summary="List ideas",
    description="""
    List the ideas visible to the caller, with the caller's vote state.

    Query parameters:
    - status, category_id, department_id: exact filters
    - q: case-insensitive search in title and description
    - my_ideas: only ideas the caller submitted
    - sort_by: created_at, updated_at, vote_count, comment_count, title, status
    - sort_order: asc or desc (default: desc)
    - page, page_size (default: 10, max: 100)
    """,
)
async def list_ideas(
    actor: ActorDep,
    store: IdeaStoreDep,
    status: IdeaStatus | None = Query(default=None, description="Filter by status"),
    category_id: UUID | None = Query(default=None, description="Filter by category"),
    department_id: UUID | None = Query(default=None, description="Filter by the creator's department"),
    q: str | None = Query(default=None, max_length=200, description="Search title and description"),
    my_ideas: bool = Query(default=False, description="Only my ideas"),
    sort_by: str = Query(default="created_at", description="Sort field"),
    sort_order: str = Query(default="desc", description="asc or desc"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int | None = Query(default=None, ge=1, le=100, description="Items per page"),
):
    """List ideas with filters and pagination."""
    result = await store.list(
        actor,
        IdeaFilters(
            status=status,
            category_id=category_id,
            department_id=department_id,
            q=q,
            my_ideas=my_ideas,
            sort_by=sort_by,
            sort_order=sort_order.lower(),
            page=page,
            page_size=page_size,
        ),
    )
    return IdeaListResponse(
        items=[build_summary_response(item) for item in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.get(
    "/{idea_id}",
    response_model=IdeaDetailResponse,
    responses=ERROR_RESPONSES,
    summary="Get an idea",
)
async def get_idea(
    idea_id: UUID,
    actor: ActorDep,
    store: IdeaStoreDep,
):
    """Get an idea with its votes, comments, status history, owners and attachments."""
    detail = await store.get(actor, idea_id)
    return build_detail_response(detail)


@router.put(
    "/{idea_id}",
    response_model=IdeaResponse,
    responses=ERROR_RESPONSES,
    summary="Edit an idea",
    description="""
    Partially update an idea. Omitted fields are left unchanged.

    Allowed for the creator, moderators and admins. Status is changed
    through the transition endpoint, never here.
    """,
)
async def update_idea(
    idea_id: UUID,
    request: IdeaUpdateRequest,
    actor: ActorDep,
    store: IdeaStoreDep,
):
    """Edit an idea."""
    idea = await store.update(actor, idea_id, IdeaPatch(**request.model_dump(exclude_unset=True)))
    return IdeaResponse.model_validate(idea)


@router.post(
    "/{idea_id}/vote",
    response_model=VoteResponse,
    responses=ERROR_RESPONSES,
    summary="Vote on an idea",
    description="""
    Toggle the caller's vote on an idea.

    - No vote yet: the vote is recorded
    - Same vote again: the vote is removed
    - Opposite vote: the vote is changed

    Creators cannot vote on their own ideas.
    """,
)
async def vote_idea(
    idea_id: UUID,
    request: VoteRequest,
    actor: ActorDep,
    ledger: VoteLedgerDep,
):
    """Vote on an idea."""
    result = await ledger.vote(actor, idea_id, request.vote_type)
    return VoteResponse(
        outcome=result.outcome,
        vote_count=result.vote_count,
        user_vote=result.user_vote,
        message=VOTE_MESSAGES[result.outcome],
    )


@router.post(
    "/{idea_id}/transition",
    response_model=IdeaResponse,
    responses=ERROR_RESPONSES,
    summary="Change an idea's status",
    description="""
    Move an idea to another status and record the change in its history.

    Allowed for the creator, moderators and admins. Closing an idea stores
    the note as the closing reason; reopening clears it. The creator is
    notified when someone else makes the change.
    """,
)
async def transition_idea(
    idea_id: UUID,
    request: TransitionRequest,
    actor: ActorDep,
    store: IdeaStoreDep,
):
    """Change an idea's status."""
    idea = await store.transition(actor, idea_id, request.to_status, request.note)
    return IdeaResponse.model_validate(idea)


@router.get(
    "/{idea_id}/history",
    response_model=list[StatusHistoryResponse],
    responses=ERROR_RESPONSES,
    summary="Get an idea's status history",
)
async def get_idea_history(
    idea_id: UUID,
    actor: ActorDep,
    store: IdeaStoreDep,
):
    """Status history, oldest first."""
    records = await store.history(actor, idea_id)
    return [build_history_response(r) for r in records]
