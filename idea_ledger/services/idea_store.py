"""
Idea Store: create, read, list, edit and transition ideas.

Every read goes through the visibility predicate. Every lifecycle change
appends to the status history in the same transaction. Audit entries and
notifications are scheduled to run after the transaction commits.
"""

import logging
import math
import secrets
import string
import time
from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Callable, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import get_settings
from ..models import (
    Attachment,
    Idea,
    IdeaComment,
    IdeaOwner,
    IdeaStatus,
    IdeaStatusHistory,
    IdeaVisibility,
    IdeaVote,
    User,
    utcnow,
)
from .audit import AuditRecorder, RequestMetadata
from .directory import Directory
from .errors import (
    InvalidCategoryError,
    NotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
    ValidationFailedError,
    is_unique_violation,
)
from .notifications import NotificationWriter
from .status_history import StatusHistoryLog
from .visibility import Actor, can_edit, load_visible_idea, visibility_predicate
from .vote_ledger import VoteLedger, VoteSummary

logger = logging.getLogger(__name__)


# Input limits shared with the request schemas
TITLE_MIN_LENGTH = 5
TITLE_MAX_LENGTH = 200
DESCRIPTION_MIN_LENGTH = 20
DESCRIPTION_MAX_LENGTH = 5000
EXPECTED_BENEFIT_MAX_LENGTH = 2000

SORT_FIELDS = {
    "created_at": Idea.created_at,
    "updated_at": Idea.updated_at,
    "vote_count": Idea.vote_count,
    "comment_count": Idea.comment_count,
    "title": Idea.title,
    "status": Idea.status,
}
SORT_ORDERS = ("asc", "desc")

_CODE_ALPHABET = string.digits + string.ascii_uppercase


def generate_idea_code(prefix: str) -> str:
    """PREFIX-<last 6 digits of epoch millis>-<3 random base-36 chars>."""
    millis = str(int(time.time() * 1000))[-6:]
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(3))
    return f"{prefix}-{millis}-{suffix}"


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class IdeaDraft:
    """Input for submitting a new idea."""
    title: str
    description: str
    category_id: UUID
    expected_benefit: str | None = None
    visibility: IdeaVisibility | None = None


@dataclass
class IdeaPatch:
    """Partial update. ``None`` means the field was not provided."""
    title: str | None = None
    description: str | None = None
    expected_benefit: str | None = None
    category_id: UUID | None = None
    visibility: IdeaVisibility | None = None
    implementation_notes: str | None = None
    due_date: date | None = None


@dataclass
class IdeaFilters:
    """Filters, ordering and paging for listing ideas."""
    status: IdeaStatus | None = None
    category_id: UUID | None = None
    department_id: UUID | None = None
    q: str | None = None
    my_ideas: bool = False
    sort_by: str = "created_at"
    sort_order: str = "desc"
    page: int = 1
    page_size: int | None = None


@dataclass
class Page:
    items: list[Any]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


@dataclass
class IdeaListItem:
    idea: Idea
    votes: VoteSummary


@dataclass
class IdeaDetail:
    """An idea with everything needed to render its page."""
    idea: Idea
    votes: VoteSummary
    comments: list[IdeaComment] = field(default_factory=list)
    owners: list[IdeaOwner] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    history: list[IdeaStatusHistory] = field(default_factory=list)


# =============================================================================
# IDEA STORE
# =============================================================================


class IdeaStore:
    """
    Persistence and lifecycle rules for ideas.

    Guarantees:
    1. Every idea has at least one history record, starting with (None -> submitted)
    2. An idea and its first history record are written together or not at all
    3. Idea codes are unique; collisions are retried with a fresh code
    4. Status only changes through transition(), and every change is recorded
    """

    def __init__(
        self,
        session: AsyncSession,
        audit: AuditRecorder | None = None,
        notifications: NotificationWriter | None = None,
        request_meta: RequestMetadata | None = None,
        code_generator: Callable[[str], str] = generate_idea_code,
    ):
        self._session = session
        self._audit = audit or AuditRecorder()
        self._notifications = notifications or NotificationWriter()
        self._request_meta = request_meta
        self._code_generator = code_generator
        self._history = StatusHistoryLog(session)
        self._directory = Directory(session)
        self._votes = VoteLedger(session, audit=self._audit, request_meta=request_meta)
        self._settings = get_settings()

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create(self, actor: Actor, draft: IdeaDraft) -> Idea:
        """
        Submit a new idea.

        Flow:
        1. Validate text fields and the category (must exist and be active)
        2. Insert the idea under a fresh code, retrying on code collisions
        3. Append the (None -> submitted) history record
        4. Schedule the audit entry

        Steps 2 and 3 share one SAVEPOINT: either both rows exist or neither does.
        """
        # Step 1
        _validate_text(
            title=draft.title,
            description=draft.description,
            expected_benefit=draft.expected_benefit,
        )
        await self._require_active_category(draft.category_id)

        # Steps 2-3
        async with self._session.begin_nested():
            idea = await self._insert_with_unique_code(actor, draft)
            await self._history.append(
                idea_id=idea.id,
                from_status=None,
                to_status=IdeaStatus.SUBMITTED,
                actor_id=actor.id,
                note="Idea submitted",
            )

        logger.info(f"Idea {idea.code} created by {actor.id}")

        # Step 4
        self._audit.schedule(
            self._session,
            actor_id=actor.id,
            action="create",
            entity="idea",
            entity_id=idea.id,
            detail={
                "code": idea.code,
                "title": idea.title,
                "category_id": str(idea.category_id),
                "visibility": idea.visibility.value,
            },
            request_meta=self._request_meta,
        )
        return await self._reload(idea.id)

    async def _insert_with_unique_code(self, actor: Actor, draft: IdeaDraft) -> Idea:
        max_attempts = self._settings.idea_code_max_attempts
        for attempt in range(1, max_attempts + 1):
            code = self._code_generator(self._settings.idea_code_prefix)
            idea = Idea(
                code=code,
                title=draft.title.strip(),
                description=draft.description.strip(),
                category_id=draft.category_id,
                creator_id=actor.id,
                status=IdeaStatus.SUBMITTED,
                visibility=draft.visibility or IdeaVisibility.PUBLIC,
                expected_benefit=draft.expected_benefit,
                vote_count=0,
                comment_count=0,
                attachment_count=0,
            )
            try:
                async with self._session.begin_nested():
                    self._session.add(idea)
                    await self._session.flush()
                return idea
            except IntegrityError as e:
                if not is_unique_violation(e):
                    logger.error(f"Idea insert by {actor.id} violated a constraint: {e.orig}")
                    raise ValidationFailedError(
                        "Idea references a user or category that does not exist"
                    )
                logger.warning(
                    f"Idea code {code} rejected (attempt {attempt}/{max_attempts}): {e.orig}"
                )

        raise StoreUnavailableError("Could not allocate a unique idea code, please retry")

    # =========================================================================
    # READ
    # =========================================================================

    async def get(self, actor: Actor, idea_id: UUID) -> IdeaDetail:
        """Full detail of one idea, if the actor may see it."""
        # The creator usually reappears as a changer, voter or author. The
        # load refreshes existing objects, so every User path must bring its
        # department or the creator's department is expired again.
        idea = await load_visible_idea(
            self._session,
            actor,
            idea_id,
            options=(
                selectinload(Idea.creator).selectinload(User.department),
                selectinload(Idea.category),
                selectinload(Idea.votes).selectinload(IdeaVote.user).selectinload(User.department),
                selectinload(Idea.comments)
                .selectinload(IdeaComment.author)
                .selectinload(User.department),
                selectinload(Idea.comments)
                .selectinload(IdeaComment.replies)
                .selectinload(IdeaComment.author)
                .selectinload(User.department),
                selectinload(Idea.status_history)
                .selectinload(IdeaStatusHistory.changer)
                .selectinload(User.department),
                selectinload(Idea.owners).selectinload(IdeaOwner.owner).selectinload(User.department),
                selectinload(Idea.attachments),
            ),
        )
        summaries = await self._votes.vote_summaries([idea.id], actor.id)

        return IdeaDetail(
            idea=idea,
            votes=summaries[idea.id],
            comments=[c for c in idea.comments if c.parent_comment_id is None],
            owners=[o for o in idea.owners if o.is_active],
            attachments=[a for a in idea.attachments if not a.is_deleted],
            history=list(idea.status_history),
        )

    async def history(self, actor: Actor, idea_id: UUID) -> Sequence[IdeaStatusHistory]:
        """Status history of an idea the actor may see."""
        await load_visible_idea(self._session, actor, idea_id)
        return await self._history.history(idea_id)

    async def list(self, actor: Actor, filters: IdeaFilters) -> Page:
        """
        Page through the ideas visible to the actor.

        The visibility predicate is always ANDed with the explicit filters.
        Ordering happens in SQL before LIMIT/OFFSET, with Idea.id as the
        tiebreaker so page boundaries are stable.
        """
        sort_column = SORT_FIELDS.get(filters.sort_by)
        if sort_column is None:
            raise ValidationFailedError(
                f"Cannot sort by '{filters.sort_by}'",
                details=[{
                    "field": "sort_by",
                    "message": f"must be one of {', '.join(SORT_FIELDS)}",
                    "code": "invalid_choice",
                }],
            )
        if filters.sort_order not in SORT_ORDERS:
            raise ValidationFailedError(
                f"Invalid sort order '{filters.sort_order}'",
                details=[{"field": "sort_order", "message": "must be asc or desc", "code": "invalid_choice"}],
            )

        page_size = filters.page_size or self._settings.default_page_size
        if filters.page < 1 or page_size < 1 or page_size > self._settings.max_page_size:
            raise ValidationFailedError(
                f"page must be >= 1 and page_size between 1 and {self._settings.max_page_size}"
            )

        conditions = [visibility_predicate(actor)]
        if filters.status is not None:
            conditions.append(Idea.status == filters.status)
        if filters.category_id is not None:
            conditions.append(Idea.category_id == filters.category_id)
        if filters.department_id is not None:
            conditions.append(Idea.creator.has(User.department_id == filters.department_id))
        if filters.q:
            pattern = f"%{_escape_like(filters.q.strip())}%"
            conditions.append(
                or_(
                    Idea.title.ilike(pattern, escape="\\"),
                    Idea.description.ilike(pattern, escape="\\"),
                )
            )
        if filters.my_ideas:
            conditions.append(Idea.creator_id == actor.id)

        total = await self._session.scalar(
            select(func.count()).select_from(Idea).where(*conditions)
        )

        if filters.sort_order == "asc":
            ordering = (sort_column.asc(), Idea.id.asc())
        else:
            ordering = (sort_column.desc(), Idea.id.desc())

        result = await self._session.execute(
            select(Idea)
            .where(*conditions)
            .options(
                selectinload(Idea.creator).selectinload(User.department),
                selectinload(Idea.category),
            )
            .order_by(*ordering)
            .limit(page_size)
            .offset((filters.page - 1) * page_size)
        )
        ideas = result.scalars().all()

        summaries = await self._votes.vote_summaries([i.id for i in ideas], actor.id)
        return Page(
            items=[IdeaListItem(idea=i, votes=summaries[i.id]) for i in ideas],
            total=total or 0,
            page=filters.page,
            page_size=page_size,
        )

    # =========================================================================
    # UPDATE
    # =========================================================================

    async def update(self, actor: Actor, idea_id: UUID, patch: IdeaPatch) -> Idea:
        """
        Apply a partial edit. Never changes status.

        Only the creator, a moderator or an admin may edit. The audit entry
        lists the fields that actually changed; a no-op edit records nothing.
        """
        idea = await self._get_for_update(idea_id)
        if not can_edit(actor, idea):
            raise PermissionDeniedError("Only the creator, a moderator or an admin can edit this idea")

        _validate_text(
            title=patch.title,
            description=patch.description,
            expected_benefit=patch.expected_benefit,
        )
        if patch.category_id is not None and patch.category_id != idea.category_id:
            await self._require_active_category(patch.category_id)

        changes: dict[str, dict[str, Any]] = {}
        for f in fields(patch):
            value = getattr(patch, f.name)
            if value is None:
                continue
            if isinstance(value, str) and f.name in ("title", "description"):
                value = value.strip()
            current = getattr(idea, f.name)
            if current != value:
                changes[f.name] = {"from": _audit_value(current), "to": _audit_value(value)}
                setattr(idea, f.name, value)

        if changes:
            await self._session.flush()
            logger.info(f"Idea {idea.code} updated by {actor.id}: {', '.join(changes)}")
            self._audit.schedule(
                self._session,
                actor_id=actor.id,
                action="update",
                entity="idea",
                entity_id=idea.id,
                detail={"changes": changes},
                request_meta=self._request_meta,
            )

        return await self._reload(idea.id)

    # =========================================================================
    # TRANSITION
    # =========================================================================

    async def transition(
        self,
        actor: Actor,
        idea_id: UUID,
        to_status: IdeaStatus,
        note: str | None = None,
    ) -> Idea:
        """
        Move an idea to another status.

        Flow:
        1. Lock the idea and check the actor may change it
        2. Reject re-asserting the current status
        3. Apply the status; entering closed records closed_at/closed_reason,
           leaving closed clears them
        4. Append the history record
        5. Schedule the audit entry and, when someone else made the change,
           a notification for the creator

        Any status may follow any other.
        """
        # Step 1
        idea = await self._get_for_update(idea_id)
        if not can_edit(actor, idea):
            raise PermissionDeniedError("Only the creator, a moderator or an admin can change the status")

        # Step 2
        from_status = idea.status
        if from_status == to_status:
            raise ValidationFailedError(
                f"Idea is already {to_status.value}",
                details=[{"field": "to_status", "message": "must differ from the current status", "code": "unchanged"}],
            )

        # Step 3
        idea.status = to_status
        if to_status == IdeaStatus.CLOSED:
            idea.closed_at = utcnow()
            idea.closed_reason = note
        elif from_status == IdeaStatus.CLOSED:
            idea.closed_at = None
            idea.closed_reason = None

        # Step 4
        await self._session.flush()
        await self._history.append(
            idea_id=idea.id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor.id,
            note=note,
        )

        logger.info(f"Idea {idea.code}: {from_status.value} -> {to_status.value} by {actor.id}")

        # Step 5
        self._audit.schedule(
            self._session,
            actor_id=actor.id,
            action="transition",
            entity="idea",
            entity_id=idea.id,
            detail={"from": from_status.value, "to": to_status.value, "note": note},
            request_meta=self._request_meta,
        )
        if idea.creator_id != actor.id:
            self._notifications.schedule_status_change(
                self._session,
                recipient_id=idea.creator_id,
                idea_id=idea.id,
                idea_code=idea.code,
                idea_title=idea.title,
                from_status=from_status,
                to_status=to_status,
                note=note,
            )

        return await self._reload(idea.id)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _get_for_update(self, idea_id: UUID) -> Idea:
        idea = (
            await self._session.execute(
                select(Idea).where(Idea.id == idea_id).with_for_update()
            )
        ).scalar_one_or_none()
        if idea is None:
            raise NotFoundError(f"Idea {idea_id} not found")
        return idea

    async def _reload(self, idea_id: UUID) -> Idea:
        """Fetch an idea with creator and category, refreshing any cached state."""
        result = await self._session.execute(
            select(Idea)
            .where(Idea.id == idea_id)
            .options(
                selectinload(Idea.creator).selectinload(User.department),
                selectinload(Idea.category),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _require_active_category(self, category_id: UUID) -> None:
        if await self._directory.get_active_category(category_id) is None:
            raise InvalidCategoryError(
                "Category does not exist or is inactive",
                details=[{"field": "category_id", "message": "unknown or inactive category", "code": "invalid_category"}],
            )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _audit_value(value: Any) -> Any:
    if isinstance(value, (UUID, date)):
        return str(value)
    if isinstance(value, IdeaVisibility):
        return value.value
    return value


def _validate_text(
    title: str | None,
    description: str | None,
    expected_benefit: str | None,
) -> None:
    """Length limits for idea text. ``None`` fields are skipped."""
    details = []
    if title is not None and not TITLE_MIN_LENGTH <= len(title.strip()) <= TITLE_MAX_LENGTH:
        details.append({
            "field": "title",
            "message": f"must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters",
            "code": "length",
        })
    if description is not None and not (
        DESCRIPTION_MIN_LENGTH <= len(description.strip()) <= DESCRIPTION_MAX_LENGTH
    ):
        details.append({
            "field": "description",
            "message": f"must be between {DESCRIPTION_MIN_LENGTH} and {DESCRIPTION_MAX_LENGTH} characters",
            "code": "length",
        })
    if expected_benefit is not None and len(expected_benefit) > EXPECTED_BENEFIT_MAX_LENGTH:
        details.append({
            "field": "expected_benefit",
            "message": f"must be at most {EXPECTED_BENEFIT_MAX_LENGTH} characters",
            "code": "length",
        })
    if details:
        raise ValidationFailedError("Validation failed", details=details)
