"""
Vote Ledger: one vote per user per idea, with toggle semantics.

- No vote yet: the vote is recorded
- Same type again: the vote is removed
- Opposite type: the vote is flipped in place

Idea.vote_count always equals the signed sum of the idea's votes. It is
recomputed from the vote rows after every change, in the same transaction.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..models import Idea, IdeaVote
from .audit import AuditRecorder, RequestMetadata
from .errors import (
    ConflictError,
    InvalidVoteTypeError,
    SelfVoteRejectedError,
    StoreUnavailableError,
    ValidationFailedError,
    is_unique_violation,
)
from .visibility import Actor, load_visible_idea

logger = logging.getLogger(__name__)

VALID_VOTE_TYPES = (1, -1)


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


class VoteOutcome(str, Enum):
    VOTED = "voted"
    REMOVED = "removed"
    CHANGED = "changed"


# Audit action recorded for each outcome
AUDIT_ACTIONS = {
    VoteOutcome.VOTED: "voted",
    VoteOutcome.REMOVED: "removed_vote",
    VoteOutcome.CHANGED: "changed_vote",
}


@dataclass
class VoteResult:
    outcome: VoteOutcome
    vote_count: int
    user_vote: int | None


@dataclass
class VoteSummary:
    """Vote tallies for one idea, seen from one user."""
    upvotes: int = 0
    downvotes: int = 0
    user_vote: int | None = None

    @property
    def vote_score(self) -> int:
        return self.upvotes - self.downvotes


# =============================================================================
# VOTE LEDGER
# =============================================================================


class VoteLedger:
    """
    Records votes on ideas.

    Guarantees:
    1. At most one vote row per (idea, user), enforced by a unique constraint
    2. vote_count is recomputed after every mutation, never incremented
    3. Mutations on one idea are serialized by a row lock on the idea
    """

    def __init__(
        self,
        session: AsyncSession,
        audit: AuditRecorder | None = None,
        request_meta: RequestMetadata | None = None,
    ):
        self._session = session
        self._audit = audit or AuditRecorder()
        self._request_meta = request_meta
        self._max_attempts = get_settings().vote_max_attempts

    async def vote(self, actor: Actor, idea_id: UUID, vote_type: int) -> VoteResult:
        """
        Cast, remove or flip the actor's vote on an idea.

        Flow:
        1. Validate vote_type (+1 or -1)
        2. Lock the idea row, checking existence and visibility
        3. Reject votes on the actor's own idea
        4. Apply the toggle inside a SAVEPOINT and recount vote_count
        5. On a unique-constraint race, retry step 4 (bounded)
        6. Schedule the audit entry for after commit
        """
        # Step 1: Pure input validation comes first
        if vote_type not in VALID_VOTE_TYPES:
            raise InvalidVoteTypeError(
                "Vote type must be 1 (upvote) or -1 (downvote)",
                details=[{
                    "field": "vote_type",
                    "message": "must be 1 or -1",
                    "code": "invalid_vote_type",
                }],
            )

        # Step 2: Lock the idea; serializes all votes on it
        idea = await load_visible_idea(self._session, actor, idea_id, for_update=True)

        # Step 3
        if idea.creator_id == actor.id:
            raise SelfVoteRejectedError("You cannot vote on your own idea")

        # Steps 4-5
        result = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                result = await self._toggle_once(idea, idea_id, actor.id, vote_type)
                break
            except ConflictError as e:
                logger.warning(
                    f"Vote conflict on idea {idea_id} for user {actor.id} "
                    f"(attempt {attempt}/{self._max_attempts}): {e.message}"
                )

        if result is None:
            raise StoreUnavailableError(
                "Could not record the vote because of concurrent updates, please retry"
            )

        logger.info(
            f"Vote {result.outcome.value} on idea {idea_id} by {actor.id}, "
            f"vote_count={result.vote_count}"
        )

        # Step 6
        self._audit.schedule(
            self._session,
            actor_id=actor.id,
            action=AUDIT_ACTIONS[result.outcome],
            entity="idea_vote",
            entity_id=idea_id,
            detail={"vote_type": vote_type, "vote_count": result.vote_count},
            request_meta=self._request_meta,
        )
        return result

    async def _toggle_once(
        self,
        idea: Idea,
        idea_id: UUID,
        user_id: UUID,
        vote_type: int,
    ) -> VoteResult:
        """
        One toggle attempt in its own SAVEPOINT.

        A lost race on the (idea, user) unique constraint surfaces as
        ConflictError. Any other integrity failure is not retryable.
        """
        try:
            async with self._session.begin_nested():
                outcome, user_vote = await self._apply_toggle(idea_id, user_id, vote_type)
                vote_count = await self.recount(idea_id)
                idea.vote_count = vote_count
                await self._session.flush()
        except IntegrityError as e:
            if not is_unique_violation(e):
                logger.error(f"Vote on idea {idea_id} by {user_id} violated a constraint: {e.orig}")
                raise ValidationFailedError("Vote references a user that does not exist")
            raise ConflictError(f"Concurrent vote on idea {idea_id}: {e.orig}")
        return VoteResult(outcome=outcome, vote_count=vote_count, user_vote=user_vote)

    async def _apply_toggle(
        self,
        idea_id: UUID,
        user_id: UUID,
        vote_type: int,
    ) -> tuple[VoteOutcome, int | None]:
        existing = (
            await self._session.execute(
                select(IdeaVote).where(
                    IdeaVote.idea_id == idea_id,
                    IdeaVote.user_id == user_id,
                )
            )
        ).scalar_one_or_none()

        if existing is None:
            self._session.add(IdeaVote(idea_id=idea_id, user_id=user_id, vote_type=vote_type))
            await self._session.flush()
            return VoteOutcome.VOTED, vote_type

        if existing.vote_type == vote_type:
            await self._session.delete(existing)
            await self._session.flush()
            return VoteOutcome.REMOVED, None

        existing.vote_type = vote_type
        await self._session.flush()
        return VoteOutcome.CHANGED, vote_type

    async def recount(self, idea_id: UUID) -> int:
        """Signed sum of an idea's votes (0 when there are none)."""
        total = await self._session.scalar(
            select(func.coalesce(func.sum(IdeaVote.vote_type), 0)).where(
                IdeaVote.idea_id == idea_id
            )
        )
        return int(total or 0)

    # =========================================================================
    # VOTE SUMMARIES
    # =========================================================================

    async def vote_summaries(
        self,
        idea_ids: list[UUID],
        user_id: UUID | None = None,
    ) -> dict[UUID, VoteSummary]:
        """Upvotes, downvotes and the user's own vote for each idea id."""
        summaries = {idea_id: VoteSummary() for idea_id in idea_ids}
        if not idea_ids:
            return summaries

        tallies = await self._session.execute(
            select(
                IdeaVote.idea_id,
                func.sum(case((IdeaVote.vote_type == 1, 1), else_=0)),
                func.sum(case((IdeaVote.vote_type == -1, 1), else_=0)),
            )
            .where(IdeaVote.idea_id.in_(idea_ids))
            .group_by(IdeaVote.idea_id)
        )
        for idea_id, upvotes, downvotes in tallies:
            summaries[idea_id].upvotes = int(upvotes or 0)
            summaries[idea_id].downvotes = int(downvotes or 0)

        if user_id is not None:
            own_votes = await self._session.execute(
                select(IdeaVote.idea_id, IdeaVote.vote_type).where(
                    IdeaVote.idea_id.in_(idea_ids),
                    IdeaVote.user_id == user_id,
                )
            )
            for idea_id, vote_type in own_votes:
                summaries[idea_id].user_vote = vote_type

        return summaries
