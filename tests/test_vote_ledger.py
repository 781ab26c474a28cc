"""
Tests for the Vote Ledger.

Verifies:
1. Toggle semantics: vote, remove with the same type, flip with the opposite
2. vote_count always equals the signed sum of the votes (property test)
3. Self-votes and invalid vote types are rejected
4. Votes require visibility of the idea
5. Each outcome is audited after commit
"""

import asyncio
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from idea_ledger.core.database import run_post_commit_hooks
from idea_ledger.models import AuditLog, Idea, IdeaVisibility, IdeaVote
from idea_ledger.services import (
    AccessDeniedError,
    AuditRecorder,
    IdeaFilters,
    IdeaStore,
    InvalidVoteTypeError,
    NotFoundError,
    SelfVoteRejectedError,
    StoreUnavailableError,
    ValidationFailedError,
    VoteLedger,
    VoteOutcome,
)
from idea_ledger.services.errors import is_unique_violation

from .factories import create_schema, make_engine, make_idea, make_session_factory, seed_world


async def vote_rows(session, idea_id) -> int:
    return await session.scalar(
        select(func.count()).select_from(IdeaVote).where(IdeaVote.idea_id == idea_id)
    )


# =============================================================================
# TOGGLE SEMANTICS
# =============================================================================


class TestVoteToggle:
    async def test_list_scenario(self, session, ledger, audit, notifications, world):
        """U2 votes up twice (cancelling out), U3 votes down; U1 lists the result."""
        idea = await make_idea(session, world.u1, world.category)
        await session.commit()

        result = await ledger.vote(world.actor(world.u2), idea.id, 1)
        assert (result.outcome, result.vote_count, result.user_vote) == (VoteOutcome.VOTED, 1, 1)

        result = await ledger.vote(world.actor(world.u2), idea.id, 1)
        assert (result.outcome, result.vote_count, result.user_vote) == (VoteOutcome.REMOVED, 0, None)

        result = await ledger.vote(world.actor(world.u3), idea.id, -1)
        assert (result.outcome, result.vote_count, result.user_vote) == (VoteOutcome.VOTED, -1, -1)
        await session.commit()

        store = IdeaStore(session, audit=audit, notifications=notifications)
        [as_creator] = (await store.list(world.actor(world.u1), IdeaFilters())).items
        assert as_creator.idea.vote_count == -1
        assert as_creator.votes.vote_score == -1
        assert (as_creator.votes.upvotes, as_creator.votes.downvotes) == (0, 1)
        assert as_creator.votes.user_vote is None

        [as_voter] = (await store.list(world.actor(world.u3), IdeaFilters())).items
        assert as_voter.votes.user_vote == -1

    async def test_opposite_vote_flips_in_place(self, session, ledger, world):
        idea = await make_idea(session, world.u1, world.category)

        await ledger.vote(world.actor(world.u2), idea.id, 1)
        result = await ledger.vote(world.actor(world.u2), idea.id, -1)

        assert result.outcome == VoteOutcome.CHANGED
        assert result.vote_count == -1
        assert result.user_vote == -1
        assert await vote_rows(session, idea.id) == 1

    async def test_vote_count_is_persisted(self, session, ledger, world):
        idea = await make_idea(session, world.u1, world.category)

        for user in (world.u2, world.u3, world.moderator):
            await ledger.vote(world.actor(user), idea.id, 1)
        await ledger.vote(world.actor(world.executive), idea.id, -1)
        await session.commit()

        stored = await session.scalar(select(Idea.vote_count).where(Idea.id == idea.id))
        assert stored == 2
        assert await ledger.recount(idea.id) == 2

    async def test_votes_on_different_ideas_are_independent(self, session, ledger, world):
        first = await make_idea(session, world.u1, world.category, title="First idea")
        second = await make_idea(session, world.u1, world.category, title="Second idea")

        await ledger.vote(world.actor(world.u2), first.id, 1)
        await ledger.vote(world.actor(world.u2), second.id, -1)

        summaries = await ledger.vote_summaries([first.id, second.id], world.u2.id)
        assert summaries[first.id].user_vote == 1
        assert summaries[second.id].user_vote == -1
        assert summaries[first.id].vote_score == 1
        assert summaries[second.id].vote_score == -1

    async def test_vote_summaries_for_no_ideas(self, ledger, world):
        assert await ledger.vote_summaries([], world.u1.id) == {}


# =============================================================================
# REJECTIONS
# =============================================================================


class TestVoteRejections:
    async def test_self_vote_is_rejected(self, session, ledger, world):
        idea = await make_idea(session, world.u1, world.category)

        with pytest.raises(SelfVoteRejectedError):
            await ledger.vote(world.actor(world.u1), idea.id, 1)
        assert await vote_rows(session, idea.id) == 0

    @pytest.mark.parametrize("vote_type", [0, 2, -2, 100])
    async def test_invalid_vote_type(self, session, ledger, world, vote_type):
        idea = await make_idea(session, world.u1, world.category)

        with pytest.raises(InvalidVoteTypeError):
            await ledger.vote(world.actor(world.u2), idea.id, vote_type)

    async def test_vote_type_is_checked_before_the_idea(self, ledger, world):
        with pytest.raises(InvalidVoteTypeError):
            await ledger.vote(world.actor(world.u2), uuid4(), 3)

    async def test_missing_idea(self, ledger, world):
        with pytest.raises(NotFoundError):
            await ledger.vote(world.actor(world.u2), uuid4(), 1)

    async def test_hidden_idea(self, session, ledger, world):
        idea = await make_idea(
            session, world.u1, world.category, visibility=IdeaVisibility.DEPARTMENT
        )

        with pytest.raises(AccessDeniedError):
            await ledger.vote(world.actor(world.u3), idea.id, 1)

        result = await ledger.vote(world.actor(world.u2), idea.id, 1)
        assert result.vote_count == 1


class TestVoteConflicts:
    """A lost unique-constraint race is retried, then reported as store_unavailable."""

    def flaky(self, ledger, failures: int, reason: str = "duplicate key"):
        original = ledger._apply_toggle
        calls = []

        async def apply_toggle(idea_id, user_id, vote_type):
            calls.append(vote_type)
            if len(calls) <= failures:
                raise IntegrityError("INSERT INTO idea_votes", {}, Exception(reason))
            return await original(idea_id, user_id, vote_type)

        return apply_toggle, calls

    async def test_conflict_is_retried(self, session, ledger, world, monkeypatch):
        idea = await make_idea(session, world.u1, world.category)
        apply_toggle, calls = self.flaky(ledger, failures=1)
        monkeypatch.setattr(ledger, "_apply_toggle", apply_toggle)

        result = await ledger.vote(world.actor(world.u2), idea.id, 1)

        assert len(calls) == 2
        assert result.outcome == VoteOutcome.VOTED
        assert result.vote_count == 1
        assert await vote_rows(session, idea.id) == 1

    async def test_exhausted_retries(self, session, ledger, world, monkeypatch):
        idea = await make_idea(session, world.u1, world.category)
        apply_toggle, calls = self.flaky(ledger, failures=100)
        monkeypatch.setattr(ledger, "_apply_toggle", apply_toggle)

        with pytest.raises(StoreUnavailableError):
            await ledger.vote(world.actor(world.u2), idea.id, 1)

        assert len(calls) == 3
        assert await vote_rows(session, idea.id) == 0

    async def test_missing_voter_is_not_retried(self, session, ledger, world, monkeypatch):
        idea = await make_idea(session, world.u1, world.category)
        apply_toggle, calls = self.flaky(
            ledger, failures=100, reason="FOREIGN KEY constraint failed"
        )
        monkeypatch.setattr(ledger, "_apply_toggle", apply_toggle)

        with pytest.raises(ValidationFailedError):
            await ledger.vote(world.actor(world.u2), idea.id, 1)

        assert len(calls) == 1
        assert await vote_rows(session, idea.id) == 0


class DriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


class TestUniqueViolation:
    @pytest.mark.parametrize(
        "orig, expected",
        [
            (DriverError("duplicate key value", sqlstate="23505"), True),
            (DriverError("violates foreign key constraint", sqlstate="23503"), False),
            (DriverError("UNIQUE constraint failed: idea_votes.idea_id, idea_votes.user_id"), True),
            (DriverError("FOREIGN KEY constraint failed"), False),
            (DriverError("NOT NULL constraint failed: ideas.title"), False),
        ],
    )
    def test_classification(self, orig, expected):
        assert is_unique_violation(IntegrityError("INSERT", {}, orig)) is expected


# =============================================================================
# AUDIT
# =============================================================================


class TestVoteAudit:
    async def test_each_outcome_is_audited(self, session, ledger, world):
        idea = await make_idea(session, world.u1, world.category)
        actor = world.actor(world.u2)

        await ledger.vote(actor, idea.id, 1)
        await ledger.vote(actor, idea.id, -1)
        await ledger.vote(actor, idea.id, -1)
        await session.commit()
        await run_post_commit_hooks(session)

        entries = (await session.execute(select(AuditLog))).scalars().all()
        assert sorted(e.action for e in entries) == ["changed_vote", "removed_vote", "voted"]
        assert {e.entity for e in entries} == {"idea_vote"}
        assert {e.entity_id for e in entries} == {str(idea.id)}

    async def test_rejected_vote_is_not_audited(self, session, ledger, world):
        idea = await make_idea(session, world.u1, world.category)

        with pytest.raises(SelfVoteRejectedError):
            await ledger.vote(world.actor(world.u1), idea.id, 1)
        assert session.info.get("post_commit_hooks", []) == []


# =============================================================================
# PROPERTY: vote_count == signed sum of votes
# =============================================================================


async def replay_votes(moves: list[tuple[int, int]]) -> None:
    engine = make_engine()
    try:
        await create_schema(engine)
        factory = make_session_factory(engine)
        async with factory() as session:
            world = await seed_world(session)
            voters = [world.u2, world.u3, world.moderator, world.executive]
            idea = await make_idea(session, world.u1, world.category)
            ledger = VoteLedger(session, audit=AuditRecorder(session_factory=factory, enabled=False))

            expected: dict = {}
            for index, vote_type in moves:
                voter = voters[index]
                result = await ledger.vote(world.actor(voter), idea.id, vote_type)

                if expected.get(voter.id) == vote_type:
                    del expected[voter.id]
                else:
                    expected[voter.id] = vote_type

                assert result.vote_count == sum(expected.values())
                assert result.user_vote == expected.get(voter.id)

            await session.commit()
            stored = await session.scalar(select(Idea.vote_count).where(Idea.id == idea.id))
            assert stored == sum(expected.values())
            assert stored == await ledger.recount(idea.id)
            assert await vote_rows(session, idea.id) == len(expected)
    finally:
        await engine.dispose()


class TestVoteCountProperty:
    @settings(max_examples=25, deadline=None)
    @given(
        moves=st.lists(
            st.tuples(st.integers(min_value=0, max_value=3), st.sampled_from([1, -1])),
            max_size=20,
        )
    )
    def test_vote_count_matches_signed_sum(self, moves):
        asyncio.run(replay_votes(moves))
