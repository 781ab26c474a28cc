"""
Tests for the Dashboard Aggregator.

Verifies:
1. resolve_period maps each period to a lower bound on created_at
2. An empty window yields zeros, empty lists and no average
3. Every statistic is restricted to the window and to visible ideas
4. The idea-to-action average ignores ideas that never reached an action status
5. Department statistics cover every department and are role-restricted
"""

from datetime import datetime, timedelta, timezone

import pytest

from idea_ledger.models import IdeaStatus, IdeaVisibility, utcnow
from idea_ledger.services import (
    DashboardPeriod,
    PermissionDeniedError,
    ValidationFailedError,
    resolve_period,
)

from .factories import add_history, make_idea

NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestResolvePeriod:
    @pytest.mark.parametrize(
        "period, days",
        [("7d", 7), ("30d", 30), ("90d", 90), ("1y", 365)],
    )
    def test_windowed_periods(self, period, days):
        assert resolve_period(period, NOW) == NOW - timedelta(days=days)

    def test_all_has_no_bound(self):
        assert resolve_period(DashboardPeriod.ALL, NOW) is None

    def test_unknown_period(self):
        with pytest.raises(ValidationFailedError) as exc:
            resolve_period("2w", NOW)
        assert exc.value.details[0]["field"] == "period"


# =============================================================================
# OVERVIEW
# =============================================================================


class TestOverview:
    async def test_empty_dashboard(self, dashboard, world):
        """No ideas in range: zeros, empty lists and no average (not NaN, not zero)."""
        snapshot = await dashboard.overview(world.actor(world.u1), DashboardPeriod.LAST_30_DAYS)

        assert snapshot.period == DashboardPeriod.LAST_30_DAYS
        assert snapshot.total_ideas == 0
        assert snapshot.ideas_by_status == []
        assert snapshot.ideas_by_category == []
        assert snapshot.total_votes == 0
        assert snapshot.active_users == 0
        assert snapshot.avg_idea_to_action_days is None
        assert snapshot.top_voted_ideas == []
        assert snapshot.recent_activity == []

    async def test_window_excludes_old_ideas(self, session, dashboard, world):
        now = utcnow()
        await make_idea(session, world.u1, world.category, title="recent", created_at=now - timedelta(days=2))
        await make_idea(session, world.u1, world.category, title="old", created_at=now - timedelta(days=45))
        await session.commit()

        actor = world.actor(world.admin)
        assert (await dashboard.overview(actor, "7d")).total_ideas == 1
        assert (await dashboard.overview(actor, "30d")).total_ideas == 1
        assert (await dashboard.overview(actor, "90d")).total_ideas == 2
        assert (await dashboard.overview(actor, "all")).total_ideas == 2

    async def test_breakdowns(self, session, dashboard, world):
        now = utcnow()
        first = await make_idea(session, world.u1, world.category, created_at=now - timedelta(days=3))
        await make_idea(session, world.u2, world.category, created_at=now - timedelta(days=2))
        await make_idea(session, world.u3, world.other_category, created_at=now - timedelta(days=1))
        await add_history(session, first, IdeaStatus.UNDER_REVIEW, world.moderator, now)
        await session.commit()

        snapshot = await dashboard.overview(world.actor(world.executive))

        assert snapshot.total_ideas == 3
        by_status = {s.status: s.count for s in snapshot.ideas_by_status}
        assert by_status == {IdeaStatus.SUBMITTED: 2, IdeaStatus.UNDER_REVIEW: 1}
        assert [(c.name, c.count) for c in snapshot.ideas_by_category] == [
            ("Process Improvement", 2),
            ("Cost Reduction", 1),
        ]
        assert snapshot.ideas_by_category[0].color == "#1976d2"

    async def test_votes_and_active_users(self, session, dashboard, ledger, world):
        idea = await make_idea(session, world.u1, world.category)
        await ledger.vote(world.actor(world.u2), idea.id, 1)
        await ledger.vote(world.actor(world.u3), idea.id, -1)
        await session.commit()

        snapshot = await dashboard.overview(world.actor(world.admin))
        assert snapshot.total_votes == 2
        # creator plus two voters
        assert snapshot.active_users == 3

    async def test_employee_only_counts_visible_ideas(self, session, dashboard, world):
        await make_idea(session, world.u1, world.category, title="public")
        await make_idea(
            session, world.u1, world.category, title="team", visibility=IdeaVisibility.DEPARTMENT
        )
        await make_idea(
            session, world.u2, world.category, title="secret", visibility=IdeaVisibility.PRIVATE
        )
        await session.commit()

        assert (await dashboard.overview(world.actor(world.u3))).total_ideas == 1
        assert (await dashboard.overview(world.actor(world.u2))).total_ideas == 3
        assert (await dashboard.overview(world.actor(world.u1))).total_ideas == 2
        assert (await dashboard.overview(world.actor(world.moderator))).total_ideas == 3

    async def test_top_voted_ideas(self, session, dashboard, world):
        now = utcnow()
        for votes in (0, 3, 7, 1, 5, 2, 4):
            await make_idea(
                session, world.u1, world.category,
                title=f"{votes} votes", vote_count=votes,
                created_at=now - timedelta(hours=votes + 1),
            )
        await session.commit()

        snapshot = await dashboard.overview(world.actor(world.admin))
        assert [i.vote_count for i in snapshot.top_voted_ideas] == [7, 5, 4, 3, 2]
        assert snapshot.top_voted_ideas[0].creator.name == "Ada"
        assert snapshot.top_voted_ideas[0].category.name == "Process Improvement"

    async def test_top_voted_excludes_unvoted_ideas(self, session, dashboard, world):
        await make_idea(session, world.u1, world.category)
        await session.commit()

        snapshot = await dashboard.overview(world.actor(world.admin))
        assert snapshot.total_ideas == 1
        assert snapshot.top_voted_ideas == []

    async def test_recent_activity_is_newest_first_and_limited(self, session, dashboard, world):
        now = utcnow()
        idea = await make_idea(session, world.u1, world.category, created_at=now - timedelta(days=5))
        statuses = [
            IdeaStatus.UNDER_REVIEW, IdeaStatus.SHORTLISTED, IdeaStatus.IN_PILOT,
            IdeaStatus.IMPLEMENTED, IdeaStatus.CLOSED,
        ] * 3
        for offset, to_status in enumerate(statuses):
            await add_history(
                session, idea, to_status, world.moderator, now - timedelta(days=4) + timedelta(minutes=offset)
            )
        await session.commit()

        snapshot = await dashboard.overview(world.actor(world.admin))
        activity = snapshot.recent_activity
        assert len(activity) == 10
        assert activity[0].to_status == IdeaStatus.CLOSED
        changed = [a.changed_at for a in activity]
        assert changed == sorted(changed, reverse=True)
        assert activity[0].idea.code == idea.code
        assert activity[0].changer.name == "Mona"

    async def test_recent_activity_hides_invisible_ideas(self, session, dashboard, world):
        await make_idea(session, world.u1, world.category, visibility=IdeaVisibility.PRIVATE)
        await session.commit()

        assert (await dashboard.overview(world.actor(world.u2))).recent_activity == []
        assert len((await dashboard.overview(world.actor(world.u1))).recent_activity) == 1


class TestIdeaToActionAverage:
    async def test_average_excludes_ideas_without_action(self, session, dashboard, world):
        now = utcnow()
        piloted = await make_idea(session, world.u1, world.category, created_at=now - timedelta(days=6))
        implemented = await make_idea(session, world.u2, world.category, created_at=now - timedelta(days=5))
        await make_idea(session, world.u3, world.category, created_at=now - timedelta(days=10))

        # First action after 4 days; the later implementation does not count
        await add_history(session, piloted, IdeaStatus.IN_PILOT, world.moderator, now - timedelta(days=2))
        await add_history(session, piloted, IdeaStatus.IMPLEMENTED, world.moderator, now - timedelta(days=1))
        # Straight to implemented after 2 days
        await add_history(session, implemented, IdeaStatus.UNDER_REVIEW, world.moderator, now - timedelta(days=4))
        await add_history(session, implemented, IdeaStatus.IMPLEMENTED, world.moderator, now - timedelta(days=3))
        await session.commit()

        snapshot = await dashboard.overview(world.actor(world.admin))
        assert snapshot.total_ideas == 3
        assert snapshot.avg_idea_to_action_days == 3.0

    async def test_no_actions_means_no_average(self, session, dashboard, world):
        idea = await make_idea(session, world.u1, world.category, created_at=utcnow() - timedelta(days=3))
        await add_history(session, idea, IdeaStatus.CLOSED, world.moderator, utcnow())
        await session.commit()

        snapshot = await dashboard.overview(world.actor(world.admin))
        assert snapshot.avg_idea_to_action_days is None


# =============================================================================
# DEPARTMENT STATS
# =============================================================================


class TestDepartmentStats:
    async def test_employees_are_refused(self, dashboard, world):
        with pytest.raises(PermissionDeniedError):
            await dashboard.department_stats(world.actor(world.u1))

    async def test_counts_per_department(self, session, dashboard, world):
        now = utcnow()
        await make_idea(session, world.u1, world.category)
        await make_idea(session, world.u1, world.category)
        await make_idea(session, world.u2, world.category)
        await make_idea(session, world.u3, world.category)
        await make_idea(session, world.u3, world.category, created_at=now - timedelta(days=100))
        await session.commit()

        stats = await dashboard.department_stats(world.actor(world.executive), "30d")
        rows = [(s.name, s.idea_count, s.contributor_count, s.member_count) for s in stats]
        assert rows == [
            ("Engineering", 3, 2, 3),
            ("Operations", 1, 1, 2),
            ("Finance", 0, 0, 1),
            ("Legacy", 0, 0, 0),
        ]

        all_time = await dashboard.department_stats(world.actor(world.moderator), DashboardPeriod.ALL)
        assert [(s.name, s.idea_count) for s in all_time][:2] == [
            ("Engineering", 3),
            ("Operations", 2),
        ]

    async def test_unknown_period(self, dashboard, world):
        with pytest.raises(ValidationFailedError):
            await dashboard.department_stats(world.actor(world.admin), "forever")
