"""
Dashboard Aggregator: windowed statistics over the ideas an actor can see.

Read-only. Every query is restricted by the visibility predicate and by the
period's lower bound on Idea.created_at.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Sequence
from uuid import UUID

from sqlalchemy import and_, desc, func, select, union
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models import (
    ACTION_STATUSES,
    Department,
    Idea,
    IdeaCategory,
    IdeaStatus,
    IdeaStatusHistory,
    IdeaVote,
    User,
    utcnow,
)
from .errors import PermissionDeniedError, ValidationFailedError
from .visibility import DEPARTMENT_STATS_ROLES, Actor, visibility_predicate

logger = logging.getLogger(__name__)

TOP_VOTED_LIMIT = 5
RECENT_ACTIVITY_LIMIT = 10


class DashboardPeriod(str, Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    LAST_YEAR = "1y"
    ALL = "all"


DEFAULT_PERIOD = DashboardPeriod.LAST_30_DAYS

_PERIOD_LENGTHS = {
    DashboardPeriod.LAST_7_DAYS: timedelta(days=7),
    DashboardPeriod.LAST_30_DAYS: timedelta(days=30),
    DashboardPeriod.LAST_90_DAYS: timedelta(days=90),
    DashboardPeriod.LAST_YEAR: timedelta(days=365),
    DashboardPeriod.ALL: None,
}


def resolve_period(period: DashboardPeriod | str, now: datetime) -> datetime | None:
    """Lower bound on created_at for a period, or None for 'all'."""
    try:
        period = DashboardPeriod(period)
    except ValueError:
        raise ValidationFailedError(
            f"Unknown period '{period}'",
            details=[{
                "field": "period",
                "message": f"must be one of {', '.join(p.value for p in DashboardPeriod)}",
                "code": "invalid_choice",
            }],
        )
    length = _PERIOD_LENGTHS[period]
    return None if length is None else now - length


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# =============================================================================
# RESULT TYPES
# =============================================================================


@dataclass
class StatusCount:
    status: IdeaStatus
    count: int


@dataclass
class CategoryCount:
    id: UUID
    name: str
    color: str
    count: int


@dataclass
class DashboardSnapshot:
    period: DashboardPeriod
    total_ideas: int = 0
    ideas_by_status: list[StatusCount] = field(default_factory=list)
    ideas_by_category: list[CategoryCount] = field(default_factory=list)
    total_votes: int = 0
    active_users: int = 0
    avg_idea_to_action_days: float | None = None
    top_voted_ideas: Sequence[Idea] = field(default_factory=list)
    recent_activity: Sequence[IdeaStatusHistory] = field(default_factory=list)


@dataclass
class DepartmentStat:
    id: UUID
    name: str
    idea_count: int
    contributor_count: int
    member_count: int


# =============================================================================
# DASHBOARD AGGREGATOR
# =============================================================================


class DashboardAggregator:
    """Computes dashboard statistics for one actor and period."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def overview(
        self,
        actor: Actor,
        period: DashboardPeriod | str = DEFAULT_PERIOD,
        now: datetime | None = None,
    ) -> DashboardSnapshot:
        bound = resolve_period(period, now or utcnow())
        period = DashboardPeriod(period)

        conditions = [visibility_predicate(actor)]
        if bound is not None:
            conditions.append(Idea.created_at >= bound)
        matching_ids = select(Idea.id).where(*conditions)

        snapshot = DashboardSnapshot(period=period)

        snapshot.total_ideas = await self._session.scalar(
            select(func.count()).select_from(Idea).where(*conditions)
        ) or 0

        status_rows = await self._session.execute(
            select(Idea.status, func.count())
            .where(*conditions)
            .group_by(Idea.status)
            .order_by(Idea.status)
        )
        snapshot.ideas_by_status = [
            StatusCount(status=status, count=count) for status, count in status_rows
        ]

        category_count = func.count(Idea.id).label("count")
        category_rows = await self._session.execute(
            select(IdeaCategory.id, IdeaCategory.name, IdeaCategory.color, category_count)
            .join(Idea, Idea.category_id == IdeaCategory.id)
            .where(*conditions)
            .group_by(IdeaCategory.id, IdeaCategory.name, IdeaCategory.color)
            .order_by(desc(category_count), IdeaCategory.name)
        )
        snapshot.ideas_by_category = [
            CategoryCount(id=cid, name=name, color=color, count=count)
            for cid, name, color, count in category_rows
        ]

        snapshot.total_votes = await self._session.scalar(
            select(func.count())
            .select_from(IdeaVote)
            .where(IdeaVote.idea_id.in_(matching_ids))
        ) or 0

        snapshot.active_users = await self._active_users(conditions, matching_ids, bound)
        snapshot.avg_idea_to_action_days = await self._avg_idea_to_action_days(conditions)

        top_voted = await self._session.execute(
            select(Idea)
            .where(*conditions, Idea.vote_count > 0)
            .options(
                selectinload(Idea.creator).selectinload(User.department),
                selectinload(Idea.category),
            )
            .order_by(Idea.vote_count.desc(), Idea.created_at.desc())
            .limit(TOP_VOTED_LIMIT)
        )
        snapshot.top_voted_ideas = top_voted.scalars().all()

        activity_query = (
            select(IdeaStatusHistory)
            .join(Idea, Idea.id == IdeaStatusHistory.idea_id)
            .where(visibility_predicate(actor))
            .options(
                selectinload(IdeaStatusHistory.idea),
                selectinload(IdeaStatusHistory.changer),
            )
            .order_by(IdeaStatusHistory.changed_at.desc(), IdeaStatusHistory.id.desc())
            .limit(RECENT_ACTIVITY_LIMIT)
        )
        if bound is not None:
            activity_query = activity_query.where(IdeaStatusHistory.changed_at >= bound)
        snapshot.recent_activity = (await self._session.execute(activity_query)).scalars().all()

        logger.debug(
            f"Dashboard overview for {actor.id} ({period.value}): "
            f"{snapshot.total_ideas} ideas, {snapshot.total_votes} votes"
        )
        return snapshot

    async def _active_users(self, conditions, matching_ids, bound: datetime | None) -> int:
        """Distinct creators of matching ideas plus voters on them within the window."""
        creators = select(Idea.creator_id.label("user_id")).where(*conditions)
        voters = select(IdeaVote.user_id.label("user_id")).where(
            IdeaVote.idea_id.in_(matching_ids)
        )
        if bound is not None:
            voters = voters.where(IdeaVote.created_at >= bound)

        participants = union(creators, voters).subquery()
        return await self._session.scalar(
            select(func.count()).select_from(participants)
        ) or 0

    async def _avg_idea_to_action_days(self, conditions) -> float | None:
        """
        Mean days from submission to the first in_pilot/implemented record.

        Ideas that never reached an action status are left out.
        """
        first_action = (
            select(
                IdeaStatusHistory.idea_id,
                func.min(IdeaStatusHistory.changed_at).label("acted_at"),
            )
            .where(IdeaStatusHistory.to_status.in_(ACTION_STATUSES))
            .group_by(IdeaStatusHistory.idea_id)
            .subquery()
        )
        rows = await self._session.execute(
            select(Idea.created_at, first_action.c.acted_at)
            .join(first_action, first_action.c.idea_id == Idea.id)
            .where(*conditions)
        )

        durations = [
            (_as_utc(acted_at) - _as_utc(created_at)).total_seconds() / 86400
            for created_at, acted_at in rows
        ]
        if not durations:
            return None
        return round(sum(durations) / len(durations), 1)

    async def department_stats(
        self,
        actor: Actor,
        period: DashboardPeriod | str = DEFAULT_PERIOD,
        now: datetime | None = None,
    ) -> list[DepartmentStat]:
        """Per-department contribution in the window. Executives, moderators and admins only."""
        if actor.role not in DEPARTMENT_STATS_ROLES:
            raise PermissionDeniedError("Department statistics are restricted to executives, moderators and admins")

        bound = resolve_period(period, now or utcnow())

        idea_join = Idea.creator_id == User.id
        if bound is not None:
            idea_join = and_(idea_join, Idea.created_at >= bound)

        idea_count = func.count(func.distinct(Idea.id)).label("idea_count")
        rows = await self._session.execute(
            select(
                Department.id,
                Department.name,
                idea_count,
                func.count(func.distinct(Idea.creator_id)).label("contributor_count"),
                func.count(func.distinct(User.id)).label("member_count"),
            )
            .select_from(Department)
            .outerjoin(User, User.department_id == Department.id)
            .outerjoin(Idea, idea_join)
            .group_by(Department.id, Department.name)
            .order_by(desc(idea_count), Department.name.asc())
        )
        return [
            DepartmentStat(
                id=dept_id,
                name=name,
                idea_count=ideas,
                contributor_count=contributors,
                member_count=members,
            )
            for dept_id, name, ideas, contributors, members in rows
        ]
