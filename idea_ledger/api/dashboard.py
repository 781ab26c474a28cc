"""
Dashboard API: statistics over the ideas the caller can see.

1. Overview (totals, breakdowns, top voted, recent activity)
2. Per-department contribution (executives, moderators and admins)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..core.dependencies import ActorDep, SessionDep
from ..schemas.base import CategoryRef, ErrorResponse, UserBrief, UserRef
from ..schemas.dashboard import (
    ActivityResponse,
    CategoryCountResponse,
    DashboardOverviewResponse,
    DepartmentStatResponse,
    DepartmentStatsResponse,
    StatusCountResponse,
    TopIdeaResponse,
)
from ..services.dashboard import (
    DEFAULT_PERIOD,
    DashboardAggregator,
    DashboardPeriod,
)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def get_dashboard_aggregator(session: SessionDep) -> DashboardAggregator:
    return DashboardAggregator(session)


DashboardDep = Annotated[DashboardAggregator, Depends(get_dashboard_aggregator)]

PeriodQuery = Query(
    default=DEFAULT_PERIOD,
    description="Window on idea creation: 7d, 30d, 90d, 1y or all",
)


@router.get(
    "/overview",
    response_model=DashboardOverviewResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Dashboard overview",
)
async def get_overview(
    actor: ActorDep,
    dashboard: DashboardDep,
    period: DashboardPeriod = PeriodQuery,
):
    """
    Totals and breakdowns for ideas created in the period.

    Employees only see statistics over ideas visible to them.
    """
    snapshot = await dashboard.overview(actor, period)

    return DashboardOverviewResponse(
        period=snapshot.period,
        total_ideas=snapshot.total_ideas,
        ideas_by_status=[
            StatusCountResponse(status=s.status, count=s.count)
            for s in snapshot.ideas_by_status
        ],
        ideas_by_category=[
            CategoryCountResponse(id=c.id, name=c.name, color=c.color, count=c.count)
            for c in snapshot.ideas_by_category
        ],
        total_votes=snapshot.total_votes,
        active_users=snapshot.active_users,
        avg_idea_to_action_days=snapshot.avg_idea_to_action_days,
        top_voted_ideas=[
            TopIdeaResponse(
                id=idea.id,
                code=idea.code,
                title=idea.title,
                status=idea.status,
                vote_count=idea.vote_count,
                created_at=idea.created_at,
                creator=UserRef.model_validate(idea.creator),
                category=CategoryRef.model_validate(idea.category),
            )
            for idea in snapshot.top_voted_ideas
        ],
        recent_activity=[
            ActivityResponse(
                id=record.id,
                idea_id=record.idea_id,
                idea_code=record.idea.code,
                idea_title=record.idea.title,
                from_status=record.from_status,
                to_status=record.to_status,
                note=record.note,
                changed_at=record.changed_at,
                changed_by=UserBrief.model_validate(record.changer),
            )
            for record in snapshot.recent_activity
        ],
    )


@router.get(
    "/departments",
    response_model=DepartmentStatsResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Per-department statistics",
)
async def get_department_stats(
    actor: ActorDep,
    dashboard: DashboardDep,
    period: DashboardPeriod = PeriodQuery,
):
    """Ideas, contributors and members per department. Executives, moderators and admins only."""
    stats = await dashboard.department_stats(actor, period)
    return DepartmentStatsResponse(
        period=period,
        departments=[
            DepartmentStatResponse(
                id=s.id,
                name=s.name,
                idea_count=s.idea_count,
                contributor_count=s.contributor_count,
                member_count=s.member_count,
            )
            for s in stats
        ],
    )
