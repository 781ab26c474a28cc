"""Dashboard and directory schemas."""

from datetime import datetime
from uuid import UUID

from ..models import IdeaStatus
from ..services.dashboard import DashboardPeriod
from .base import CategoryRef, LedgerBaseModel, UserBrief, UserRef


# =============================================================================
# DASHBOARD
# =============================================================================


class StatusCountResponse(LedgerBaseModel):
    status: IdeaStatus
    count: int


class CategoryCountResponse(LedgerBaseModel):
    id: UUID
    name: str
    color: str
    count: int


class TopIdeaResponse(LedgerBaseModel):
    id: UUID
    code: str
    title: str
    status: IdeaStatus
    vote_count: int
    created_at: datetime
    creator: UserRef
    category: CategoryRef


class ActivityResponse(LedgerBaseModel):
    """A recent status change, with the idea it belongs to."""

    id: int
    idea_id: UUID
    idea_code: str
    idea_title: str
    from_status: IdeaStatus | None = None
    to_status: IdeaStatus
    note: str | None = None
    changed_at: datetime
    changed_by: UserBrief


class DashboardOverviewResponse(LedgerBaseModel):
    period: DashboardPeriod
    total_ideas: int
    ideas_by_status: list[StatusCountResponse]
    ideas_by_category: list[CategoryCountResponse]
    total_votes: int
    active_users: int
    avg_idea_to_action_days: float | None = None
    top_voted_ideas: list[TopIdeaResponse]
    recent_activity: list[ActivityResponse]


class DepartmentStatResponse(LedgerBaseModel):
    id: UUID
    name: str
    idea_count: int
    contributor_count: int
    member_count: int


class DepartmentStatsResponse(LedgerBaseModel):
    period: DashboardPeriod
    departments: list[DepartmentStatResponse]


# =============================================================================
# DIRECTORY
# =============================================================================


class CategoryResponse(LedgerBaseModel):
    id: UUID
    name: str
    description: str | None = None
    color: str
    icon: str | None = None
    is_active: bool


class DepartmentResponse(LedgerBaseModel):
    id: UUID
    name: str
    code: str | None = None
    description: str | None = None
    is_active: bool
