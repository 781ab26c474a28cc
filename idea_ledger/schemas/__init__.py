"""Idea Ledger API Schemas.

Schemas are organized by domain:
- base: Common types, pagination, errors, references
- ideas: Ideas, votes, status history
- dashboard: Dashboard statistics and directory lookups
"""

from .base import (
    # Base classes
    LedgerBaseModel,
    RequestModel,
    # Pagination
    PaginatedResponse,
    # Errors
    ErrorDetail,
    ErrorResponse,
    # References
    CategoryRef,
    DepartmentRef,
    UserBrief,
    UserRef,
)
from .dashboard import (
    ActivityResponse,
    CategoryCountResponse,
    CategoryResponse,
    DashboardOverviewResponse,
    DepartmentResponse,
    DepartmentStatResponse,
    DepartmentStatsResponse,
    StatusCountResponse,
    TopIdeaResponse,
)
from .ideas import (
    AttachmentResponse,
    CommentReply,
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

__all__ = [
    # Base
    "LedgerBaseModel",
    "RequestModel",
    "PaginatedResponse",
    "ErrorDetail",
    "ErrorResponse",
    "CategoryRef",
    "DepartmentRef",
    "UserBrief",
    "UserRef",
    # Ideas
    "IdeaCreateRequest",
    "IdeaUpdateRequest",
    "VoteRequest",
    "TransitionRequest",
    "IdeaResponse",
    "IdeaSummaryResponse",
    "IdeaDetailResponse",
    "IdeaListResponse",
    "VoteEntry",
    "VoteResponse",
    "CommentReply",
    "CommentResponse",
    "StatusHistoryResponse",
    "OwnerResponse",
    "AttachmentResponse",
    # Dashboard
    "StatusCountResponse",
    "CategoryCountResponse",
    "TopIdeaResponse",
    "ActivityResponse",
    "DashboardOverviewResponse",
    "DepartmentStatResponse",
    "DepartmentStatsResponse",
    # Directory
    "CategoryResponse",
    "DepartmentResponse",
]
