"""Business logic services for the Idea Ledger."""

from .audit import AuditRecorder, RequestMetadata
from .dashboard import (
    DashboardAggregator,
    DashboardPeriod,
    DashboardSnapshot,
    DepartmentStat,
    resolve_period,
)
from .directory import Directory
from .errors import (
    AccessDeniedError,
    ConflictError,
    HistoryImmutableError,
    IdeaLedgerError,
    InvalidCategoryError,
    InvalidVoteTypeError,
    NotFoundError,
    PermissionDeniedError,
    SelfVoteRejectedError,
    StoreUnavailableError,
    ValidationFailedError,
)
from .idea_store import (
    IdeaDetail,
    IdeaDraft,
    IdeaFilters,
    IdeaListItem,
    IdeaPatch,
    IdeaStore,
    Page,
    generate_idea_code,
)
from .notifications import NotificationWriter
from .status_history import StatusHistoryLog
from .visibility import Actor, can_edit, load_visible_idea, visibility_predicate
from .vote_ledger import VoteLedger, VoteOutcome, VoteResult, VoteSummary

__all__ = [
    # Visibility
    "Actor",
    "visibility_predicate",
    "load_visible_idea",
    "can_edit",
    # Ideas
    "IdeaStore",
    "IdeaDraft",
    "IdeaPatch",
    "IdeaFilters",
    "IdeaDetail",
    "IdeaListItem",
    "Page",
    "generate_idea_code",
    "StatusHistoryLog",
    # Votes
    "VoteLedger",
    "VoteOutcome",
    "VoteResult",
    "VoteSummary",
    # Dashboard
    "DashboardAggregator",
    "DashboardPeriod",
    "DashboardSnapshot",
    "DepartmentStat",
    "resolve_period",
    # Collaborators
    "AuditRecorder",
    "RequestMetadata",
    "Directory",
    "NotificationWriter",
    # Errors
    "IdeaLedgerError",
    "ValidationFailedError",
    "NotFoundError",
    "AccessDeniedError",
    "PermissionDeniedError",
    "SelfVoteRejectedError",
    "InvalidVoteTypeError",
    "InvalidCategoryError",
    "StoreUnavailableError",
    "ConflictError",
    "HistoryImmutableError",
]
