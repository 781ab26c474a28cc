"""Base schemas and common types for the Idea Ledger API."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


# =============================================================================
# BASE SCHEMAS
# =============================================================================


class LedgerBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        populate_by_name=True,
        use_enum_values=True,
    )


class RequestModel(LedgerBaseModel):
    """Base for request bodies: trims strings, rejects unknown fields."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra="forbid",
        use_enum_values=False,  # services expect enum members
    )


# =============================================================================
# PAGINATION
# =============================================================================


class PaginatedResponse(LedgerBaseModel):
    """Wrapper for paginated responses."""

    items: list[Any]
    total: int
    page: int
    page_size: int
    total_pages: int


# =============================================================================
# ERROR RESPONSES
# =============================================================================


class ErrorDetail(LedgerBaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str


class ErrorResponse(LedgerBaseModel):
    """Standard error response format."""

    error: str
    message: str
    details: list[ErrorDetail] = []


# =============================================================================
# COMMON REFERENCE SCHEMAS
# =============================================================================


class DepartmentRef(LedgerBaseModel):
    """Minimal department reference."""

    id: UUID
    name: str


class UserBrief(LedgerBaseModel):
    """Just enough of a user to show a name."""

    id: UUID
    name: str


class UserRef(LedgerBaseModel):
    """User reference for embedding in idea responses."""

    id: UUID
    name: str
    employee_no: str
    department: DepartmentRef | None = None


class CategoryRef(LedgerBaseModel):
    """Minimal category reference."""

    id: UUID
    name: str
    color: str
    icon: str | None = None
