"""Directory API: active categories and departments for pickers and filters."""

from fastapi import APIRouter

from ..core.dependencies import ActorDep, SessionDep
from ..schemas.dashboard import CategoryResponse, DepartmentResponse
from ..services.directory import Directory

router = APIRouter(tags=["Directory"])


@router.get(
    "/categories",
    response_model=list[CategoryResponse],
    summary="List active idea categories",
)
async def list_categories(actor: ActorDep, session: SessionDep):
    """Active categories, sorted by name."""
    categories = await Directory(session).active_categories()
    return [CategoryResponse.model_validate(c) for c in categories]


@router.get(
    "/departments",
    response_model=list[DepartmentResponse],
    summary="List active departments",
)
async def list_departments(actor: ActorDep, session: SessionDep):
    """Active departments, sorted by name."""
    departments = await Directory(session).active_departments()
    return [DepartmentResponse.model_validate(d) for d in departments]
