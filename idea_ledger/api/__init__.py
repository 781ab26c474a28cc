"""API routes for the Idea Ledger."""

from fastapi import APIRouter

from .dashboard import router as dashboard_router
from .directory import router as directory_router
from .ideas import router as ideas_router

# Main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(ideas_router)
api_router.include_router(dashboard_router)

# Read-only lookups (categories, departments)
api_router.include_router(directory_router)

__all__ = ["api_router"]
