"""Idea Ledger: Main FastAPI Application.

Employees submit improvement ideas, vote on them and follow them through a
review lifecycle, with role-based visibility and dashboard statistics.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import api_router
from .core import close_db, get_settings, init_db
from .schemas import ErrorDetail, ErrorResponse
from .services.errors import STORE_UNAVAILABLE_ERRORS, IdeaLedgerError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info(f"Starting {settings.app_name} {settings.app_version} ({settings.environment})")

    # Startup - skip init_db in production (tables are managed by migrations)
    if settings.environment != "production":
        try:
            await init_db()
        except Exception as e:
            logger.warning(f"Could not initialize database: {e}")
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## Idea Ledger API

    Submit, vote on and track improvement ideas.

    ### Key Features

    - **Visibility**: Ideas are public, department-only or private; moderators, executives and admins see everything.
    - **Votes**: One vote per user per idea. Voting again with the same type removes the vote, the opposite type flips it.
    - **Lifecycle**: Every status change is recorded in an append-only history.
    - **Dashboard**: Windowed statistics over the ideas you can see.

    ### Authentication

    All endpoints require a valid JWT token in the `Authorization: Bearer <token>` header.
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS", "HEAD"],
    allow_headers=["*"],
    max_age=86400,
)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================


def _error_response(
    status_code: int, error: str, message: str, details=None, headers=None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=ErrorResponse(
            error=error,
            message=message,
            details=details or [],
        ).model_dump(),
    )


@app.exception_handler(IdeaLedgerError)
async def idea_ledger_exception_handler(request: Request, exc: IdeaLedgerError):
    """Render domain errors with their kind and status."""
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return _error_response(
        exc.status_code,
        exc.kind,
        exc.message,
        [ErrorDetail(**d) for d in exc.details],
    )


# Error kinds for framework-level HTTP errors (auth, unknown routes)
HTTP_ERROR_KINDS = {
    status.HTTP_401_UNAUTHORIZED: "unauthenticated",
    status.HTTP_403_FORBIDDEN: "access_denied",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTPExceptions in the same ErrorResponse shape as domain errors."""
    return _error_response(
        exc.status_code,
        HTTP_ERROR_KINDS.get(exc.status_code, "http_error"),
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body and query validation failures are 400 validation_failed."""
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        details.append(
            ErrorDetail(
                field=".".join(location) or None,
                message=error.get("msg", "Invalid value"),
                code=error.get("type", "invalid"),
            )
        )
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "validation_failed",
        "Validation failed",
        details,
    )


async def store_unavailable_handler(request: Request, exc: Exception):
    """Driver timeouts and connection failures."""
    logger.error(f"Store unavailable on {request.method} {request.url.path}: {exc}")
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "store_unavailable",
        "The data store is temporarily unavailable, please retry",
    )


for _error_class in STORE_UNAVAILABLE_ERRORS:
    app.add_exception_handler(_error_class, store_unavailable_handler)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")

    message = "An unexpected error occurred"
    if settings.debug:
        message = f"{message}: {str(exc)[:200]}"
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_error",
        message,
    )


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "idea_ledger.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
