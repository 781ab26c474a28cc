"""Database connection and session management.

Transaction Guarantees:
- Each request gets its own session
- All operations within a request are atomic
- On any exception, the entire transaction is rolled back
- Post-commit hooks (audit, notifications) run only after a successful
  commit, in the background, and their failures never reach the caller
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

PostCommitHook = Callable[[], Awaitable[None]]

_POST_COMMIT_KEY = "post_commit_hooks"

# Strong references to in-flight hook tasks so they are not garbage collected
_background_tasks: set[asyncio.Task] = set()

# Every store call is bounded: pool wait, connect and statement execution
_timeout = settings.store_timeout_seconds
connect_args = {
    "timeout": _timeout,
    "command_timeout": _timeout,
    "server_settings": {"statement_timeout": str(int(_timeout * 1000))},
}

engine = create_async_engine(
    settings.database_url_async,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.database_echo,
    pool_pre_ping=True,  # Check connection health before use
    pool_recycle=300,
    pool_timeout=_timeout,
    connect_args=connect_args,
)

# Session factory - creates new sessions for each request
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Don't expire objects after commit
    autoflush=False,         # Manual flush for better control
)


# =============================================================================
# POST-COMMIT HOOKS
# =============================================================================


def add_post_commit_hook(session: AsyncSession, hook: PostCommitHook) -> None:
    """Register a coroutine factory to run once the session's transaction commits."""
    session.info.setdefault(_POST_COMMIT_KEY, []).append(hook)


def discard_post_commit_hooks(session: AsyncSession) -> None:
    """Drop pending hooks (the transaction they belonged to was rolled back)."""
    session.info.pop(_POST_COMMIT_KEY, None)


async def run_post_commit_hooks(session: AsyncSession) -> None:
    """Run and clear the session's pending hooks, isolating each failure."""
    hooks: list[PostCommitHook] = session.info.pop(_POST_COMMIT_KEY, [])
    for hook in hooks:
        try:
            await hook()
        except Exception:
            logger.exception("Post-commit hook failed")


def dispatch_post_commit_hooks(session: AsyncSession) -> None:
    """Schedule pending hooks as a background task (fire-and-forget)."""
    hooks: list[PostCommitHook] = session.info.pop(_POST_COMMIT_KEY, [])
    if not hooks:
        return

    async def _run() -> None:
        for hook in hooks:
            try:
                await hook()
            except Exception:
                logger.exception("Post-commit hook failed")

    task = asyncio.create_task(_run())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


# =============================================================================
# SESSIONS
# =============================================================================


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a transactional database session.

    Transaction Behavior:
    - Session starts in a transaction automatically
    - On successful completion: COMMIT, then dispatch post-commit hooks
    - On any exception: ROLLBACK and drop pending hooks
    - Session is always closed properly
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
            logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            await session.rollback()
            discard_post_commit_hooks(session)
            logger.error(f"Database error, transaction rolled back: {e}")
            raise
        except Exception as e:
            await session.rollback()
            discard_post_commit_hooks(session)
            logger.error(f"Error during request, transaction rolled back: {e}")
            raise
        else:
            dispatch_post_commit_hooks(session)
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize database (create tables if needed)."""
    from ..models import Base

    async with engine.begin() as conn:
        # In production, use migrations instead
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
