"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    add_post_commit_hook,
    async_session_factory,
    close_db,
    engine,
    get_session,
    init_db,
    run_post_commit_hooks,
)
from .dependencies import (
    ActorDep,
    SessionDep,
    get_client_ip,
    get_current_actor,
)
from .security import (
    Actor,
    TokenPayload,
    create_access_token,
    decode_token,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "engine",
    "async_session_factory",
    "get_session",
    "init_db",
    "close_db",
    "add_post_commit_hook",
    "run_post_commit_hooks",
    # Dependencies
    "ActorDep",
    "SessionDep",
    "get_client_ip",
    "get_current_actor",
    # Security
    "Actor",
    "TokenPayload",
    "create_access_token",
    "decode_token",
]
