"""Security utilities: bearer token verification and the acting user.

Tokens are issued by the authentication service. This service only verifies
them and reads the actor from the claims. ``create_access_token`` exists for
the seed script and tests.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from pydantic import BaseModel, ValidationError

from ..models import UserRole
from .config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation, from verified token claims."""
    id: UUID
    role: UserRole
    department_id: UUID | None = None


# JWT Token handling
class TokenPayload(BaseModel):
    """JWT token payload."""

    sub: UUID  # User ID
    role: UserRole
    department: UUID | None = None
    exp: datetime
    iat: datetime
    type: str = "access"

    def to_actor(self) -> Actor:
        return Actor(id=self.sub, role=self.role, department_id=self.department)


def create_access_token(
    actor: Actor,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token carrying the actor's id, role and department."""
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )

    payload = {
        "sub": str(actor.id),
        "role": actor.role.value,
        "department": str(actor.department_id) if actor.department_id else None,
        "exp": expire,
        "iat": now,
        "type": "access",
    }

    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenPayload | None:
    """Decode and validate a JWT token. Returns None if invalid or expired."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        return TokenPayload(**payload)
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        return None
    except jwt.InvalidTokenError:
        return None
    except ValidationError as e:
        logger.warning(f"Token claims failed validation: {e.error_count()} error(s)")
        return None
