"""
Visibility Filter: which ideas an actor may see.

One predicate serves every read path (get, list, vote precondition and the
dashboard queries). It is a plain SQL expression so callers can AND it with
their own filters; the creator's department is tested through EXISTS, so no
join is required.
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy import and_, exists, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.interfaces import ORMOption
from sqlalchemy.sql.elements import ColumnElement

from ..core.security import Actor
from ..models import Idea, IdeaVisibility, User, UserRole
from .errors import AccessDeniedError, NotFoundError

# Roles that see every idea regardless of visibility
PRIVILEGED_ROLES = frozenset({UserRole.ADMIN, UserRole.MODERATOR, UserRole.EXECUTIVE})

# Roles allowed to edit or transition ideas they did not create
EDITOR_ROLES = frozenset({UserRole.ADMIN, UserRole.MODERATOR})

# Roles allowed to see per-department statistics
DEPARTMENT_STATS_ROLES = frozenset({UserRole.ADMIN, UserRole.MODERATOR, UserRole.EXECUTIVE})


def visibility_predicate(actor: Actor) -> ColumnElement[bool]:
    """
    Build the SQL condition selecting the ideas visible to ``actor``.

    - admin, moderator, executive: every idea
    - employee: public ideas, their own ideas, and department ideas whose
      creator shares the employee's department
    """
    if actor.role in PRIVILEGED_ROLES:
        return true()

    conditions = [
        Idea.visibility == IdeaVisibility.PUBLIC,
        Idea.creator_id == actor.id,
    ]
    if actor.department_id is not None:
        conditions.append(
            and_(
                Idea.visibility == IdeaVisibility.DEPARTMENT,
                Idea.creator.has(User.department_id == actor.department_id),
            )
        )
    return or_(*conditions)


async def load_visible_idea(
    session: AsyncSession,
    actor: Actor,
    idea_id: UUID,
    *,
    for_update: bool = False,
    options: Sequence[ORMOption] = (),
) -> Idea:
    """
    Fetch an idea the actor may see.

    Raises NotFoundError when the idea does not exist and AccessDeniedError
    when it exists but ``visibility_predicate`` excludes it.
    """
    query = (
        select(Idea)
        .where(Idea.id == idea_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    idea = (await session.execute(query)).scalar_one_or_none()
    if idea is None:
        raise NotFoundError(f"Idea {idea_id} not found")

    visible = await session.scalar(
        select(exists().where(Idea.id == idea_id, visibility_predicate(actor)))
    )
    if not visible:
        raise AccessDeniedError("You do not have access to this idea")
    return idea


def can_edit(actor: Actor, idea: Idea) -> bool:
    """Creator, moderator or admin may edit and transition an idea."""
    return idea.creator_id == actor.id or actor.role in EDITOR_ROLES
