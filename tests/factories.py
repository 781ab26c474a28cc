"""Engine and data builders shared by the test modules.

Every test gets its own in-memory SQLite database. pysqlite's own
transaction handling is switched off so that SQLAlchemy emits BEGIN itself,
which is what makes SAVEPOINT (``begin_nested``) work.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from idea_ledger.core.security import Actor
from idea_ledger.models import (
    Base,
    Department,
    Idea,
    IdeaCategory,
    IdeaStatus,
    IdeaStatusHistory,
    IdeaVisibility,
    User,
    UserRole,
    utcnow,
)


def make_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.role, department_id=user.department_id)


@dataclass
class World:
    """
    A small organization:

    - Engineering: u1, u2 (employees), admin
    - Operations: u3 (employee), moderator
    - Finance: executive
    - Legacy: inactive, no members
    - drifter: employee without a department
    """

    engineering: Department
    operations: Department
    finance: Department
    legacy: Department
    category: IdeaCategory
    other_category: IdeaCategory
    inactive_category: IdeaCategory
    u1: User
    u2: User
    u3: User
    drifter: User
    moderator: User
    executive: User
    admin: User

    def actor(self, user: User) -> Actor:
        return actor_for(user)


async def seed_world(session: AsyncSession) -> World:
    engineering = Department(name="Engineering", code="ENG")
    operations = Department(name="Operations", code="OPS")
    finance = Department(name="Finance", code="FIN")
    legacy = Department(name="Legacy", code="LEG", is_active=False)
    session.add_all([engineering, operations, finance, legacy])

    category = IdeaCategory(name="Process Improvement", color="#1976d2", icon="settings")
    other_category = IdeaCategory(name="Cost Reduction", color="#388e3c", icon="savings")
    inactive_category = IdeaCategory(name="Paper Forms", is_active=False)
    session.add_all([category, other_category, inactive_category])
    await session.flush()

    def user(number: int, name: str, role: UserRole, department: Department | None) -> User:
        return User(
            employee_no=f"EMP{number:03d}",
            name=name,
            email=f"{name.lower()}@example.com",
            role=role,
            department_id=department.id if department else None,
        )

    world = World(
        engineering=engineering,
        operations=operations,
        finance=finance,
        legacy=legacy,
        category=category,
        other_category=other_category,
        inactive_category=inactive_category,
        u1=user(1, "Ada", UserRole.EMPLOYEE, engineering),
        u2=user(2, "Ben", UserRole.EMPLOYEE, engineering),
        u3=user(3, "Cleo", UserRole.EMPLOYEE, operations),
        drifter=user(4, "Dev", UserRole.EMPLOYEE, None),
        moderator=user(5, "Mona", UserRole.MODERATOR, operations),
        executive=user(6, "Eve", UserRole.EXECUTIVE, finance),
        admin=user(7, "Abe", UserRole.ADMIN, engineering),
    )
    session.add_all([
        world.u1, world.u2, world.u3, world.drifter,
        world.moderator, world.executive, world.admin,
    ])
    await session.commit()
    return world


async def make_idea(
    session: AsyncSession,
    creator: User,
    category: IdeaCategory,
    *,
    title: str = "Better parking signage",
    description: str = "Add clear signage to the visitor parking area.",
    visibility: IdeaVisibility = IdeaVisibility.PUBLIC,
    created_at: datetime | None = None,
    vote_count: int = 0,
) -> Idea:
    """Insert an idea and its first history record directly, with a chosen creation time."""
    created_at = created_at or utcnow()
    idea = Idea(
        code=f"T-{uuid4().hex[:10].upper()}",
        title=title,
        description=description,
        category_id=category.id,
        creator_id=creator.id,
        status=IdeaStatus.SUBMITTED,
        visibility=visibility,
        vote_count=vote_count,
        created_at=created_at,
        updated_at=created_at,
    )
    session.add(idea)
    await session.flush()
    session.add(
        IdeaStatusHistory(
            idea_id=idea.id,
            from_status=None,
            to_status=IdeaStatus.SUBMITTED,
            changed_by=creator.id,
            note="Idea submitted",
            changed_at=created_at,
        )
    )
    await session.flush()
    return idea


async def add_history(
    session: AsyncSession,
    idea: Idea,
    to_status: IdeaStatus,
    changed_by: User,
    changed_at: datetime,
) -> IdeaStatusHistory:
    """Record a status change at a chosen time and apply it to the idea."""
    record = IdeaStatusHistory(
        idea_id=idea.id,
        from_status=idea.status,
        to_status=to_status,
        changed_by=changed_by.id,
        changed_at=changed_at,
    )
    idea.status = to_status
    session.add(record)
    await session.flush()
    return record
