#!/usr/bin/env python3
"""
Seed Data Script for the Idea Ledger

Creates a realistic "Manufacturing Company" scenario with:
- 4 Departments (Engineering, Operations, Quality, Finance)
- 6 Categories (5 active, 1 retired)
- 8 Users (admin, moderator, executive and 5 employees)
- Ideas demonstrating the lifecycle:
  - Public, department-only and private ideas
  - Ideas moved through review, pilot and implementation
  - A closed idea and a reopened one
  - Votes in both directions

Ideas, transitions and votes go through the real services, so history and
vote counts are consistent. Audit entries are written the same way.

Run with: python seed_data.py
"""

import asyncio
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from idea_ledger.core.config import get_settings
from idea_ledger.core.database import run_post_commit_hooks
from idea_ledger.core.security import Actor, create_access_token
from idea_ledger.models import (
    Base,
    Department,
    IdeaCategory,
    IdeaStatus,
    IdeaVisibility,
    User,
    UserRole,
)
from idea_ledger.services import (
    AuditRecorder,
    IdeaDraft,
    IdeaStore,
    NotificationWriter,
    VoteLedger,
)

settings = get_settings()


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.role, department_id=user.department_id)


async def seed_database():
    """Main seeding function."""

    # Create engine and session
    engine = create_async_engine(settings.database_url_async, echo=False)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    audit = AuditRecorder(session_factory=async_session)
    notifications = NotificationWriter(session_factory=async_session)

    async with async_session() as session:
        print("Starting database seed...")

        # Check if data already exists
        result = await session.execute(text("SELECT COUNT(*) FROM ideas"))
        count = result.scalar()
        if count and count > 0:
            print("Database already has data. Clearing existing data...")
            await clear_database(session)

        # =================================================================
        # DIRECTORY: DEPARTMENTS, CATEGORIES, USERS
        # =================================================================
        print("\nCreating departments and categories...")

        engineering = Department(id=uuid4(), name="Engineering", code="ENG")
        operations = Department(id=uuid4(), name="Operations", code="OPS")
        quality = Department(id=uuid4(), name="Quality", code="QA")
        finance = Department(id=uuid4(), name="Finance", code="FIN")
        session.add_all([engineering, operations, quality, finance])

        process = IdeaCategory(id=uuid4(), name="Process Improvement", color="#1976d2", icon="settings")
        cost = IdeaCategory(id=uuid4(), name="Cost Reduction", color="#388e3c", icon="savings")
        safety = IdeaCategory(id=uuid4(), name="Safety", color="#d32f2f", icon="health_and_safety")
        customer = IdeaCategory(id=uuid4(), name="Customer Experience", color="#7b1fa2", icon="sentiment_satisfied")
        technology = IdeaCategory(id=uuid4(), name="Technology", color="#f57c00", icon="memory")
        retired = IdeaCategory(id=uuid4(), name="Paper Forms", color="#9e9e9e", icon="description", is_active=False)
        session.add_all([process, cost, safety, customer, technology, retired])

        print("\nCreating users...")

        def user(employee_no, name, email, role, department):
            return User(
                id=uuid4(),
                employee_no=employee_no,
                name=name,
                email=email,
                role=role,
                department_id=department.id,
            )

        admin = user("EMP001", "Grace Okafor", "grace@acme.example", UserRole.ADMIN, engineering)
        moderator = user("EMP002", "Ravi Menon", "ravi@acme.example", UserRole.MODERATOR, quality)
        executive = user("EMP003", "Helena Brandt", "helena@acme.example", UserRole.EXECUTIVE, finance)
        dana = user("EMP101", "Dana Whitfield", "dana@acme.example", UserRole.EMPLOYEE, operations)
        luis = user("EMP102", "Luis Ortega", "luis@acme.example", UserRole.EMPLOYEE, operations)
        mei = user("EMP103", "Mei Tanaka", "mei@acme.example", UserRole.EMPLOYEE, engineering)
        sam = user("EMP104", "Sam Adeyemi", "sam@acme.example", UserRole.EMPLOYEE, engineering)
        priya = user("EMP105", "Priya Nair", "priya@acme.example", UserRole.EMPLOYEE, quality)
        people = [admin, moderator, executive, dana, luis, mei, sam, priya]
        session.add_all(people)
        await session.commit()
        for person in people:
            print(f"   Created: {person.name} ({person.role.value})")

        # =================================================================
        # IDEAS
        # =================================================================
        print("\nSubmitting ideas...")

        store = IdeaStore(session, audit=audit, notifications=notifications)
        ledger = VoteLedger(session, audit=audit)

        async def submit(author, title, description, category, visibility=IdeaVisibility.PUBLIC, benefit=None):
            idea = await store.create(
                actor_for(author),
                IdeaDraft(
                    title=title,
                    description=description,
                    category_id=category.id,
                    expected_benefit=benefit,
                    visibility=visibility,
                ),
            )
            print(f"   {idea.code}: {idea.title} [{visibility.value}]")
            return idea

        forklift = await submit(
            dana,
            "Pedestrian lanes around loading docks",
            "Paint marked pedestrian lanes and add mirrors at the blind corners of docks 3 to 6.",
            safety,
            benefit="Fewer near-misses between forklifts and staff.",
        )
        kanban = await submit(
            luis,
            "Kanban cards for consumables",
            "Replace the weekly consumables count with two-bin kanban cards at each workstation.",
            process,
            benefit="Saves about four hours of counting per week.",
        )
        solar = await submit(
            mei,
            "Solar panels on warehouse roof",
            "Install a rooftop solar array on warehouse B to offset daytime compressor load.",
            cost,
        )
        ci = await submit(
            sam,
            "Shared CI runners for firmware builds",
            "Move firmware builds from individual laptops to two shared CI runners in the server room.",
            technology,
            visibility=IdeaVisibility.DEPARTMENT,
        )
        survey = await submit(
            priya,
            "Post-delivery customer survey",
            "Send a three-question survey a week after delivery and route low scores to quality review.",
            customer,
        )
        bonus = await submit(
            dana,
            "Shift swap board for operators",
            "A private draft for a shift swap board; not ready to share with the whole company.",
            process,
            visibility=IdeaVisibility.PRIVATE,
        )
        await commit(session)

        # =================================================================
        # LIFECYCLE
        # =================================================================
        print("\nMoving ideas through review...")

        mod = actor_for(moderator)
        for idea, steps in [
            (forklift, [IdeaStatus.UNDER_REVIEW, IdeaStatus.SHORTLISTED, IdeaStatus.IN_PILOT, IdeaStatus.IMPLEMENTED]),
            (kanban, [IdeaStatus.UNDER_REVIEW, IdeaStatus.SHORTLISTED, IdeaStatus.IN_PILOT]),
            (solar, [IdeaStatus.UNDER_REVIEW, IdeaStatus.CLOSED]),
            (survey, [IdeaStatus.UNDER_REVIEW]),
        ]:
            for step in steps:
                note = "Budget not available this year" if step == IdeaStatus.CLOSED else None
                await store.transition(mod, idea.id, step, note)
            print(f"   {idea.code}: {' -> '.join(s.value for s in steps)}")

        # Reopened after the budget review
        await store.transition(actor_for(admin), solar.id, IdeaStatus.UNDER_REVIEW, "Reopened after budget review")
        await commit(session)

        # =================================================================
        # VOTES
        # =================================================================
        print("\nCasting votes...")

        votes = [
            (luis, forklift, 1), (mei, forklift, 1), (sam, forklift, 1), (priya, forklift, 1),
            (dana, kanban, 1), (mei, kanban, 1), (priya, kanban, -1),
            (dana, solar, 1), (luis, solar, -1),
            (mei, ci, 1),
            (dana, survey, 1), (sam, survey, 1),
        ]
        for voter, idea, vote_type in votes:
            await ledger.vote(actor_for(voter), idea.id, vote_type)
        # Luis changes his mind about the solar panels
        await ledger.vote(actor_for(luis), solar.id, 1)
        await commit(session)
        print(f"   Cast {len(votes) + 1} votes")

        print("\n" + "=" * 60)
        print("DATABASE SEEDED SUCCESSFULLY!")
        print("=" * 60)
        print(f"""
Summary:
   - 4 Departments, 6 Categories (1 retired)
   - 8 Users: admin, moderator, executive, 5 employees
   - 6 Ideas:
     - {forklift.code}: Pedestrian lanes [IMPLEMENTED]
     - {kanban.code}: Kanban cards [IN PILOT]
     - {solar.code}: Solar panels [CLOSED, then reopened]
     - {ci.code}: Shared CI runners [DEPARTMENT only]
     - {survey.code}: Customer survey [UNDER REVIEW]
     - {bonus.code}: Shift swap board [PRIVATE]

Dev tokens (valid {settings.access_token_expire_minutes} minutes):""")
        for person in people:
            print(f"   {person.name:<16} {person.role.value:<10} {create_access_token(actor_for(person))}")

    await engine.dispose()


async def commit(session: AsyncSession):
    """Commit and write the audit entries and notifications queued by the services."""
    await session.commit()
    await run_post_commit_hooks(session)


async def clear_database(session: AsyncSession):
    """Clear all data from the database (in correct order for FK constraints)."""
    tables = [
        "audit_logs",
        "notifications",
        "attachments",
        "idea_owners",
        "idea_comments",
        "idea_votes",
        "idea_status_history",
        "ideas",
        "idea_categories",
        "users",
        "departments",
    ]

    for table in tables:
        await session.execute(text(f"DELETE FROM {table}"))

    await session.commit()
    print("   Cleared existing data")


if __name__ == "__main__":
    asyncio.run(seed_database())
