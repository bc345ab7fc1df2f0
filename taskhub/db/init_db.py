from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from taskhub.db.base import Base
from taskhub.models import tenancy as _tenancy  # noqa: F401  (register tables)
from taskhub.models import work as _work  # noqa: F401  (register tables)
from taskhub.models.tenancy import Department, Organization, User
from taskhub.models.work import Material, Notification, Task, Vendor


async def init_db(engine: AsyncEngine, session_factory: async_sessionmaker[AsyncSession]) -> None:
    """
    Create tables + seed demo data.

    The seed is small and deterministic: organization id 1 is the platform
    organization (matching the default `TASKHUB_PLATFORM_ORGANIZATION_ID`),
    organization id 2 is a customer tenant.
    """

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as db:
        if await _has_seed_data(db):
            return
        await _seed(db)


async def _has_seed_data(db: AsyncSession) -> bool:
    return (await db.execute(select(Organization.id).limit(1))).first() is not None


async def _seed(db: AsyncSession) -> None:
    # Organizations
    platform = Organization(id=1, name="Platform", description="Platform operator")
    acme = Organization(id=2, name="Acme Facilities", description="Customer tenant")
    db.add_all([platform, acme])
    await db.flush()

    # Departments
    ops = Department(name="Platform Operations", organization_id=platform.id)
    maint = Department(name="Maintenance", organization_id=acme.id)
    house = Department(name="Housekeeping", organization_id=acme.id)
    db.add_all([ops, maint, house])
    await db.flush()

    # Users (bearer token in the demo = user id)
    root = User(
        email="root@platform.example.com",
        first_name="Pat",
        last_name="Platform",
        role="SuperAdmin",
        organization_id=platform.id,
        department_id=ops.id,
    )
    owner = User(
        email="sam@acme.example.com",
        first_name="Sam",
        last_name="Super",
        role="SuperAdmin",
        organization_id=acme.id,
        department_id=maint.id,
    )
    admin = User(
        email="ada@acme.example.com",
        first_name="Ada",
        last_name="Admin",
        role="Admin",
        organization_id=acme.id,
        department_id=maint.id,
    )
    worker = User(
        email="uma@acme.example.com",
        first_name="Uma",
        last_name="User",
        role="User",
        organization_id=acme.id,
        department_id=maint.id,
    )
    cleaner = User(
        email="hal@acme.example.com",
        first_name="Hal",
        last_name="House",
        role="User",
        organization_id=acme.id,
        department_id=house.id,
    )
    db.add_all([root, owner, admin, worker, cleaner])
    await db.flush()

    boiler = Task(
        title="Service the boiler",
        organization_id=acme.id,
        department_id=maint.id,
        created_by_id=admin.id,
    )
    boiler.assignees.append(worker)
    linens = Task(
        title="Restock linens",
        organization_id=acme.id,
        department_id=house.id,
        created_by_id=cleaner.id,
    )
    db.add_all([boiler, linens])

    db.add(
        Material(name="Copper pipe", category="Plumbing", organization_id=acme.id, department_id=maint.id, added_by_id=worker.id)
    )
    db.add(Vendor(name="Pipes & Co", organization_id=acme.id, created_by_id=admin.id))

    notice = Notification(
        title="Boiler maintenance scheduled",
        organization_id=acme.id,
        department_id=maint.id,
        created_by_id=admin.id,
    )
    notice.recipients.append(worker)
    db.add(notice)

    await db.commit()
