"""
Pytest fixtures for the test suite.

- Engine-level tests (tests/test_authz) run against in-memory fake
  repositories, so every lookup the resolvers make can be counted.
- Data-layer and API tests use a fresh in-memory SQLite database (aiosqlite)
  per test, shared across sessions through a StaticPool.
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from taskhub.authz import AuthorizationGuard, Identity, PolicyTable, Resource, ResolverRegistry, Role, TargetEntity
from taskhub.settings import Settings


TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

PLATFORM_ORG = 1
ACME = 2
GLOBEX = 3

PLATFORM_OPS = 10
ACME_MAINT = 20
ACME_HOUSE = 21
GLOBEX_SALES = 30


# ---- Fake data access ----------------------------------------------------------------


class FakeRepository:
    """In-memory EntityRepository that records every call."""

    def __init__(self) -> None:
        self.entities: dict[int, TargetEntity] = {}
        self.calls: list[tuple] = []
        self.error: Exception | None = None

    def add(self, entity: TargetEntity) -> TargetEntity:
        self.entities[entity.id] = entity
        return entity

    async def find_by_id(self, entity_id: int, *, include_deleted: bool = False) -> TargetEntity | None:
        self.calls.append(("find_by_id", entity_id, include_deleted))
        if self.error is not None:
            raise self.error
        entity = self.entities.get(entity_id)
        if entity is None or (entity.is_deleted and not include_deleted):
            return None
        return entity

    async def exists_in_organization(self, entity_id: int, organization_id: int) -> bool:
        self.calls.append(("exists_in_organization", entity_id, organization_id))
        if self.error is not None:
            raise self.error
        entity = self.entities.get(entity_id)
        return entity is not None and not entity.is_deleted and entity.organization_id == organization_id


@pytest.fixture
def repos() -> dict[Resource, FakeRepository]:
    """One fake repository per resource, pre-filled with organizations, departments and users."""
    repos = {resource: FakeRepository() for resource in Resource}

    for org_id in (PLATFORM_ORG, ACME, GLOBEX):
        repos[Resource.ORGANIZATION].add(TargetEntity(id=org_id, organization_id=org_id))

    for dept_id, org_id in ((PLATFORM_OPS, PLATFORM_ORG), (ACME_MAINT, ACME), (ACME_HOUSE, ACME), (GLOBEX_SALES, GLOBEX)):
        repos[Resource.DEPARTMENT].add(TargetEntity(id=dept_id, organization_id=org_id, department_id=dept_id))

    # Users mirror the identities built by make_identity below.
    for user_id, org_id, dept_id in ((100, ACME, ACME_MAINT), (101, ACME, ACME_MAINT), (102, ACME, ACME_HOUSE), (300, GLOBEX, GLOBEX_SALES)):
        repos[Resource.USER].add(TargetEntity(id=user_id, organization_id=org_id, department_id=dept_id, owner_id=user_id))

    return repos


@pytest.fixture
def total_calls(repos):
    def count() -> int:
        return sum(len(repo.calls) for repo in repos.values())

    return count


# ---- Engine --------------------------------------------------------------------------


@pytest.fixture
def policy_table() -> PolicyTable:
    return PolicyTable.from_yaml(Settings().resolved_policy_path())


@pytest.fixture
def guard(policy_table, repos) -> AuthorizationGuard:
    return AuthorizationGuard(policy_table, ResolverRegistry.default(repos), platform_organization_id=PLATFORM_ORG)


@pytest.fixture
def make_identity():
    def make(
        user_id: int = 100,
        role: Role = Role.USER,
        organization_id: int = ACME,
        department_id: int = ACME_MAINT,
    ) -> Identity:
        return Identity(
            id=user_id,
            role=role,
            organization_id=organization_id,
            department_id=department_id,
            is_platform_member=organization_id == PLATFORM_ORG,
        )

    return make


# ---- Database ------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory SQLite engine with all tables, one per test."""
    from taskhub.db.base import Base
    from taskhub.models import tenancy, work  # noqa: F401  (register tables)

    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def world(db_session):
    """
    Committed tenant layout shared by data-layer and API tests.

    platform (1): ops dept, root SuperAdmin
    acme (2):     maint + house depts, SuperAdmin, Admin, two Users
    globex (3):   sales dept, one User
    """
    from taskhub.models.tenancy import Department, Organization, User

    platform = Organization(id=PLATFORM_ORG, name="Platform")
    acme = Organization(id=ACME, name="Acme")
    globex = Organization(id=GLOBEX, name="Globex")
    db_session.add_all([platform, acme, globex])
    await db_session.flush()

    ops = Department(name="Ops", organization_id=platform.id)
    maint = Department(name="Maintenance", organization_id=acme.id)
    house = Department(name="Housekeeping", organization_id=acme.id)
    sales = Department(name="Sales", organization_id=globex.id)
    db_session.add_all([ops, maint, house, sales])
    await db_session.flush()

    def user(email: str, role: str, org: Organization, dept: Department) -> User:
        return User(
            email=email,
            first_name=email.split("@")[0],
            last_name="Test",
            role=role,
            organization_id=org.id,
            department_id=dept.id,
        )

    root = user("root@platform.test", "SuperAdmin", platform, ops)
    acme_super = user("super@acme.test", "SuperAdmin", acme, maint)
    acme_admin = user("admin@acme.test", "Admin", acme, maint)
    worker = user("worker@acme.test", "User", acme, maint)
    cleaner = user("cleaner@acme.test", "User", acme, house)
    outsider = user("outsider@globex.test", "User", globex, sales)
    db_session.add_all([root, acme_super, acme_admin, worker, cleaner, outsider])
    await db_session.commit()

    return SimpleNamespace(
        platform=platform,
        acme=acme,
        globex=globex,
        ops=ops,
        maint=maint,
        house=house,
        sales=sales,
        root=root,
        acme_super=acme_super,
        acme_admin=acme_admin,
        worker=worker,
        cleaner=cleaner,
        outsider=outsider,
    )
