"""
Tests for the SQL repositories behind context resolution.

Rows are committed before each lookup: the repositories open their own
sessions on the shared in-memory connection.
"""
from __future__ import annotations

import pytest

from taskhub.authz import Resource
from taskhub.db.repositories import build_repositories
from taskhub.models.work import Notification, Task, Vendor


@pytest.fixture
def sql_repos(session_factory):
    return build_repositories(session_factory)


def test_every_resource_has_a_repository(sql_repos):
    assert set(sql_repos) == set(Resource)


@pytest.mark.asyncio
async def test_task_projection_includes_collaborators(db_session, sql_repos, world):
    task = Task(
        title="Fix boiler",
        organization_id=world.acme.id,
        department_id=world.maint.id,
        created_by_id=world.acme_admin.id,
        assignees=[world.worker],
        watchers=[world.cleaner, world.acme_super],
    )
    db_session.add(task)
    await db_session.commit()

    entity = await sql_repos[Resource.TASK].find_by_id(task.id)

    assert entity.id == task.id
    assert entity.organization_id == world.acme.id
    assert entity.department_id == world.maint.id
    assert entity.owner_id == world.acme_admin.id
    assert entity.collaborators["assignees"] == frozenset({world.worker.id})
    assert entity.collaborators["watchers"] == frozenset({world.cleaner.id, world.acme_super.id})
    assert not entity.is_deleted


@pytest.mark.asyncio
async def test_deleted_rows_only_with_include_deleted(db_session, sql_repos, world):
    task = Task(
        title="Old task",
        organization_id=world.acme.id,
        department_id=world.maint.id,
        created_by_id=world.worker.id,
        is_deleted=True,
    )
    db_session.add(task)
    await db_session.commit()

    repo = sql_repos[Resource.TASK]
    assert await repo.find_by_id(task.id) is None

    entity = await repo.find_by_id(task.id, include_deleted=True)
    assert entity is not None
    assert entity.is_deleted


@pytest.mark.asyncio
async def test_missing_row_is_none(sql_repos, world):
    assert await sql_repos[Resource.TASK].find_by_id(12345) is None


@pytest.mark.asyncio
async def test_organization_is_its_own_tenant(sql_repos, world):
    entity = await sql_repos[Resource.ORGANIZATION].find_by_id(world.acme.id)

    assert entity.organization_id == world.acme.id
    assert entity.department_id is None
    assert entity.owner_id is None


@pytest.mark.asyncio
async def test_department_and_user_projections(sql_repos, world):
    dept = await sql_repos[Resource.DEPARTMENT].find_by_id(world.house.id)
    user = await sql_repos[Resource.USER].find_by_id(world.cleaner.id)

    assert dept.department_id == world.house.id
    assert dept.organization_id == world.acme.id
    assert user.owner_id == world.cleaner.id
    assert user.department_id == world.house.id


@pytest.mark.asyncio
async def test_vendor_has_no_department(db_session, sql_repos, world):
    vendor = Vendor(name="Linen Co", organization_id=world.acme.id, created_by_id=world.acme_admin.id)
    db_session.add(vendor)
    await db_session.commit()

    entity = await sql_repos[Resource.VENDOR].find_by_id(vendor.id)
    assert entity.department_id is None
    assert entity.owner_id == world.acme_admin.id


@pytest.mark.asyncio
async def test_system_notification_has_no_owner(db_session, sql_repos, world):
    notification = Notification(
        title="Maintenance window",
        organization_id=world.acme.id,
        department_id=world.maint.id,
        recipients=[world.worker],
        read_by=[world.cleaner],
    )
    db_session.add(notification)
    await db_session.commit()

    entity = await sql_repos[Resource.NOTIFICATION].find_by_id(notification.id)
    assert entity.owner_id is None
    assert entity.collaborator_ids("recipients", "read_by") == frozenset({world.worker.id, world.cleaner.id})


@pytest.mark.asyncio
async def test_department_exists_in_organization(db_session, sql_repos, world):
    departments = sql_repos[Resource.DEPARTMENT]

    assert await departments.exists_in_organization(world.house.id, world.acme.id)
    assert not await departments.exists_in_organization(world.sales.id, world.acme.id)
    assert not await departments.exists_in_organization(9999, world.acme.id)

    world.house.is_deleted = True
    await db_session.commit()
    assert not await departments.exists_in_organization(world.house.id, world.acme.id)
