"""
SQLAlchemy implementation of the repositories the context resolvers read from.

One repository per resource type is built at startup (``build_repositories``)
and shared by every request; each lookup opens its own short-lived session,
so nothing here holds state between calls. Lookups are read-only.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from taskhub.authz import Resource, TargetEntity
from taskhub.db.base import Base
from taskhub.models.tenancy import Department, Organization, User
from taskhub.models.work import Attachment, Material, Notification, Task, TaskActivity, TaskComment, Vendor

logger = logging.getLogger(__name__)


class SqlEntityRepository:
    """
    Projects one ORM model onto ``TargetEntity``.

    The attribute names say where tenant, department and owner live on the
    model; ``collaborator_attrs`` name many-to-many user relationships.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[Base],
        *,
        organization_attr: str = "organization_id",
        department_attr: str | None = "department_id",
        owner_attr: str | None = None,
        collaborator_attrs: tuple[str, ...] = (),
    ) -> None:
        self._session_factory = session_factory
        self._model = model
        self._organization_attr = organization_attr
        self._department_attr = department_attr
        self._owner_attr = owner_attr
        self._collaborator_attrs = collaborator_attrs

    async def find_by_id(self, entity_id: int, *, include_deleted: bool = False) -> TargetEntity | None:
        model = self._model
        stmt = select(model).where(model.id == entity_id)
        if not include_deleted:
            stmt = stmt.where(model.is_deleted.is_(False))
        if self._collaborator_attrs:
            stmt = stmt.options(*(selectinload(getattr(model, name)) for name in self._collaborator_attrs))

        async with self._session_factory() as db:
            row = (await db.execute(stmt)).scalar_one_or_none()
            if row is None:
                return None
            return self._project(row)

    async def exists_in_organization(self, entity_id: int, organization_id: int) -> bool:
        model = self._model
        stmt = (
            select(model.id)
            .where(
                model.id == entity_id,
                getattr(model, self._organization_attr) == organization_id,
                model.is_deleted.is_(False),
            )
            .limit(1)
        )
        async with self._session_factory() as db:
            return (await db.execute(stmt)).first() is not None

    def _project(self, row: Base) -> TargetEntity:
        return TargetEntity(
            id=row.id,
            organization_id=getattr(row, self._organization_attr),
            department_id=getattr(row, self._department_attr) if self._department_attr else None,
            owner_id=getattr(row, self._owner_attr) if self._owner_attr else None,
            collaborators={name: frozenset(user.id for user in getattr(row, name)) for name in self._collaborator_attrs},
            is_deleted=row.is_deleted,
        )


def build_repositories(session_factory: async_sessionmaker[AsyncSession]) -> dict[Resource, SqlEntityRepository]:
    """Wire one repository per resource type."""

    def repo(model: type[Base], **kwargs) -> SqlEntityRepository:
        return SqlEntityRepository(session_factory, model, **kwargs)

    repositories = {
        # An organization is its own tenant and has no department.
        Resource.ORGANIZATION: repo(Organization, organization_attr="id", department_attr=None),
        # A department's "department" is itself.
        Resource.DEPARTMENT: repo(Department, department_attr="id"),
        # A user owns their own record.
        Resource.USER: repo(User, owner_attr="id"),
        Resource.TASK: repo(Task, owner_attr="created_by_id", collaborator_attrs=("assignees", "watchers")),
        Resource.TASK_ACTIVITY: repo(TaskActivity, owner_attr="created_by_id"),
        Resource.TASK_COMMENT: repo(TaskComment, owner_attr="created_by_id", collaborator_attrs=("mentions",)),
        Resource.MATERIAL: repo(Material, owner_attr="added_by_id"),
        Resource.VENDOR: repo(Vendor, department_attr=None, owner_attr="created_by_id"),
        Resource.NOTIFICATION: repo(
            Notification,
            owner_attr="created_by_id",
            collaborator_attrs=("recipients", "read_by"),
        ),
        Resource.ATTACHMENT: repo(Attachment, owner_attr="uploaded_by_id"),
    }
    logger.debug("Built repositories for %d resource types", len(repositories))
    return repositories
