"""
Context resolvers: how does the caller relate to what they are asking for?

Every resource type has one resolver answering ``own``, ``ownDept``,
``crossDept`` or ``None`` (no relation). Three request shapes are handled:

1. A specific entity (``resource_id`` present). The entity is fetched, then:
   other tenant -> None, owner/collaborator -> own, same department ->
   ownDept, otherwise crossDept.
2. A creation. A supplied department hint must be the caller's department or
   a department of the caller's tenant. The caller listing themselves among
   the collaborators makes it ``own``. No hint means the caller's department.
3. A listing/query. Department and user filters are checked the same way and
   combined filters take the widest context they reach; without filters the
   resolver's default listing context applies, which is never tenant-wide.
   Callers must keep the listed rows inside the decided context.

Same-tenant resolution never yields a context for another tenant's data;
crossing tenants is only possible through a policy ``crossOrg`` grant.
"""

from __future__ import annotations

import logging
from typing import ClassVar, Iterable

from .context import AccessRequest, Identity
from .repositories import EntityRepository, Repositories, TargetEntity
from .types import Context, Operation, Resource

logger = logging.getLogger(__name__)

_BREADTH = {Context.OWN: 0, Context.OWN_DEPT: 1, Context.CROSS_DEPT: 2}


class ContextResolver:
    """Default resolution for departmental resources with per-entity ownership."""

    resource: ClassVar[Resource]

    # Collaborator relationships whose members count as owners.
    ownership_fields: ClassVar[tuple[str, ...]] = ()
    default_creation_context: ClassVar[Context] = Context.OWN_DEPT
    default_listing_context: ClassVar[Context] = Context.OWN_DEPT

    def __init__(self, repositories: Repositories) -> None:
        self._repositories = repositories

    @property
    def repository(self) -> EntityRepository:
        return self._repositories[self.resource]

    async def resolve(self, operation: Operation, access: AccessRequest, identity: Identity) -> Context | None:
        if access.resource_id is not None:
            entity = await self.repository.find_by_id(
                access.resource_id,
                include_deleted=access.include_deleted or operation is Operation.RESTORE,
            )
            if entity is None:
                logger.debug("authz: %s id=%s not found", self.resource.value, access.resource_id)
                return None
            if entity.organization_id != identity.organization_id:
                logger.debug(
                    "authz: %s id=%s belongs to another organization",
                    self.resource.value,
                    access.resource_id,
                )
                return None
            return self.entity_context(entity, identity)

        if operation is Operation.CREATE:
            return await self.creation_context(access, identity)
        return await self.listing_context(access, identity)

    # ---- Existing entity -----------------------------------------------------------

    def is_owner(self, entity: TargetEntity, identity: Identity) -> bool:
        if entity.owner_id is not None and entity.owner_id == identity.id:
            return True
        return identity.id in entity.collaborator_ids(*self.ownership_fields)

    def entity_context(self, entity: TargetEntity, identity: Identity) -> Context:
        """Context for an entity already known to be in the caller's tenant."""
        if self.is_owner(entity, identity):
            return Context.OWN
        if entity.department_id is not None and entity.department_id == identity.department_id:
            return Context.OWN_DEPT
        return Context.CROSS_DEPT

    # ---- Creation / listing --------------------------------------------------------

    async def creation_context(self, access: AccessRequest, identity: Identity) -> Context | None:
        context = self.default_creation_context
        if access.department_id is not None:
            context = await self.department_context(access.department_id, identity)
            if context is None:
                return None
        if identity.id in access.collaborator_ids:
            return Context.OWN
        return context

    async def listing_context(self, access: AccessRequest, identity: Identity) -> Context | None:
        contexts: list[Context] = []
        if access.department_id is not None:
            context = await self.department_context(access.department_id, identity)
            if context is None:
                return None
            contexts.append(context)
        if access.user_id is not None:
            context = await self.user_context(access.user_id, identity)
            if context is None:
                return None
            contexts.append(context)
        if not contexts:
            return self.default_listing_context
        # Combined filters need the permission of the widest context they reach.
        return max(contexts, key=_BREADTH.__getitem__)

    async def department_context(self, department_id: int, identity: Identity) -> Context | None:
        if department_id == identity.department_id:
            return Context.OWN_DEPT
        departments = self._repositories[Resource.DEPARTMENT]
        if await departments.exists_in_organization(department_id, identity.organization_id):
            return Context.CROSS_DEPT
        return None

    async def user_context(self, user_id: int, identity: Identity) -> Context | None:
        if user_id == identity.id:
            return Context.OWN
        user = await self._repositories[Resource.USER].find_by_id(user_id)
        if user is None or user.organization_id != identity.organization_id:
            return None
        if user.department_id == identity.department_id:
            return Context.OWN_DEPT
        return Context.CROSS_DEPT


class OrganizationResolver(ContextResolver):
    """Organizations are only ever "own": the caller's own tenant."""

    resource = Resource.ORGANIZATION
    default_creation_context = Context.OWN
    default_listing_context = Context.OWN

    def entity_context(self, entity: TargetEntity, identity: Identity) -> Context:
        return Context.OWN

    async def creation_context(self, access: AccessRequest, identity: Identity) -> Context | None:
        return self.default_creation_context

    async def listing_context(self, access: AccessRequest, identity: Identity) -> Context | None:
        return self.default_listing_context


class DepartmentResolver(ContextResolver):
    """No per-entity ownership; the caller's own department is ``ownDept``."""

    resource = Resource.DEPARTMENT

    def is_owner(self, entity: TargetEntity, identity: Identity) -> bool:
        return False


class UserResolver(ContextResolver):
    resource = Resource.USER


class TaskResolver(ContextResolver):
    resource = Resource.TASK
    ownership_fields = ("assignees", "watchers")


class TaskActivityResolver(ContextResolver):
    resource = Resource.TASK_ACTIVITY


class TaskCommentResolver(ContextResolver):
    # The thread parent is not re-validated; the comment's own attributes decide.
    resource = Resource.TASK_COMMENT
    ownership_fields = ("mentions",)


class MaterialResolver(ContextResolver):
    resource = Resource.MATERIAL


class VendorResolver(ContextResolver):
    """Vendors are tenant-wide: any same-tenant member gets ``ownDept``."""

    resource = Resource.VENDOR

    def entity_context(self, entity: TargetEntity, identity: Identity) -> Context:
        if self.is_owner(entity, identity):
            return Context.OWN
        return Context.OWN_DEPT

    async def creation_context(self, access: AccessRequest, identity: Identity) -> Context | None:
        return Context.OWN_DEPT

    async def listing_context(self, access: AccessRequest, identity: Identity) -> Context | None:
        return Context.OWN_DEPT


class NotificationResolver(ContextResolver):
    resource = Resource.NOTIFICATION
    ownership_fields = ("recipients", "read_by")
    # Notification lists show the caller's own inbox unless filtered.
    default_listing_context = Context.OWN


class AttachmentResolver(ContextResolver):
    resource = Resource.ATTACHMENT


DEFAULT_RESOLVERS: tuple[type[ContextResolver], ...] = (
    OrganizationResolver,
    DepartmentResolver,
    UserResolver,
    TaskResolver,
    TaskActivityResolver,
    TaskCommentResolver,
    MaterialResolver,
    VendorResolver,
    NotificationResolver,
    AttachmentResolver,
)


class ResolverRegistry:
    """Maps every ``Resource`` to exactly one resolver."""

    def __init__(self, resolvers: Iterable[ContextResolver]) -> None:
        by_resource: dict[Resource, ContextResolver] = {}
        for resolver in resolvers:
            if resolver.resource in by_resource:
                raise ValueError(f"duplicate resolver for {resolver.resource.value!r}")
            by_resource[resolver.resource] = resolver

        missing = [r.value for r in Resource if r not in by_resource]
        if missing:
            raise ValueError(f"no context resolver registered for: {missing}")
        self._resolvers = by_resource

    @classmethod
    def default(cls, repositories: Repositories) -> ResolverRegistry:
        missing = [r.value for r in Resource if r not in repositories]
        if missing:
            raise ValueError(f"no repository registered for: {missing}")
        return cls(resolver_cls(repositories) for resolver_cls in DEFAULT_RESOLVERS)

    def for_resource(self, resource: Resource) -> ContextResolver:
        return self._resolvers[resource]

    async def resolve(
        self,
        resource: Resource,
        operation: Operation,
        access: AccessRequest,
        identity: Identity,
    ) -> Context | None:
        return await self._resolvers[resource].resolve(operation, access, identity)
