from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .types import Context, Operation, Resource, Role, Scope


@dataclass(frozen=True)
class Identity:
    """
    Verified caller, as handed over by the identity collaborator.

    The engine trusts this record completely; ``is_platform_member`` is derived
    once by ``AuthorizationGuard.identify`` from the configured platform
    organization id.
    """

    id: int
    role: Role
    organization_id: int
    department_id: int
    is_platform_member: bool = False


@dataclass(frozen=True)
class AccessRequest:
    """
    The parts of an inbound request that context resolution looks at.

    - ``resource_id`` set: the request targets one existing entity.
    - otherwise ``department_id`` / ``user_id`` are the creation payload hints
      or the listing filters, and ``collaborator_ids`` the user ids supplied in
      a creation payload (assignees, watchers, mentions, recipients).
    """

    resource_id: int | None = None
    include_deleted: bool = False
    department_id: int | None = None
    user_id: int | None = None
    collaborator_ids: frozenset[int] = field(default_factory=frozenset)


@dataclass(frozen=True)
class AuthzContext:
    """
    Per-request authorization decision.

    Created once when the guard allows a request and attached to:
    - request.state.authz (FastAPI request lifetime)
    - Session.info["authz"] (SQLAlchemy session lifetime)
    """

    resource: Resource
    operation: Operation
    role: Role
    scope: Scope
    # None for cross-org decisions; context is a same-tenant notion.
    context: Context | None
    is_platform_member: bool
    cross_org_source: str | int | None

    user_id: int
    organization_id: int
    department_id: int

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dict (audit logs, API responses)."""
        return {
            "resource": self.resource.value,
            "operation": self.operation.value,
            "role": self.role.value,
            "scope": self.scope.value,
            "context": self.context.value if self.context is not None else None,
            "is_platform_member": self.is_platform_member,
            "cross_org_source": self.cross_org_source,
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "department_id": self.department_id,
        }
