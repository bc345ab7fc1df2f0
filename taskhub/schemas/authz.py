from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from taskhub.authz import Context, Operation, Resource, Role, Scope


class IdentityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: Role
    organization_id: int
    department_id: int
    is_platform_member: bool


class DecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    resource: Resource
    operation: Operation
    role: Role
    scope: Scope
    context: Context | None
    is_platform_member: bool
    cross_org_source: str | int | None


class PermissionsOut(BaseModel):
    role: Role
    is_platform_member: bool
    # Resource name -> allowed operations, sorted; resources without access are omitted.
    permissions: dict[Resource, list[Operation]]
