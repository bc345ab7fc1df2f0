from __future__ import annotations

from fastapi import APIRouter, Depends

from taskhub.authz import AuthorizationGuard, Identity, Resource, allowed_operations
from taskhub.schemas.authz import IdentityOut, PermissionsOut
from taskhub.security.dependencies import get_guard, require_authenticated

router = APIRouter(prefix="/me", tags=["me"])


@router.get("", response_model=IdentityOut)
async def me(identity: Identity = Depends(require_authenticated)) -> Identity:
    return identity


@router.get("/permissions", response_model=PermissionsOut)
async def my_permissions(
    identity: Identity = Depends(require_authenticated),
    guard: AuthorizationGuard = Depends(get_guard),
) -> PermissionsOut:
    # Policy-level view for shaping the UI; per-entity checks still go through authorize().
    permissions = {}
    for resource in Resource:
        ops = allowed_operations(guard.policy, identity, resource)
        if ops:
            permissions[resource] = sorted(ops, key=lambda op: op.value)
    return PermissionsOut(role=identity.role, is_platform_member=identity.is_platform_member, permissions=permissions)
