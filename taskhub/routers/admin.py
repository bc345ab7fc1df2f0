from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from taskhub.authz import AuthorizationGuard, Identity, PolicyTable, Role
from taskhub.errors import PolicyConfigError
from taskhub.security.dependencies import get_guard, require_platform_member, require_role
from taskhub.settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/policy/reload", dependencies=[Depends(require_platform_member)])
async def reload_policy(
    request: Request,
    identity: Identity = Depends(require_role(Role.SUPER_ADMIN)),
    guard: AuthorizationGuard = Depends(get_guard),
) -> dict[str, int]:
    """
    Re-read the policy YAML and swap it into the running guard.

    An invalid file is rejected with 422 and the current table stays in place.
    """

    settings: Settings = getattr(request.app.state, "settings", None) or get_settings()
    try:
        table = PolicyTable.from_yaml(settings.resolved_policy_path())
    except PolicyConfigError as exc:
        logger.error("Policy reload rejected: %s", exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    guard.replace_policy(table)
    logger.info("Policy reloaded by user_id=%s rules=%d", identity.id, len(table))
    return {"rules": len(table)}
