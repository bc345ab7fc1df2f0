from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Depends, Request

from taskhub.authz import AccessRequest, AuthorizationGuard, AuthzContext, Identity, Operation, Resource, Role
from taskhub.authz.guard import DENIED_MESSAGE
from taskhub.db.session import get_session_factory
from taskhub.errors import AuthenticationError, AuthorizationError
from taskhub.security.auth import extract_user_id, load_user

# Creation payload fields holding user ids; the caller listing themselves makes the request "own".
COLLABORATOR_FIELDS = ("assignee_ids", "watcher_ids", "mention_ids", "recipient_ids")

_TRUTHY = ("1", "true", "yes")


def get_guard(request: Request) -> AuthorizationGuard:
    guard = getattr(request.app.state, "guard", None)
    if guard is None:
        raise RuntimeError("Authorization guard not configured. Did app startup run?")
    return guard


async def get_identity(request: Request, guard: AuthorizationGuard = Depends(get_guard)) -> Identity | None:
    """
    Resolve the caller once per request (cached on request.state.identity).

    Returns None when no credentials were sent; the guard turns that into an
    AuthenticationError wherever authentication is required.
    """

    if hasattr(request.state, "identity"):
        return request.state.identity

    user_id = extract_user_id(request)
    identity = None
    if user_id is not None:
        async with get_session_factory(request)() as db:
            user = await load_user(db, user_id)
        try:
            identity = guard.identify(
                user_id=user.id,
                role=user.role,
                organization_id=user.organization_id,
                department_id=user.department_id,
            )
        except ValueError as exc:
            raise AuthenticationError("Invalid or inactive user", {"user_id": user_id, "role": user.role}) from exc

    request.state.identity = identity
    return identity


async def require_authenticated(
    identity: Identity | None = Depends(get_identity),
    guard: AuthorizationGuard = Depends(get_guard),
) -> Identity:
    return guard.ensure_authenticated(identity)


async def require_platform_member(
    identity: Identity | None = Depends(get_identity),
    guard: AuthorizationGuard = Depends(get_guard),
) -> Identity:
    return guard.ensure_platform_member(identity)


def require_role(*roles: Role) -> Callable[..., Awaitable[Identity]]:
    async def dependency(
        identity: Identity | None = Depends(get_identity),
        guard: AuthorizationGuard = Depends(get_guard),
    ) -> Identity:
        return guard.ensure_role(identity, roles)

    return dependency


def authorize(resource: Resource, operation: Operation) -> Callable[..., Awaitable[AuthzContext]]:
    """
    Guard factory used by routes:

        @router.get("/tasks/{id:int}")
        async def get_task(decision: AuthzContext = Depends(authorize(Resource.TASK, Operation.READ))): ...

    On allow the decision is attached to request.state.authz.
    """

    async def dependency(
        request: Request,
        identity: Identity | None = Depends(get_identity),
        guard: AuthorizationGuard = Depends(get_guard),
    ) -> AuthzContext:
        # Anonymous callers get 401 before any hint is parsed.
        identity = guard.ensure_authenticated(identity)
        access = await build_access_request(request)
        decision = await guard.evaluate(identity, resource, operation, access)
        request.state.authz = decision
        return decision

    dependency.__name__ = f"authorize_{resource.value}_{operation.value}"
    return dependency


def get_decision(request: Request) -> AuthzContext:
    """Read-only access to the decision of an already-authorized request."""
    decision = getattr(request.state, "authz", None)
    if decision is None:
        raise RuntimeError("Request was not authorized; add an authorize() dependency to the route.")
    return decision


async def build_access_request(request: Request) -> AccessRequest:
    """
    Collect what context resolution needs from the HTTP request.

    - path param `id`: the targeted entity
    - query `department_id` / `user_id`: listing filters
    - JSON body `department_id` and COLLABORATOR_FIELDS: creation hints
    - query `include_deleted`: restore/undelete flows
    """

    query = request.query_params
    payload = await _json_payload(request)

    collaborator_ids: set[int] = set()
    for field_name in COLLABORATOR_FIELDS:
        values = payload.get(field_name) or []
        if not isinstance(values, list):
            values = [values]
        for value in values:
            collaborator_ids.add(_as_int(value, field_name))

    department_hint = payload.get("department_id", query.get("department_id"))

    return AccessRequest(
        resource_id=_as_optional_int(request.path_params.get("id"), "id"),
        include_deleted=query.get("include_deleted", "").strip().lower() in _TRUTHY,
        department_id=_as_optional_int(department_hint, "department_id"),
        user_id=_as_optional_int(query.get("user_id"), "user_id"),
        collaborator_ids=frozenset(collaborator_ids),
    )


async def _json_payload(request: Request) -> dict[str, Any]:
    if request.method not in ("POST", "PUT", "PATCH"):
        return {}
    if "json" not in request.headers.get("content-type", ""):
        return {}
    body = await request.body()
    if not body:
        return {}
    try:
        payload = await request.json()
    except ValueError:
        # Malformed JSON is reported by the route's own body validation.
        return {}
    return payload if isinstance(payload, dict) else {}


def _as_optional_int(value: Any, name: str) -> int | None:
    if value is None or value == "":
        return None
    return _as_int(value, name)


def _as_int(value: Any, name: str) -> int:
    # An unreadable hint must not silently fall back to the caller's defaults.
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise AuthorizationError(DENIED_MESSAGE, {"reason": "malformed_hint", "field": name})
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise AuthorizationError(DENIED_MESSAGE, {"reason": "malformed_hint", "field": name}) from exc
