"""
Authorization guard: the orchestrator of one access decision.

    Start -> AuthenticationCheck -> PolicyLookup -> CrossOrgCheck
          -> ContextResolution -> OpCheck -> Allow | Deny

Every path ends in exactly one of: an ``AuthzContext`` (allow),
``AuthenticationError``, ``AuthorizationError`` or ``InternalError``.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from taskhub.errors import AppError, AuthenticationError, AuthorizationError, InternalError

from .context import AccessRequest, AuthzContext, Identity
from .cross_org import is_cross_org_allowed
from .policy import PolicyTable
from .resolvers import ResolverRegistry
from .types import Context, Operation, Resource, Role, Scope

logger = logging.getLogger(__name__)

DENIED_MESSAGE = "insufficient permission"


class AuthorizationGuard:
    """
    Stateless per call; holds only the read-only policy and the resolvers.

    Usage:
        guard = AuthorizationGuard(table, ResolverRegistry.default(repos), platform_organization_id=1)
        identity = guard.identify(user_id=7, role="User", organization_id=2, department_id=5)
        decision = await guard.evaluate(identity, Resource.TASK, Operation.READ, AccessRequest(resource_id=3))
    """

    def __init__(
        self,
        policy: PolicyTable,
        resolvers: ResolverRegistry,
        platform_organization_id: int,
    ) -> None:
        self._policy = policy
        self._resolvers = resolvers
        self._platform_organization_id = platform_organization_id

    @property
    def policy(self) -> PolicyTable:
        return self._policy

    @property
    def platform_organization_id(self) -> int:
        return self._platform_organization_id

    def replace_policy(self, policy: PolicyTable) -> None:
        """Swap in a reloaded table; checks already running keep the old one."""
        self._policy = policy
        logger.info("Policy table replaced rules=%d", len(policy))

    def identify(self, *, user_id: int, role: Role | str, organization_id: int, department_id: int) -> Identity:
        """Build the caller identity, deriving platform membership from configuration."""
        return Identity(
            id=user_id,
            role=Role(role),
            organization_id=organization_id,
            department_id=department_id,
            is_platform_member=organization_id == self._platform_organization_id,
        )

    # ---- Main decision API ----------------------------------------------------------

    async def evaluate(
        self,
        identity: Identity | None,
        resource: Resource,
        operation: Operation,
        access: AccessRequest | None = None,
    ) -> AuthzContext:
        """
        Decide whether ``identity`` may perform ``operation`` on ``resource``.

        Algorithm:
        1. No identity -> AuthenticationError.
        2. No policy rule for (resource, role) -> deny, nothing is looked up.
        3. Cross-org grant matching the caller and listing the op -> allow crossOrg.
        4. No same-tenant context lists the op -> deny, nothing is looked up.
        5. Resolve the context (may query the data store) and check the op -> allow org.
        6. Otherwise deny.
        """

        if identity is None:
            raise AuthenticationError("Authentication required", {"resource": resource.value, "operation": operation.value})

        access = access or AccessRequest()
        policy = self._policy

        rule = policy.lookup(resource, identity.role)
        if rule is None:
            raise self._deny(identity, resource, operation, scope=None, reason="missing_policy")

        cross_org = rule.cross_org
        if cross_org is not None and operation in cross_org.operations and is_cross_org_allowed(cross_org, identity):
            return self._allow(identity, resource, operation, Scope.CROSS_ORG, None, cross_org.source)

        if not rule.grants_in_org(operation):
            raise self._deny(identity, resource, operation, scope=Scope.ORG, reason="operation_not_permitted")

        try:
            context = await self._resolvers.resolve(resource, operation, access, identity)
        except AppError:
            raise
        except Exception as exc:
            logger.error(
                "authz: context resolution failed resource=%s operation=%s user_id=%s resource_id=%s",
                resource.value,
                operation.value,
                identity.id,
                access.resource_id,
                exc_info=True,
            )
            raise InternalError(
                "context resolution failed",
                {
                    "resource": resource.value,
                    "operation": operation.value,
                    "user_id": identity.id,
                    "resource_id": access.resource_id,
                    "error": repr(exc),
                },
            ) from exc

        if context is None:
            raise self._deny(identity, resource, operation, scope=Scope.ORG, reason="no_context")

        if operation not in rule.operations_for(context):
            raise self._deny(
                identity, resource, operation, scope=Scope.ORG, reason="operation_not_permitted", context=context
            )

        return self._allow(identity, resource, operation, Scope.ORG, context, None)

    # ---- Auxiliary checks ----------------------------------------------------------

    def ensure_authenticated(self, identity: Identity | None) -> Identity:
        if identity is None:
            raise AuthenticationError("Authentication required")
        return identity

    def ensure_platform_member(self, identity: Identity | None) -> Identity:
        """Gate for platform-only operations such as deleting a tenant."""
        identity = self.ensure_authenticated(identity)
        if not identity.is_platform_member:
            logger.warning(
                "authz: deny platform-only operation user_id=%s organization_id=%s",
                identity.id,
                identity.organization_id,
            )
            raise AuthorizationError(
                DENIED_MESSAGE,
                {"reason": "platform_member_required", "role": identity.role.value, "user_id": identity.id},
            )
        return identity

    def ensure_role(self, identity: Identity | None, roles: Iterable[Role]) -> Identity:
        identity = self.ensure_authenticated(identity)
        allowed = frozenset(roles)
        if identity.role not in allowed:
            logger.warning("authz: deny role=%s required=%s", identity.role.value, sorted(r.value for r in allowed))
            raise AuthorizationError(
                DENIED_MESSAGE,
                {"reason": "role_required", "role": identity.role.value, "user_id": identity.id},
            )
        return identity

    # ---- Helpers -------------------------------------------------------------------

    def _allow(
        self,
        identity: Identity,
        resource: Resource,
        operation: Operation,
        scope: Scope,
        context: Context | None,
        cross_org_source: str | int | None,
    ) -> AuthzContext:
        decision = AuthzContext(
            resource=resource,
            operation=operation,
            role=identity.role,
            scope=scope,
            context=context,
            is_platform_member=identity.is_platform_member,
            cross_org_source=cross_org_source,
            user_id=identity.id,
            organization_id=identity.organization_id,
            department_id=identity.department_id,
        )
        logger.debug("authz: allow %s", decision.to_dict())
        return decision

    def _deny(
        self,
        identity: Identity,
        resource: Resource,
        operation: Operation,
        *,
        scope: Scope | None,
        reason: str,
        context: Context | None = None,
    ) -> AuthorizationError:
        metadata: dict[str, Any] = {
            "resource": resource.value,
            "operation": operation.value,
            "role": identity.role.value,
            "scope": scope.value if scope is not None else None,
            "context": context.value if context is not None else None,
            "reason": reason,
            "user_id": identity.id,
            "organization_id": identity.organization_id,
        }
        logger.warning("authz: deny %s", metadata)
        return AuthorizationError(DENIED_MESSAGE, metadata)
