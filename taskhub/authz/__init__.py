"""
Access-control engine for the task platform.

This package has no dependency on FastAPI or SQLAlchemy. The web layer
(``taskhub.security``) builds an ``Identity`` and an ``AccessRequest`` from the
HTTP request and asks ``AuthorizationGuard.evaluate`` for a decision; the data
layer (``taskhub.db.repositories``) supplies the ``EntityRepository`` objects the
context resolvers read from.
"""

from .context import AccessRequest, AuthzContext, Identity
from .cross_org import is_cross_org_allowed
from .guard import AuthorizationGuard
from .policy import CrossOrgRule, PolicyRule, PolicyTable, allowed_operations, has_permission
from .repositories import EntityRepository, Repositories, TargetEntity
from .resolvers import ContextResolver, ResolverRegistry
from .types import PLATFORM_SOURCE, Context, Operation, Resource, Role, Scope

__all__ = [
    "AccessRequest",
    "AuthorizationGuard",
    "AuthzContext",
    "Context",
    "ContextResolver",
    "CrossOrgRule",
    "EntityRepository",
    "Identity",
    "Operation",
    "PLATFORM_SOURCE",
    "PolicyRule",
    "PolicyTable",
    "Repositories",
    "Resource",
    "ResolverRegistry",
    "Role",
    "Scope",
    "TargetEntity",
    "allowed_operations",
    "has_permission",
    "is_cross_org_allowed",
]
