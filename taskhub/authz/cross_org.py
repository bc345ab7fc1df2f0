from __future__ import annotations

from typing import TYPE_CHECKING

from .context import Identity
from .types import PLATFORM_SOURCE

if TYPE_CHECKING:
    from .policy import CrossOrgRule


def is_cross_org_allowed(cross_org: CrossOrgRule | None, identity: Identity) -> bool:
    """
    Decide whether ``identity`` may use a cross-tenant grant.

    Only the caller is inspected, never the target entity:
    - ``platform``: the caller belongs to the platform organization.
    - an organization id: the caller belongs to that organization.
    - anything else (e.g. future org groups/types): deny.
    """

    if cross_org is None:
        return False

    source = cross_org.source
    if source == PLATFORM_SOURCE:
        return identity.is_platform_member
    # bool is an int subclass; a YAML `from: true` is not an organization id.
    if isinstance(source, int) and not isinstance(source, bool):
        return identity.organization_id == source
    return False
