from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria

from taskhub.authz import Scope


@event.listens_for(Session, "do_orm_execute")
def _apply_tenant_filter(execute_state) -> None:
    """
    Transparent tenant scoping for authorized request sessions.

    Route code can keep writing plain queries:
        await db.scalars(select(Task).where(Task.id == id))
    and a same-tenant decision still restricts every tenant-owned model to the
    caller's organization. Cross-org decisions are left unfiltered.
    """

    if not execute_state.is_select:
        return

    authz = execute_state.session.info.get("authz")
    if authz is None or authz.scope is not Scope.ORG:
        return

    # Local import to avoid cycles.
    from taskhub.models.tenancy import Department, User  # noqa: WPS433 (local import)
    from taskhub.models.work import (  # noqa: WPS433 (local import)
        Attachment,
        Material,
        Notification,
        Task,
        TaskActivity,
        TaskComment,
        Vendor,
    )

    org_id = authz.organization_id
    execute_state.statement = execute_state.statement.options(
        *(
            with_loader_criteria(model, lambda cls: cls.organization_id == org_id, include_aliases=True)
            for model in (Department, User, Task, TaskActivity, TaskComment, Material, Vendor, Notification, Attachment)
        )
    )
