from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.authz import AuthzContext, Context, Operation, Resource, Scope
from taskhub.db.session import get_db
from taskhub.models.tenancy import User
from taskhub.models.work import Task
from taskhub.schemas.authz import DecisionOut
from taskhub.schemas.tasks import TaskCreate, TaskOut
from taskhub.security.dependencies import authorize, get_decision

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=list[TaskOut])
async def list_tasks(
    department_id: int | None = None,
    user_id: int | None = None,
    decision: AuthzContext = Depends(authorize(Resource.TASK, Operation.READ)),
    db: AsyncSession = Depends(get_db),
) -> list[Task]:
    # Same-org decisions are tenant-scoped by the session filter (taskhub.db.filters).
    stmt = select(Task).where(Task.is_deleted.is_(False)).order_by(Task.id)
    if department_id is not None:
        stmt = stmt.where(Task.department_id == department_id)
    if user_id is not None:
        stmt = stmt.where(Task.created_by_id == user_id)

    # Rows never reach past the decided context.
    if decision.scope is Scope.ORG:
        if decision.context is Context.OWN_DEPT:
            stmt = stmt.where(Task.department_id == decision.department_id)
        elif decision.context is Context.OWN:
            stmt = stmt.where(_owned_by(decision.user_id))
    return list((await db.scalars(stmt)).all())


def _owned_by(user_id: int):
    """Tasks the user created, is assigned to or watches."""
    return or_(
        Task.created_by_id == user_id,
        Task.assignees.any(User.id == user_id),
        Task.watchers.any(User.id == user_id),
    )


@router.get("/{id:int}", response_model=TaskOut)
async def get_task(
    id: int,
    _decision: AuthzContext = Depends(authorize(Resource.TASK, Operation.READ)),
    db: AsyncSession = Depends(get_db),
) -> Task:
    task = (await db.scalars(select(Task).where(Task.id == id, Task.is_deleted.is_(False)))).first()
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


@router.get(
    "/{id:int}/access",
    response_model=DecisionOut,
    dependencies=[Depends(authorize(Resource.TASK, Operation.READ))],
)
async def task_access(decision: AuthzContext = Depends(get_decision)) -> AuthzContext:
    """How the caller reaches this task (scope and context), for debugging policies."""
    return decision


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreate,
    decision: AuthzContext = Depends(authorize(Resource.TASK, Operation.CREATE)),
    db: AsyncSession = Depends(get_db),
) -> Task:
    task = Task(
        title=payload.title,
        description=payload.description,
        organization_id=decision.organization_id,
        department_id=payload.department_id or decision.department_id,
        created_by_id=decision.user_id,
    )
    if payload.assignee_ids:
        task.assignees = list(await db.scalars(select(User).where(User.id.in_(payload.assignee_ids))))
    if payload.watcher_ids:
        task.watchers = list(await db.scalars(select(User).where(User.id.in_(payload.watcher_ids))))
    db.add(task)
    await db.commit()
    await db.refresh(task)
    return task
