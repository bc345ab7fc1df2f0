from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    department_id: int | None = None
    assignee_ids: list[int] = Field(default_factory=list)
    watcher_ids: list[int] = Field(default_factory=list)


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    status: str
    organization_id: int
    department_id: int
    created_by_id: int
    created_at: datetime
