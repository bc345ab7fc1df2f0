"""Data-access contract consumed by the context resolvers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Protocol

from .types import Resource


@dataclass(frozen=True)
class TargetEntity:
    """
    Minimal, read-only projection of a stored entity.

    ``collaborators`` maps a relationship name (``assignees``, ``watchers``,
    ``mentions``, ``recipients``, ``read_by``) to the user ids it holds. Each
    resolver decides which of those names count as ownership.
    """

    id: int
    organization_id: int
    department_id: int | None = None
    owner_id: int | None = None
    collaborators: Mapping[str, frozenset[int]] = field(default_factory=dict)
    is_deleted: bool = False

    def collaborator_ids(self, *names: str) -> frozenset[int]:
        ids: set[int] = set()
        for name in names:
            ids.update(self.collaborators.get(name, frozenset()))
        return frozenset(ids)


class EntityRepository(Protocol):
    """One per resource type, wired at composition time."""

    async def find_by_id(self, entity_id: int, *, include_deleted: bool = False) -> TargetEntity | None:
        ...

    async def exists_in_organization(self, entity_id: int, organization_id: int) -> bool:
        ...


Repositories = Mapping[Resource, EntityRepository]
