"""
Policy table and YAML loader.

The policy is a static mapping ``resource × role → PolicyRule``:

    policy:
      Task:
        User:
          org:
            own: [create, read, update]
            ownDept: [create, read]
        SuperAdmin:
          org:
            own: [create, read, update, delete, restore]
          crossOrg:
            from: platform
            ops: [read]

Key ideas:
- Load YAML once at startup and validate it strictly; any unknown resource,
  role, context or operation rejects the whole file.
- A (resource, role) pair without an entry has no permissions at all.
- The table is immutable once built and can be shared by concurrent requests.

This module has no FastAPI dependency.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
import yaml

from taskhub.errors import PolicyConfigError

from .context import Identity
from .cross_org import is_cross_org_allowed
from .types import Context, Operation, Resource, Role

logger = logging.getLogger(__name__)


# ---- Data structures -----------------------------------------------------------------


@dataclass(frozen=True)
class CrossOrgRule:
    """Cross-tenant grant: ``operations`` are allowed when ``source`` matches the caller."""

    source: str | int
    operations: frozenset[Operation]


@dataclass(frozen=True)
class PolicyRule:
    """Permission declaration for one (resource, role) pair."""

    org: Mapping[Context, frozenset[Operation]]
    cross_org: CrossOrgRule | None = None

    def operations_for(self, context: Context) -> frozenset[Operation]:
        return self.org.get(context, frozenset())

    def grants_in_org(self, operation: Operation) -> bool:
        """True if at least one same-tenant context lists ``operation``."""
        return any(operation in ops for ops in self.org.values())


# ---- YAML schema ---------------------------------------------------------------------


class _CrossOrgModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    source: str | int = Field(alias="from")
    ops: list[Operation] = Field(default_factory=list)

    @field_validator("source", mode="before")
    @classmethod
    def _reject_bool_source(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("crossOrg.from must be 'platform' or an organization id")
        return value


class _RuleModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    org: dict[Context, list[Operation]] | None = None
    cross_org: _CrossOrgModel | None = Field(default=None, alias="crossOrg")

    @model_validator(mode="after")
    def _require_a_scope(self) -> _RuleModel:
        if self.org is None and self.cross_org is None:
            raise ValueError("rule must define 'org', 'crossOrg' or both")
        return self


class _PolicyModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    policy: dict[Resource, dict[Role, _RuleModel]] = Field(default_factory=dict)


def _to_rule(model: _RuleModel) -> PolicyRule:
    org = {ctx: frozenset(ops) for ctx, ops in (model.org or {}).items()}
    cross_org = None
    if model.cross_org is not None:
        source = model.cross_org.source
        if isinstance(source, str):
            source = source.strip()
        cross_org = CrossOrgRule(source=source, operations=frozenset(model.cross_org.ops))
    return PolicyRule(org=MappingProxyType(org), cross_org=cross_org)


# ---- Policy table --------------------------------------------------------------------


class PolicyTable:
    """
    Read-only lookup of ``PolicyRule`` by (resource, role).

    Usage:
        table = PolicyTable.from_yaml(Path("policy.yaml"))
        rule = table.lookup(Resource.TASK, Role.USER)
    """

    def __init__(self, rules: Mapping[tuple[Resource, Role], PolicyRule]) -> None:
        self._rules: Mapping[tuple[Resource, Role], PolicyRule] = MappingProxyType(dict(rules))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> PolicyTable:
        """Validate an already-parsed document (the YAML top level)."""
        try:
            model = _PolicyModel.model_validate(raw)
        except ValidationError as exc:
            raise PolicyConfigError(f"invalid policy configuration: {exc}") from exc

        rules: dict[tuple[Resource, Role], PolicyRule] = {}
        for resource, by_role in model.policy.items():
            for role, rule in by_role.items():
                rules[(resource, role)] = _to_rule(rule)
        return cls(rules)

    @classmethod
    def from_yaml(cls, path: Path) -> PolicyTable:
        """Load and validate the policy YAML from disk."""
        try:
            raw_text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PolicyConfigError(f"Cannot read policy config: {path}") from exc
        try:
            raw = yaml.safe_load(raw_text) or {}
        except yaml.YAMLError as exc:
            raise PolicyConfigError(f"Invalid YAML in policy config: {path}: {exc}") from exc
        if not isinstance(raw, dict) or "policy" not in raw:
            raise PolicyConfigError(f"Missing top-level 'policy' key in config: {path}")
        table = cls.from_mapping(raw)
        logger.info("Loaded policy table path=%s rules=%d", path, len(table))
        return table

    def lookup(self, resource: Resource, role: Role) -> PolicyRule | None:
        return self._rules.get((resource, role))

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[tuple[Resource, Role]]:
        return iter(self._rules)


# ---- Policy-only helpers -------------------------------------------------------------


def has_permission(
    table: PolicyTable,
    identity: Identity | None,
    resource: Resource,
    operation: Operation,
    context: Context | None = None,
) -> bool:
    """
    Answer "could this caller ever perform ``operation``?" from the policy alone.

    No entity is consulted. With ``context`` only that context is checked,
    otherwise any same-tenant context will do. Useful for shaping UI and
    controller branches; it is not a substitute for ``AuthorizationGuard``.
    """

    if identity is None:
        return False
    rule = table.lookup(resource, identity.role)
    if rule is None:
        return False

    if rule.cross_org is not None and operation in rule.cross_org.operations:
        if is_cross_org_allowed(rule.cross_org, identity):
            return True

    if context is not None:
        return operation in rule.operations_for(context)
    return rule.grants_in_org(operation)


def allowed_operations(table: PolicyTable, identity: Identity | None, resource: Resource) -> frozenset[Operation]:
    """All operations the caller holds on ``resource`` in any scope or context."""

    if identity is None:
        return frozenset()
    rule = table.lookup(resource, identity.role)
    if rule is None:
        return frozenset()

    ops: set[Operation] = set()
    if rule.cross_org is not None and is_cross_org_allowed(rule.cross_org, identity):
        ops.update(rule.cross_org.operations)
    for context_ops in rule.org.values():
        ops.update(context_ops)
    return frozenset(ops)
