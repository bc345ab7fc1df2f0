"""Tests for per-resource context resolution against fake repositories."""

import pytest

from taskhub.authz import AccessRequest, Context, Operation, Resource, ResolverRegistry, TargetEntity
from taskhub.authz.resolvers import DEFAULT_RESOLVERS, TaskResolver

from conftest import ACME, ACME_HOUSE, ACME_MAINT, GLOBEX, GLOBEX_SALES

CALLER = 100
COLLEAGUE = 101

DEPARTMENTAL = [
    Resource.TASK,
    Resource.TASK_ACTIVITY,
    Resource.TASK_COMMENT,
    Resource.MATERIAL,
    Resource.ATTACHMENT,
]

OWNED = DEPARTMENTAL + [Resource.VENDOR, Resource.NOTIFICATION]


@pytest.fixture
def registry(repos):
    return ResolverRegistry.default(repos)


@pytest.fixture
def caller(make_identity):
    return make_identity(user_id=CALLER, organization_id=ACME, department_id=ACME_MAINT)


async def _resolve(registry, caller, resource, operation=Operation.READ, **access):
    return await registry.resolve(resource, operation, AccessRequest(**access), caller)


def _entity(entity_id=1, organization_id=ACME, department_id=ACME_MAINT, owner_id=COLLEAGUE, **kwargs):
    return TargetEntity(
        id=entity_id,
        organization_id=organization_id,
        department_id=department_id,
        owner_id=owner_id,
        **kwargs,
    )


# ---- Existing entities -----------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "entity,expected",
    [
        (_entity(owner_id=CALLER), Context.OWN),
        (_entity(collaborators={"assignees": frozenset({CALLER})}), Context.OWN),
        (_entity(collaborators={"watchers": frozenset({CALLER, 102})}), Context.OWN),
        (_entity(), Context.OWN_DEPT),
        (_entity(department_id=ACME_HOUSE), Context.CROSS_DEPT),
        (_entity(organization_id=GLOBEX, department_id=GLOBEX_SALES), None),
    ],
    ids=["creator", "assignee", "watcher", "same-dept", "other-dept", "other-tenant"],
)
async def test_task_entity_context(repos, registry, caller, entity, expected):
    repos[Resource.TASK].add(entity)
    assert await _resolve(registry, caller, Resource.TASK, resource_id=entity.id) is expected


@pytest.mark.asyncio
async def test_missing_entity_resolves_to_none(registry, caller):
    assert await _resolve(registry, caller, Resource.TASK, resource_id=999) is None


@pytest.mark.asyncio
async def test_deleted_entity_hidden_unless_included(repos, registry, caller):
    repos[Resource.MATERIAL].add(_entity(owner_id=CALLER, is_deleted=True))

    assert await _resolve(registry, caller, Resource.MATERIAL, resource_id=1) is None
    assert await _resolve(registry, caller, Resource.MATERIAL, resource_id=1, include_deleted=True) is Context.OWN


@pytest.mark.asyncio
async def test_restore_always_looks_at_deleted_entities(repos, registry, caller):
    repos[Resource.MATERIAL].add(_entity(owner_id=CALLER, is_deleted=True))

    assert await _resolve(registry, caller, Resource.MATERIAL, Operation.RESTORE, resource_id=1) is Context.OWN
    assert repos[Resource.MATERIAL].calls == [("find_by_id", 1, True)]


@pytest.mark.asyncio
async def test_activity_ownership_is_creator_only(repos, registry, caller):
    repos[Resource.TASK_ACTIVITY].add(_entity(collaborators={"assignees": frozenset({CALLER})}))
    assert await _resolve(registry, caller, Resource.TASK_ACTIVITY, resource_id=1) is Context.OWN_DEPT


@pytest.mark.asyncio
async def test_comment_mentions_count_as_own(repos, registry, caller):
    repos[Resource.TASK_COMMENT].add(_entity(department_id=ACME_HOUSE, collaborators={"mentions": frozenset({CALLER})}))
    assert await _resolve(registry, caller, Resource.TASK_COMMENT, resource_id=1) is Context.OWN


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "collaborators,owner_id",
    [
        ({"recipients": frozenset({CALLER})}, None),
        ({"read_by": frozenset({CALLER})}, None),
        ({}, CALLER),
    ],
    ids=["recipient", "read-by", "creator"],
)
async def test_notification_ownership(repos, registry, caller, collaborators, owner_id):
    repos[Resource.NOTIFICATION].add(_entity(department_id=ACME_HOUSE, owner_id=owner_id, collaborators=collaborators))
    assert await _resolve(registry, caller, Resource.NOTIFICATION, resource_id=1) is Context.OWN


@pytest.mark.asyncio
async def test_notification_for_others_in_department(repos, registry, caller):
    repos[Resource.NOTIFICATION].add(_entity(owner_id=None, collaborators={"recipients": frozenset({COLLEAGUE})}))
    assert await _resolve(registry, caller, Resource.NOTIFICATION, resource_id=1) is Context.OWN_DEPT


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "entity,expected",
    [
        (_entity(department_id=None, owner_id=CALLER), Context.OWN),
        (_entity(department_id=None), Context.OWN_DEPT),
        (_entity(organization_id=GLOBEX, department_id=None), None),
    ],
    ids=["creator", "same-tenant", "other-tenant"],
)
async def test_vendor_entity_context(repos, registry, caller, entity, expected):
    repos[Resource.VENDOR].add(entity)
    assert await _resolve(registry, caller, Resource.VENDOR, resource_id=1) is expected


@pytest.mark.asyncio
async def test_organization_context(registry, caller):
    assert await _resolve(registry, caller, Resource.ORGANIZATION, resource_id=ACME) is Context.OWN
    assert await _resolve(registry, caller, Resource.ORGANIZATION, resource_id=GLOBEX) is None
    assert await _resolve(registry, caller, Resource.ORGANIZATION) is Context.OWN


@pytest.mark.asyncio
async def test_department_context(repos, registry, caller):
    assert await _resolve(registry, caller, Resource.DEPARTMENT, resource_id=ACME_MAINT) is Context.OWN_DEPT
    assert await _resolve(registry, caller, Resource.DEPARTMENT, resource_id=ACME_HOUSE) is Context.CROSS_DEPT
    assert await _resolve(registry, caller, Resource.DEPARTMENT, resource_id=GLOBEX_SALES) is None


@pytest.mark.asyncio
async def test_department_is_never_own(repos, registry, caller):
    repos[Resource.DEPARTMENT].add(TargetEntity(id=22, organization_id=ACME, department_id=22, owner_id=CALLER))
    assert await _resolve(registry, caller, Resource.DEPARTMENT, resource_id=22) is Context.CROSS_DEPT


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "user_id,expected",
    [(CALLER, Context.OWN), (COLLEAGUE, Context.OWN_DEPT), (102, Context.CROSS_DEPT), (300, None)],
    ids=["self", "colleague", "other-dept", "other-tenant"],
)
async def test_user_entity_context(registry, caller, user_id, expected):
    assert await _resolve(registry, caller, Resource.USER, resource_id=user_id) is expected


# ---- Invariants across resources ---------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("resource", OWNED)
async def test_other_tenant_entities_never_resolve(repos, registry, caller, resource):
    # Even the caller's own creation is out of reach once it sits in another tenant.
    repos[resource].add(_entity(organization_id=GLOBEX, department_id=GLOBEX_SALES, owner_id=CALLER))
    assert await _resolve(registry, caller, resource, resource_id=1) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("resource", OWNED + [Resource.USER])
async def test_owner_always_gets_own(repos, registry, caller, resource):
    entity_id = CALLER if resource is Resource.USER else 1
    repos[resource].add(_entity(entity_id=entity_id, department_id=ACME_HOUSE, owner_id=CALLER))
    assert await _resolve(registry, caller, resource, resource_id=entity_id) is Context.OWN


# ---- Creation ------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("resource", DEPARTMENTAL + [Resource.DEPARTMENT, Resource.USER, Resource.NOTIFICATION])
async def test_creation_without_hint_defaults_to_own_department(registry, caller, total_calls, resource):
    assert await _resolve(registry, caller, resource, Operation.CREATE) is Context.OWN_DEPT
    assert total_calls() == 0


@pytest.mark.asyncio
async def test_creation_in_own_department_needs_no_lookup(registry, caller, total_calls):
    assert await _resolve(registry, caller, Resource.TASK, Operation.CREATE, department_id=ACME_MAINT) is Context.OWN_DEPT
    assert total_calls() == 0


@pytest.mark.asyncio
async def test_creation_in_other_department_of_tenant(repos, registry, caller):
    context = await _resolve(registry, caller, Resource.TASK, Operation.CREATE, department_id=ACME_HOUSE)
    assert context is Context.CROSS_DEPT
    assert repos[Resource.DEPARTMENT].calls == [("exists_in_organization", ACME_HOUSE, ACME)]


@pytest.mark.asyncio
@pytest.mark.parametrize("department_id", [GLOBEX_SALES, 404])
async def test_creation_in_foreign_or_unknown_department(registry, caller, department_id):
    assert await _resolve(registry, caller, Resource.TASK, Operation.CREATE, department_id=department_id) is None


@pytest.mark.asyncio
async def test_creation_assigning_self_is_own(registry, caller):
    context = await _resolve(
        registry,
        caller,
        Resource.TASK,
        Operation.CREATE,
        department_id=ACME_HOUSE,
        collaborator_ids=frozenset({CALLER, COLLEAGUE}),
    )
    assert context is Context.OWN


@pytest.mark.asyncio
async def test_creation_assigning_self_in_foreign_department_is_denied(registry, caller):
    context = await _resolve(
        registry,
        caller,
        Resource.TASK,
        Operation.CREATE,
        department_id=GLOBEX_SALES,
        collaborator_ids=frozenset({CALLER}),
    )
    assert context is None


@pytest.mark.asyncio
async def test_vendor_creation_is_tenant_wide(registry, caller, total_calls):
    context = await _resolve(registry, caller, Resource.VENDOR, Operation.CREATE, department_id=GLOBEX_SALES)
    assert context is Context.OWN_DEPT
    assert total_calls() == 0


# ---- Listing -------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("resource", DEPARTMENTAL + [Resource.DEPARTMENT, Resource.USER, Resource.VENDOR])
async def test_listing_defaults_to_own_department(registry, caller, resource):
    assert await _resolve(registry, caller, resource) is Context.OWN_DEPT


@pytest.mark.asyncio
async def test_notification_listing_defaults_to_own(registry, caller):
    assert await _resolve(registry, caller, Resource.NOTIFICATION) is Context.OWN
    assert await _resolve(registry, caller, Resource.NOTIFICATION, department_id=ACME_MAINT) is Context.OWN_DEPT


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "filters,expected",
    [
        ({"department_id": ACME_MAINT}, Context.OWN_DEPT),
        ({"department_id": ACME_HOUSE}, Context.CROSS_DEPT),
        ({"department_id": GLOBEX_SALES}, None),
        ({"user_id": CALLER}, Context.OWN),
        ({"user_id": COLLEAGUE}, Context.OWN_DEPT),
        ({"user_id": 102}, Context.CROSS_DEPT),
        ({"user_id": 300}, None),
        ({"user_id": 999}, None),
        ({"department_id": GLOBEX_SALES, "user_id": CALLER}, None),
        ({"department_id": ACME_HOUSE, "user_id": CALLER}, Context.CROSS_DEPT),
        ({"department_id": ACME_MAINT, "user_id": CALLER}, Context.OWN_DEPT),
        ({"department_id": ACME_MAINT, "user_id": 102}, Context.CROSS_DEPT),
        ({"department_id": ACME_HOUSE, "user_id": 999}, None),
    ],
)
async def test_task_listing_filters(registry, caller, filters, expected):
    assert await _resolve(registry, caller, Resource.TASK, **filters) is expected


# ---- Registry ------------------------------------------------------------------------


def test_registry_requires_every_resource(repos):
    resolvers = [cls(repos) for cls in DEFAULT_RESOLVERS if cls is not TaskResolver]
    with pytest.raises(ValueError, match="Task"):
        ResolverRegistry(resolvers)


def test_registry_rejects_duplicates(repos):
    resolvers = [cls(repos) for cls in DEFAULT_RESOLVERS] + [TaskResolver(repos)]
    with pytest.raises(ValueError, match="duplicate"):
        ResolverRegistry(resolvers)


def test_default_registry_requires_every_repository(repos):
    del repos[Resource.VENDOR]
    with pytest.raises(ValueError, match="Vendor"):
        ResolverRegistry.default(repos)


def test_registry_lookup(registry):
    for resource in Resource:
        assert registry.for_resource(resource).resource is resource
    assert isinstance(registry.for_resource(Resource.TASK), TaskResolver)
