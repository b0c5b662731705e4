import pytest

from kingdomops.core.errors import DenyReason, OrganizationMismatchError, PermissionDeniedError
from kingdomops.services.authorization import ResourceScope, authorize, can_manage_user, require
from kingdomops.services.identity import EffectiveIdentity, IdentityResolver, Principal
from kingdomops.services.roles import (
    ROLE_HIERARCHY, ROLE_PERMISSIONS, Permission, Role, has_role_at_least, permissions_for, role_has_permission,
)


def identity(role, org=None):
    return EffectiveIdentity.of(Principal("u1", role, org))


def test_hierarchy_is_a_total_order():
    ranks = [ROLE_HIERARCHY[r] for r in (Role.PARTICIPANT, Role.ORG_VIEWER, Role.ORG_LEADER, Role.ORG_ADMIN, Role.ORG_OWNER, Role.SUPER_ADMIN)]
    assert ranks == sorted(ranks) and len(set(ranks)) == len(ranks)
    assert has_role_at_least(Role.ORG_ADMIN, Role.ORG_LEADER)
    assert not has_role_at_least(Role.ORG_VIEWER, Role.ORG_LEADER)


def test_permission_sets_grow_with_rank():
    assert Permission.RESULTS_MANAGE not in permissions_for(Role.ORG_LEADER)
    assert Permission.RESULTS_MANAGE in permissions_for(Role.ORG_ADMIN)
    assert permissions_for(Role.ORG_VIEWER) <= permissions_for(Role.ORG_LEADER) <= permissions_for(Role.ORG_ADMIN)
    assert Permission.ALL not in permissions_for(Role.ORG_OWNER)
    assert all(role_has_permission(Role.SUPER_ADMIN, p) for p in Permission)


def test_role_tables_are_read_only():
    with pytest.raises(TypeError):
        ROLE_PERMISSIONS[Role.PARTICIPANT] = frozenset(Permission)
    with pytest.raises(TypeError):
        ROLE_HIERARCHY[Role.PARTICIPANT] = 1000
    with pytest.raises(AttributeError):
        ROLE_PERMISSIONS[Role.PARTICIPANT].add(Permission.EXPORT_DATA)


def test_insufficient_role_is_checked_first():
    decision = authorize(identity(Role.PARTICIPANT, "org-a"), Permission.RESULTS_VIEW, ResourceScope("org-b"))
    assert not decision
    assert decision.reason is DenyReason.INSUFFICIENT_ROLE


def test_org_admin_cannot_reach_another_organization():
    admin = identity(Role.ORG_ADMIN, "org-a")
    assert authorize(admin, Permission.RESULTS_VIEW, ResourceScope("org-a")).allowed
    denied = authorize(admin, Permission.RESULTS_VIEW, ResourceScope("org-b"))
    assert denied.reason is DenyReason.ORGANIZATION_MISMATCH
    with pytest.raises(OrganizationMismatchError) as exc:
        require(admin, Permission.RESULTS_VIEW, ResourceScope("org-b"))
    assert exc.value.required == "results_view"


def test_identity_without_organization_is_denied_scoped_resources():
    viewer = identity(Role.ORG_VIEWER)
    assert authorize(viewer, Permission.RESULTS_VIEW).allowed
    assert authorize(viewer, Permission.RESULTS_VIEW, ResourceScope("org-a")).reason is DenyReason.ORGANIZATION_MISMATCH


def test_super_admin_crosses_organizations_until_bound_to_one(store):
    resolver = IdentityResolver(store)
    admin = Principal("root", Role.SUPER_ADMIN)
    assert authorize(resolver.resolve(admin), Permission.RESULTS_MANAGE, ResourceScope("org-b")).allowed

    resolver.set_view_as(admin, organization_id="org-a")
    bound = resolver.resolve(admin)
    assert bound.role is Role.SUPER_ADMIN and bound.organization_overridden
    assert authorize(bound, Permission.RESULTS_MANAGE, ResourceScope("org-a")).allowed
    assert authorize(bound, Permission.RESULTS_MANAGE, ResourceScope("org-b")).reason is DenyReason.ORGANIZATION_MISMATCH


def test_super_admin_viewing_as_leader_gets_leader_permissions(store):
    resolver = IdentityResolver(store)
    admin = Principal("root", Role.SUPER_ADMIN)
    resolver.set_view_as(admin, role=Role.ORG_LEADER)
    effective = resolver.resolve(admin)
    assert effective.role is Role.ORG_LEADER and effective.principal_role is Role.SUPER_ADMIN
    decision = authorize(effective, Permission.RESULTS_MANAGE)
    assert decision.reason is DenyReason.INSUFFICIENT_ROLE
    with pytest.raises(PermissionDeniedError):
        require(effective, Permission.RESULTS_MANAGE)


def test_can_manage_user():
    admin = identity(Role.ORG_ADMIN, "org-a")
    assert can_manage_user(admin, Role.ORG_LEADER, "org-a")
    assert not can_manage_user(admin, Role.ORG_ADMIN, "org-a")
    assert not can_manage_user(admin, Role.PARTICIPANT, "org-b")
    assert can_manage_user(identity(Role.SUPER_ADMIN), Role.ORG_OWNER, "org-z")
