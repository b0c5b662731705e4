"""
Role hierarchy and permission sets.

Roles are totally ordered by rank. Each role maps to a fixed, immutable set of
permissions built once at import time; SUPER_ADMIN holds ``Permission.ALL``
which satisfies every check.

    PARTICIPANT < ORG_VIEWER < ORG_LEADER < ORG_ADMIN < ORG_OWNER < SUPER_ADMIN
"""
import enum
from types import MappingProxyType
from typing import FrozenSet, Optional


class Role(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ORG_OWNER = "ORG_OWNER"
    ORG_ADMIN = "ORG_ADMIN"
    ORG_LEADER = "ORG_LEADER"
    ORG_VIEWER = "ORG_VIEWER"
    PARTICIPANT = "PARTICIPANT"


class Permission(str, enum.Enum):
    # Organization management
    ORG_MANAGE = "org_manage"
    ORG_VIEW = "org_view"
    # User management
    USERS_MANAGE = "users_manage"
    USERS_VIEW = "users_view"
    # Results and assessments
    RESULTS_MANAGE = "results_manage"
    RESULTS_VIEW = "results_view"
    # Placements
    PLACEMENTS_MANAGE = "placements_manage"
    PLACEMENTS_VIEW = "placements_view"
    EXPORT_DATA = "export_data"
    ASSESSMENT_TAKE = "assessment_take"
    ALL = "all"


ROLE_HIERARCHY = MappingProxyType({
    Role.SUPER_ADMIN: 100,
    Role.ORG_OWNER: 90,
    Role.ORG_ADMIN: 70,
    Role.ORG_LEADER: 50,
    Role.ORG_VIEWER: 20,
    Role.PARTICIPANT: 10,
})

_PARTICIPANT_PERMS = frozenset({Permission.ASSESSMENT_TAKE})

_VIEWER_PERMS = _PARTICIPANT_PERMS | {
    Permission.ORG_VIEW,
    Permission.RESULTS_VIEW,
    Permission.PLACEMENTS_VIEW,
}

_LEADER_PERMS = _VIEWER_PERMS | {
    Permission.USERS_VIEW,
    Permission.PLACEMENTS_MANAGE,
}

_ADMIN_PERMS = _LEADER_PERMS | {
    Permission.USERS_MANAGE,
    Permission.RESULTS_MANAGE,
    Permission.EXPORT_DATA,
}

_OWNER_PERMS = frozenset(p for p in Permission if p is not Permission.ALL)

ROLE_PERMISSIONS = MappingProxyType({
    Role.SUPER_ADMIN: frozenset({Permission.ALL}),
    Role.ORG_OWNER: _OWNER_PERMS,
    Role.ORG_ADMIN: _ADMIN_PERMS,
    Role.ORG_LEADER: _LEADER_PERMS,
    Role.ORG_VIEWER: _VIEWER_PERMS,
    Role.PARTICIPANT: _PARTICIPANT_PERMS,
})


def parse_role(value) -> Optional[Role]:
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def role_rank(role: Role) -> int:
    return ROLE_HIERARCHY.get(role, 0)


def permissions_for(role: Role) -> FrozenSet[Permission]:
    return ROLE_PERMISSIONS.get(role, frozenset())


def role_has_permission(role: Role, permission: Permission) -> bool:
    perms = permissions_for(role)
    return Permission.ALL in perms or permission in perms


def has_role_at_least(role: Role, minimum: Role) -> bool:
    return role_rank(role) >= role_rank(minimum)
