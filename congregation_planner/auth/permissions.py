"""
Permission system.

Role-based access control with:
- A closed set of (resource, action) permissions
- Default roles with predefined permissions
- One checking function used by every endpoint

Identity and role storage live upstream; the role arrives with the request.
"""

from enum import Enum, StrEnum


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================


class Resource(StrEnum):
    WEEKEND_MEETINGS = "weekend_meetings"
    PUBLISHERS = "publishers"
    SPEAKERS = "speakers"
    TALKS = "talks"


class Permission(Enum):
    """Every (resource, action) pair an endpoint can require."""

    # === WEEKEND MEETINGS ===
    WEEKEND_MEETINGS_LIST = (Resource.WEEKEND_MEETINGS, "list")
    WEEKEND_MEETINGS_LIST_HISTORY = (Resource.WEEKEND_MEETINGS, "list_history")
    WEEKEND_MEETINGS_SCHEDULE_PUBLIC_TALKS = (Resource.WEEKEND_MEETINGS, "schedule_public_talks")
    WEEKEND_MEETINGS_SCHEDULE_REST = (Resource.WEEKEND_MEETINGS, "schedule_rest")
    WEEKEND_MEETINGS_MANAGE_EXCEPTIONS = (Resource.WEEKEND_MEETINGS, "manage_exceptions")

    # === PUBLISHERS ===
    PUBLISHERS_LIST = (Resource.PUBLISHERS, "list")
    PUBLISHERS_CREATE = (Resource.PUBLISHERS, "create")
    PUBLISHERS_UPDATE = (Resource.PUBLISHERS, "update")
    PUBLISHERS_LINK_TO_USER = (Resource.PUBLISHERS, "link_to_user")

    # === SPEAKERS ===
    SPEAKERS_LIST = (Resource.SPEAKERS, "list")
    SPEAKERS_CREATE = (Resource.SPEAKERS, "create")
    SPEAKERS_UPDATE = (Resource.SPEAKERS, "update")
    SPEAKERS_ARCHIVE = (Resource.SPEAKERS, "archive")

    # === TALKS ===
    TALKS_LIST = (Resource.TALKS, "list")
    TALKS_CREATE = (Resource.TALKS, "create")
    TALKS_UPDATE = (Resource.TALKS, "update")
    TALKS_FLAG = (Resource.TALKS, "flag")

    @property
    def resource(self) -> Resource:
        return self.value[0]

    @property
    def action(self) -> str:
        return self.value[1]

    def __str__(self) -> str:
        return f"{self.resource}.{self.action}"


# =============================================================================
# DEFAULT ROLES
# =============================================================================


class Role(StrEnum):
    ADMIN = "admin"
    OWNER = "owner"
    PUBLISHER = "publisher"
    TALKS_MANAGER = "talks_manager"
    WEEKEND_MEETINGS_MANAGER = "weekend_meetings_manager"
    PUBLISHERS_MANAGER = "publishers_manager"
    SPEAKERS_MANAGER = "speakers_manager"


SUPERUSER_ROLES = frozenset({Role.ADMIN, Role.OWNER})

DEFAULT_ROLES: dict[Role, frozenset[Permission]] = {
    Role.PUBLISHER: frozenset({
        Permission.WEEKEND_MEETINGS_LIST,
        Permission.SPEAKERS_LIST,
        Permission.TALKS_LIST,
    }),
    Role.TALKS_MANAGER: frozenset({
        Permission.WEEKEND_MEETINGS_LIST,
        Permission.WEEKEND_MEETINGS_LIST_HISTORY,
        Permission.WEEKEND_MEETINGS_SCHEDULE_PUBLIC_TALKS,
        Permission.SPEAKERS_LIST,
        Permission.SPEAKERS_CREATE,
        Permission.SPEAKERS_UPDATE,
        Permission.SPEAKERS_ARCHIVE,
        Permission.TALKS_LIST,
        Permission.TALKS_CREATE,
        Permission.TALKS_UPDATE,
        Permission.TALKS_FLAG,
        Permission.PUBLISHERS_LIST,
    }),
    Role.WEEKEND_MEETINGS_MANAGER: frozenset({
        Permission.WEEKEND_MEETINGS_LIST,
        Permission.WEEKEND_MEETINGS_LIST_HISTORY,
        Permission.WEEKEND_MEETINGS_SCHEDULE_PUBLIC_TALKS,
        Permission.WEEKEND_MEETINGS_SCHEDULE_REST,
        Permission.WEEKEND_MEETINGS_MANAGE_EXCEPTIONS,
        Permission.PUBLISHERS_LIST,
        Permission.SPEAKERS_LIST,
        Permission.TALKS_LIST,
    }),
    Role.PUBLISHERS_MANAGER: frozenset({
        Permission.PUBLISHERS_LIST,
        Permission.PUBLISHERS_CREATE,
        Permission.PUBLISHERS_UPDATE,
        Permission.PUBLISHERS_LINK_TO_USER,
    }),
    Role.SPEAKERS_MANAGER: frozenset({
        Permission.SPEAKERS_LIST,
        Permission.SPEAKERS_CREATE,
        Permission.SPEAKERS_UPDATE,
        Permission.SPEAKERS_ARCHIVE,
        Permission.TALKS_LIST,
    }),
}


def get_role_permissions(role: Role | str) -> frozenset[Permission]:
    """All permissions a role grants. Unknown roles grant nothing."""
    try:
        role = Role(role)
    except ValueError:
        return frozenset()
    if role in SUPERUSER_ROLES:
        return frozenset(Permission)
    return DEFAULT_ROLES.get(role, frozenset())


def has_permission(role: Role | str | None, permission: Permission) -> bool:
    """
    Check whether a role grants a permission.

    Admins and owners are always allowed.
    """
    if role is None:
        return False
    return permission in get_role_permissions(role)
