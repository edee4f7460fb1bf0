"""Permission matrix for dashboard role-based access control.

Permission strings have the form ``category.action``.
"""
from typing import Iterable, List, Optional

from beanie.operators import In

from models.helpers import UserRole
from models.security import Permissions

DASHBOARD_ACCESS = "dashboard.access"

ALL_PERMISSIONS = [
    DASHBOARD_ACCESS,
    # Statistics
    "stats.view_overview",
    "stats.view_users",
    "stats.view_messages",
    "stats.view_moderation",
    "stats.export",
    # User management
    "users.view",
    "users.view_details",
    "users.ban",
    "users.mute",
    "users.kick",
    "users.warn",
    "users.restrict_media",
    "users.manage_roles",
    "users.export",
    # Settings
    "settings.view",
    "settings.edit_general",
    "settings.edit_invite",
    "settings.edit_slowmode",
    "settings.edit_maintenance",
    "settings.edit_welcome",
    "settings.edit_rules",
    "settings.edit_spam",
    # Content
    "content.view_filters",
    "content.manage_filters",
    "content.view_invites",
    "content.manage_invites",
    "content.view_pins",
    "content.manage_pins",
    "content.manage_scheduled",
    # Moderation
    "moderation.view_reports",
    "moderation.resolve_reports",
    "moderation.view_audit",
    "moderation.export_audit",
    # Logs
    "logs.view_bot",
    "logs.export",
    # Links
    "links.view",
    "links.manage",
    # Permission management
    "permissions.view",
    "permissions.manage_roles",
    "permissions.assign_permissions",
]

ROLE_PERMISSIONS = {
    UserRole.OWNER: list(ALL_PERMISSIONS),
    UserRole.ADMIN: list(ALL_PERMISSIONS),
    UserRole.MOD: [
        DASHBOARD_ACCESS,
        "stats.view_overview",
        "stats.view_users",
        "stats.view_messages",
        "stats.view_moderation",
        "users.view",
        "users.view_details",
        "users.mute",
        "users.kick",
        "users.warn",
        "users.restrict_media",
        "moderation.view_reports",
        "moderation.resolve_reports",
        "moderation.view_audit",
        "content.view_filters",
        "content.view_invites",
        "content.view_pins",
        "logs.view_bot",
        "links.view",
        "links.manage",
        "settings.view",
    ],
    # No dashboard access unless granted through a Permissions document
    UserRole.WHITELIST: [],
}

# Roles that may open a dashboard session without any extra grant
DASHBOARD_ROLES = frozenset({UserRole.OWNER, UserRole.ADMIN, UserRole.MOD})


def get_permissions_for_role(
    role: Optional[UserRole], custom_permissions: Iterable[str] = ()
) -> List[str]:
    """Role defaults merged with extra grants, order preserved, duplicates dropped."""
    base = ROLE_PERMISSIONS.get(role, []) if role is not None else []
    return list(dict.fromkeys([*base, *custom_permissions]))


async def resolve_permissions(
    role: Optional[UserRole], custom_roles: Iterable[str] = ()
) -> List[str]:
    """Permissions of a user holding ``role`` and the named ``custom_roles``.

    Grants stored in the database apply to the system role and to every
    custom role; a user without a system role may still reach the dashboard
    through a custom role granting ``dashboard.access``.
    """
    system_role = [role.value] if role is not None else []
    role_names = list(dict.fromkeys([*system_role, *custom_roles]))
    custom: List[str] = []
    if role_names:
        grants = await Permissions.find(In(Permissions.role, role_names)).to_list()
        by_role = {grant.role: grant.permissions for grant in grants}
        for name in role_names:
            custom.extend(by_role.get(name, []))
    return get_permissions_for_role(role, custom)


def has_dashboard_access(role: Optional[UserRole], permissions: Iterable[str]) -> bool:
    """Whether a user may obtain a dashboard session at all."""
    if role in DASHBOARD_ROLES:
        return True
    return DASHBOARD_ACCESS in set(permissions)


def has_permission(permissions: Iterable[str], required: str) -> bool:
    """Exact, ``*`` or ``category.*`` match of ``required``."""
    granted = set(permissions)
    if "*" in granted or required in granted:
        return True
    category = required.split(".", 1)[0]
    return f"{category}.*" in granted
