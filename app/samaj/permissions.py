"""
Permission catalogue. Each key is a boolean flag on a Role.
"""
from __future__ import annotations

PERMISSION_CATEGORIES: dict[str, dict[str, str]] = {
    "users": {
        "canViewUsers": "View users",
        "canApproveUsers": "Approve users",
        "canRejectUsers": "Reject users",
        "canEditUsers": "Edit users",
        "canDeleteUsers": "Delete users",
        "canChangeRoles": "Change user roles",
        "canDeactivateUsers": "Deactivate users",
        "canSearchUsers": "Search users",
        "canBulkApproveUsers": "Bulk approve users",
        "canBulkRejectUsers": "Bulk reject users",
        "canManageUsers": "Manage users",
    },
    "familyMembers": {
        "canViewFamilyMembers": "View family members",
        "canApproveFamilyMembers": "Approve family members",
        "canRejectFamilyMembers": "Reject family members",
        "canEditFamilyMembers": "Edit family members",
        "canDeleteFamilyMembers": "Delete family members",
        "canAddFamilyMembers": "Add family members",
        "canViewPendingFamilyMembers": "View pending family members",
        "canManageFamilyMembers": "Manage family members",
    },
    "committee": {
        "canManageCommittee": "Manage committee",
        "canViewCommittee": "View committee",
    },
    "events": {
        "canCreateEvents": "Create events",
        "canEditEvents": "Edit events",
        "canDeleteEvents": "Delete events",
        "canViewEvents": "View events",
        "canManageEventMedia": "Manage event media",
        "canManageEventRSVP": "Manage event RSVPs",
        "canModerateEvents": "Moderate events",
    },
    "polls": {
        "canViewPolls": "View polls",
        "canVoteInPolls": "Vote in polls",
        "canCreatePolls": "Create polls",
        "canManagePolls": "Manage polls",
    },
    "comments": {
        "canViewComments": "View comments",
        "canPostComments": "Post comments",
        "canModerateComments": "Moderate comments",
        "canDeleteAnyComment": "Delete any comment",
    },
    "notifications": {
        "canSendNotifications": "Send notifications",
        "canManageNotifications": "Manage notifications",
    },
    "media": {
        "canUploadMedia": "Upload media",
        "canDeleteMedia": "Delete media",
    },
    "reports": {
        "canViewReports": "View reports",
        "canExportData": "Export data",
        "canViewStats": "View statistics",
    },
    "settings": {
        "canManageSettings": "Manage settings",
        "canManageRoles": "Manage roles",
        "canManageEnums": "Manage enums",
    },
    "activityLogs": {
        "canViewActivityLogs": "View activity logs",
        "canManageActivityLogs": "Manage activity logs",
    },
    "admin": {
        "canCreateAdmin": "Create admins",
        "canManageAdmins": "Manage admins",
    },
}

ALL_PERMISSIONS: list[str] = [key for group in PERMISSION_CATEGORIES.values() for key in group]

# The admin role may never lose these.
CRITICAL_ADMIN_PERMISSIONS = ("canManageRoles", "canManageSettings")

_USER_DEFAULTS = (
    "canViewEvents",
    "canViewCommittee",
    "canViewPolls",
    "canVoteInPolls",
    "canViewComments",
    "canPostComments",
)

# System roles created by roles.service.initialize_system_roles.
SYSTEM_ROLES: list[dict] = [
    {
        "key": "admin",
        "name": "Admin",
        "description": "Full system access with all permissions",
        "permissions": tuple(ALL_PERMISSIONS),
    },
    {
        "key": "user",
        "name": "User",
        "description": "Basic user with limited permissions",
        "permissions": _USER_DEFAULTS,
    },
    {
        "key": "committee",
        "name": "Committee Member",
        "description": "Committee member with viewing and reporting permissions",
        "permissions": _USER_DEFAULTS + ("canViewUsers", "canViewFamilyMembers", "canViewReports"),
    },
]


def is_valid_permission(key: str) -> bool:
    return key in ALL_PERMISSIONS


def permission_label(key: str) -> str:
    for group in PERMISSION_CATEGORIES.values():
        if key in group:
            return group[key]
    return key


def permission_category(key: str) -> str | None:
    for category, group in PERMISSION_CATEGORIES.items():
        if key in group:
            return category
    return None


def default_permission_map() -> dict[str, bool]:
    return {key: False for key in ALL_PERMISSIONS}


def permissions_by_category() -> dict[str, list[dict[str, str]]]:
    return {
        category: [{"key": key, "label": label} for key, label in group.items()]
        for category, group in PERMISSION_CATEGORIES.items()
    }
