"""
Capability definitions for the governance API.

Capabilities are named permission strings. Which roles hold which
capabilities is decided outside the governance core; this module only ships a
default role map and the `has_capability` oracle the HTTP layer consults.
"""

from boardbook.core.config import settings

# =============================================================================
# CAPABILITY DEFINITIONS
# =============================================================================

CAPABILITIES = {
    # === MEETINGS ===
    "meetings:read": "View meetings",
    "meetings:manage": "Create, edit and delete meetings",

    # === MINUTES ===
    "meetings:minutes:read_all": "View minutes in every status",
    "meetings:minutes:draft:create": "Start minutes drafts and revisions",
    "meetings:minutes:draft:edit": "Edit and delete minutes drafts",
    "meetings:minutes:draft:submit": "Submit minutes for review",
    "meetings:minutes:revise": "Send submitted minutes back for revision",
    "meetings:minutes:finalize": "Approve, publish and archive minutes",

    # === MOTIONS ===
    "meetings:motions:read": "View motions",
    "meetings:motions:manage": "Record motions and votes",

    # === ANNOTATIONS ===
    "governance:annotations:write": "Write and view unpublished annotations",
    "governance:annotations:publish": "Publish and unpublish annotations",

    # === REVIEW FLAGS ===
    "governance:flags:read": "View review flags",
    "governance:flags:create": "Raise and edit review flags",
    "governance:flags:resolve": "Work on, resolve and dismiss review flags",
}

ADMIN_CAPABILITY = "admin:full"

_READ = {
    "meetings:read",
    "meetings:minutes:read_all",
    "meetings:motions:read",
    "governance:flags:read",
}

DEFAULT_ROLES: dict[str, set[str]] = {
    "admin": {ADMIN_CAPABILITY},
    "president": _READ
    | {
        "meetings:manage",
        "meetings:minutes:revise",
        "meetings:minutes:finalize",
        "governance:flags:create",
        "governance:flags:resolve",
    },
    "secretary": _READ
    | {
        "meetings:manage",
        "meetings:minutes:draft:create",
        "meetings:minutes:draft:edit",
        "meetings:minutes:draft:submit",
        "meetings:minutes:finalize",
        "meetings:motions:manage",
        "governance:flags:create",
    },
    "parliamentarian": _READ
    | {
        "governance:annotations:write",
        "governance:annotations:publish",
        "governance:flags:create",
        "governance:flags:resolve",
    },
    "board_member": _READ | {"governance:flags:create"},
    "member": {"meetings:read"},
}


def get_role_capabilities(role: str) -> set[str]:
    """Get the capabilities granted to a role, including configured overrides."""
    if role in settings.role_capabilities:
        return set(settings.role_capabilities[role])
    return DEFAULT_ROLES.get(role, set())


def has_capability(role: str | None, capability: str) -> bool:
    """
    Check if a role holds a capability.

    Args:
        role: Role name as supplied by the authenticating gateway
        capability: Capability string (e.g., "governance:flags:resolve")

    Returns:
        True if the capability is granted
    """
    if not role:
        return False

    granted = get_role_capabilities(role)
    if ADMIN_CAPABILITY in granted:
        return True

    return capability in granted
