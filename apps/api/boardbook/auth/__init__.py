"""
Auth module - actor identity and capability checks.
"""

from boardbook.auth.capabilities import CAPABILITIES, DEFAULT_ROLES, has_capability
from boardbook.auth.dependencies import Actor, get_current_actor, require_capability

__all__ = [
    "CAPABILITIES",
    "DEFAULT_ROLES",
    "Actor",
    "get_current_actor",
    "has_capability",
    "require_capability",
]
