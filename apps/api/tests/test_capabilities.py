"""
Tests for the capability oracle.
"""

import pytest

from boardbook.auth.capabilities import CAPABILITIES, DEFAULT_ROLES, has_capability
from boardbook.core.config import settings


class TestHasCapability:
    """Tests for role capability checks."""

    def test_default_role_grants(self) -> None:
        assert has_capability("secretary", "meetings:minutes:draft:create")
        assert has_capability("president", "meetings:minutes:revise")
        assert has_capability("parliamentarian", "governance:annotations:publish")

    def test_default_role_denies(self) -> None:
        assert not has_capability("secretary", "meetings:minutes:revise")
        assert not has_capability("president", "meetings:minutes:draft:edit")
        assert not has_capability("member", "governance:flags:read")

    def test_admin_holds_everything(self) -> None:
        assert all(has_capability("admin", capability) for capability in CAPABILITIES)

    @pytest.mark.parametrize("role", [None, "", "treasurer"])
    def test_unknown_or_missing_role(self, role) -> None:
        assert not has_capability(role, "meetings:read")

    def test_roles_only_use_known_capabilities(self) -> None:
        known = set(CAPABILITIES) | {"admin:full"}
        for role, granted in DEFAULT_ROLES.items():
            assert granted <= known, role

    def test_configured_roles_override_defaults(self, monkeypatch) -> None:
        monkeypatch.setattr(
            settings,
            "role_capabilities",
            {"treasurer": ["meetings:read"], "member": []},
        )

        assert has_capability("treasurer", "meetings:read")
        assert not has_capability("member", "meetings:read")
        assert has_capability("secretary", "meetings:manage")
