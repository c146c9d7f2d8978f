"""
Unit tests for the authorization predicates.
"""
from types import SimpleNamespace

import pytest

from society.errors import Forbidden
from society.policy import Capability, Decision, check, is_admin, is_self, is_self_or_admin


ADMIN = SimpleNamespace(id=1, role="admin")
OWNER = SimpleNamespace(id=2, role="resident")
STRANGER = SimpleNamespace(id=3, role="resident")


class TestPredicates:

    def test_is_self(self):
        assert is_self(2, 2).allowed
        assert not is_self(3, 2).allowed
        assert not is_self(2, None).allowed

    def test_is_admin(self):
        assert is_admin("admin").allowed
        assert not is_admin("resident").allowed
        assert not is_admin(None).allowed

    def test_is_self_or_admin(self):
        assert is_self_or_admin(2, "resident", 2).allowed
        assert is_self_or_admin(1, "admin", 2).allowed
        assert not is_self_or_admin(3, "resident", 2).allowed

    def test_decision_is_truthy(self):
        assert Decision(True, "ok")
        assert not Decision(False, "no")


class TestCheck:

    @pytest.mark.parametrize(
        "capability, user, expected",
        [
            (Capability.SELF, OWNER, True),
            (Capability.SELF, ADMIN, False),
            (Capability.ADMIN, ADMIN, True),
            (Capability.ADMIN, OWNER, False),
            (Capability.SELF_OR_ADMIN, OWNER, True),
            (Capability.SELF_OR_ADMIN, ADMIN, True),
            (Capability.SELF_OR_ADMIN, STRANGER, False),
        ],
    )
    def test_capabilities(self, capability, user, expected):
        assert check(capability, user, OWNER.id).allowed is expected

    def test_enforce_raises_forbidden(self):
        with pytest.raises(Forbidden) as exc_info:
            check(Capability.ADMIN, OWNER).enforce("Admins only")
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Admins only"

    def test_enforce_allowed_is_silent(self):
        check(Capability.SELF, OWNER, OWNER.id).enforce()
