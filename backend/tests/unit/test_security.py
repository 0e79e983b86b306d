"""Tests for the access policy and token handling."""

from datetime import timedelta

import pytest

from app.core.security import (
    ACCESS_POLICY,
    ROLES,
    SecurityManager,
    allowed_roles,
    is_authorized,
)


class TestAccessPolicy:
    """The route-to-roles table."""

    @pytest.mark.parametrize(
        "action,role,expected",
        [
            ("patients:list", "dentist", True),
            ("patients:create", "receptionist", True),
            ("patients:create", "dentist", False),
            ("patients:delete", "admin", True),
            ("patients:delete", "receptionist", False),
            ("attachments:upload", "receptionist", True),
            ("attachments:delete", "dentist", True),
            ("attachments:delete", "receptionist", False),
            ("appointments:create", "dentist", True),
            ("appointments:delete", "receptionist", False),
            ("users:register", "dentist", False),
        ],
    )
    def test_single_role(self, action, role, expected):
        assert is_authorized([role], action) is expected

    def test_any_role_matches(self):
        assert is_authorized(["receptionist", "dentist"], "attachments:delete")

    def test_open_actions_admit_any_authenticated_user(self):
        assert allowed_roles("patients:read") is None
        assert is_authorized([], "patients:read")

    def test_restricted_actions_deny_empty_roles(self):
        assert not is_authorized([], "attachments:list")

    def test_unknown_action(self):
        with pytest.raises(KeyError):
            is_authorized(["admin"], "patients:export")

    def test_policy_only_names_known_roles(self):
        for roles in ACCESS_POLICY.values():
            if roles is not None:
                assert roles <= ROLES


class TestSecurityManager:
    """Password hashing and JWT round trips."""

    @pytest.fixture
    def manager(self) -> SecurityManager:
        return SecurityManager(secret_key="k" * 48, access_token_expire_minutes=15)

    def test_password_hashing(self, manager: SecurityManager):
        hashed = manager.hash_password("dentist123")
        assert hashed != "dentist123"
        assert manager.verify_password("dentist123", hashed)
        assert not manager.verify_password("dentist124", hashed)

    def test_token_round_trip(self, manager: SecurityManager):
        token = manager.create_access_token(
            {"sub": "user_1", "username": "dr.who", "roles": ["dentist"]}
        )

        data = manager.decode_token(token)

        assert data is not None
        assert data.user_id == "user_1"
        assert data.roles == ["dentist"]

    def test_expired_token(self, manager: SecurityManager):
        token = manager.create_access_token({"sub": "user_1"}, expires_delta=timedelta(seconds=-5))
        assert manager.decode_token(token) is None

    def test_wrong_key(self, manager: SecurityManager):
        token = manager.create_access_token({"sub": "user_1"})
        other = SecurityManager(secret_key="z" * 48)
        assert other.decode_token(token) is None
