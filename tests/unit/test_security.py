"""Unit tests for admin authorization."""

from datetime import timedelta

import pytest

from shpool.security.auth import (
    AddressAdminPolicy,
    AnyOfAdminPolicy,
    TokenAdminPolicy,
    create_admin_token,
    verify_admin_token,
)

SECRET = "test-secret-key"
ADMIN = "0x" + "ad" * 20


class TestAdminTokens:
    """Test JWT operator token creation and verification."""

    def test_create_admin_token(self):
        token, expiry = create_admin_token("operator-1", SECRET)
        assert token
        assert expiry is not None

    def test_verify_valid_token(self):
        token, _ = create_admin_token("operator-1", SECRET)
        payload = verify_admin_token(token, SECRET)
        assert payload["sub"] == "operator-1"
        assert payload["role"] == "admin"

    def test_wrong_secret(self):
        token, _ = create_admin_token("operator-1", SECRET)
        assert verify_admin_token(token, "other-secret") is None

    def test_expired_token(self):
        token, _ = create_admin_token("operator-1", SECRET, expires_delta=timedelta(seconds=-10))
        assert verify_admin_token(token, SECRET) is None

    @pytest.mark.parametrize("token", ["", "invalid.token.here"])
    def test_invalid_token(self, token):
        assert verify_admin_token(token, SECRET) is None


class TestAdminPolicies:
    """Test admin capability checks."""

    def test_address_policy(self):
        policy = AddressAdminPolicy([ADMIN])
        assert policy.is_admin(ADMIN)
        assert policy.is_admin(ADMIN.upper().replace("0X", "0x"))
        assert not policy.is_admin("0x" + "01" * 20)
        assert not policy.is_admin(None)
        assert not policy.is_admin("not-an-address")

    def test_token_policy(self):
        policy = TokenAdminPolicy(SECRET)
        token, _ = create_admin_token("operator-1", SECRET)
        assert policy.is_admin(token)
        assert policy.is_admin(f"Bearer {token}")
        assert not policy.is_admin(None)

    def test_token_policy_requires_admin_role(self):
        token, _ = create_admin_token("viewer", SECRET, role="viewer")
        assert not TokenAdminPolicy(SECRET).is_admin(token)

    def test_any_of(self):
        token, _ = create_admin_token("operator-1", SECRET)
        policy = AnyOfAdminPolicy(AddressAdminPolicy([ADMIN]), TokenAdminPolicy(SECRET))
        assert policy.is_admin(ADMIN)
        assert policy.is_admin(f"Bearer {token}")
        assert not policy.is_admin("0x" + "01" * 20)
