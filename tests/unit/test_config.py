"""Unit tests for settings and request models."""

import pytest
from pydantic import ValidationError

from shpool.config import PoolSettings, get_settings
from shpool.models.schemas import CiphertextRequest, DepositRequest, WithdrawalRequest
from shpool.security.auth import AddressAdminPolicy, AnyOfAdminPolicy, TokenAdminPolicy

ADMIN = "0x" + "ad" * 20
OTHER = "0x" + "0e" * 20


class TestPoolSettings:
    """Test environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SHPOOL_DATABASE_URL", raising=False)
        settings = PoolSettings(_env_file=None)
        assert settings.database_url == "sqlite:///shielded_pool.db"
        assert settings.genesis_root_bytes == (1).to_bytes(32, "big")
        assert settings.auto_advance_root is False
        assert settings.admin_policy() is None

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SHPOOL_DATABASE_URL", "sqlite:///other.db")
        monkeypatch.setenv("SHPOOL_AUTO_ADVANCE_ROOT", "true")
        monkeypatch.setenv("SHPOOL_ADMIN_ADDRESSES", f"{ADMIN.upper().replace('0X', '0x')}, {OTHER}")
        settings = PoolSettings(_env_file=None)
        assert settings.database_url == "sqlite:///other.db"
        assert settings.auto_advance_root is True
        assert settings.admin_address_list == [ADMIN, OTHER]

    def test_genesis_root_normalized(self):
        settings = PoolSettings(_env_file=None, genesis_root="0x2")
        assert settings.genesis_root == "0x" + "00" * 31 + "02"

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            PoolSettings(_env_file=None, genesis_root="0xzz")
        with pytest.raises(ValidationError):
            PoolSettings(_env_file=None, log_level="LOUD")
        with pytest.raises(ValidationError):
            PoolSettings(_env_file=None, admin_addresses="0x1234")

    def test_admin_policy(self):
        assert isinstance(PoolSettings(_env_file=None, admin_addresses=ADMIN).admin_policy(), AddressAdminPolicy)
        assert isinstance(PoolSettings(_env_file=None, admin_token_secret="s").admin_policy(), TokenAdminPolicy)
        both = PoolSettings(_env_file=None, admin_addresses=ADMIN, admin_token_secret="s").admin_policy()
        assert isinstance(both, AnyOfAdminPolicy)
        assert both.is_admin(ADMIN)

    def test_get_settings_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestRequestModels:
    """Test pydantic request validation."""

    def test_deposit_request(self):
        request = DepositRequest(commitment="0x11", amount=100, depositor=ADMIN)
        assert request.commitment == "0x" + "00" * 31 + "11"
        assert request.to_kwargs()["expected_next_root"] is None

    def test_deposit_request_rejects_zero(self):
        with pytest.raises(ValidationError):
            DepositRequest(commitment="0x11", amount=0, depositor=ADMIN)

    def test_withdrawal_request(self):
        words = ["0x" + "ab" * 32, "0x28", "0x1", "0x" + "00" * 12 + "b0" * 20]
        request = WithdrawalRequest(proof="0xDEAD", public_inputs=words, ciphertext="0x05")
        kwargs = request.to_kwargs()
        assert kwargs["proof"] == b"\xde\xad"
        assert kwargs["public_inputs"][1] == (40).to_bytes(32, "big")
        assert kwargs["ciphertext"] == (5).to_bytes(32, "big")

    def test_withdrawal_request_too_short(self):
        with pytest.raises(ValidationError):
            WithdrawalRequest(proof="0x00", public_inputs=["0x1", "0x2", "0x3"])

    def test_withdrawal_request_bad_proof(self):
        with pytest.raises(ValidationError):
            WithdrawalRequest(proof="0xnothex", public_inputs=["0x1"] * 4)

    def test_ciphertext_request(self):
        request = CiphertextRequest(nullifier="0xab", recipient=ADMIN)
        assert request.nullifier == "0x" + "00" * 31 + "ab"
        assert request.salt_label == "ShieldedPool.v2b"
