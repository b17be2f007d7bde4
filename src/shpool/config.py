"""Runtime configuration.

Settings are read from ``SHPOOL_*`` environment variables and an optional
``.env`` file in the working directory:

    SHPOOL_DATABASE_URL=sqlite:///shielded_pool.db
    SHPOOL_GENESIS_ROOT=0x...01
    SHPOOL_ADMIN_ADDRESSES=0xabc...,0xdef...
    SHPOOL_ADMIN_TOKEN_SECRET=change-me
"""

import logging
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shpool.core.interfaces import AdminCapability
from shpool.crypto.ciphertext import POOL_SALT_LABEL
from shpool.utils.encoding import bytes_to_hex, normalize_address, to_bytes32

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class PoolSettings(BaseSettings):
    """Pool configuration."""

    model_config = SettingsConfigDict(env_prefix="SHPOOL_", env_file=".env", extra="ignore")

    database_url: str = Field(default="sqlite:///shielded_pool.db", description="SQLAlchemy URL")
    genesis_root: str = Field(default="0x" + "00" * 31 + "01", description="Initial current root")
    auto_advance_root: bool = Field(default=False, description="Advance the root on every deposit")
    pool_salt_label: str = Field(default=POOL_SALT_LABEL, description="Label hashed into the v2b pool salt")
    admin_addresses: str = Field(default="", description="Comma-separated addresses allowed to register roots")
    admin_token_secret: Optional[str] = Field(default=None, description="HMAC key for operator JWTs")
    admin_token_algorithm: str = Field(default="HS256")
    field_hash_vectors: Optional[str] = Field(default=None, description="JSON file of field hash vectors")
    log_level: str = Field(default="INFO")

    @field_validator("genesis_root")
    @classmethod
    def validate_genesis_root(cls, v: str) -> str:
        return bytes_to_hex(to_bytes32(v))

    @field_validator("admin_addresses", mode="before")
    @classmethod
    def normalize_admin_addresses(cls, v) -> str:
        if isinstance(v, str):
            v = v.split(",")
        return ",".join(normalize_address(a.strip()) for a in v if a.strip())

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def admin_address_list(self) -> List[str]:
        return [a for a in self.admin_addresses.split(",") if a]

    @property
    def genesis_root_bytes(self) -> bytes:
        return to_bytes32(self.genesis_root)

    def admin_policy(self) -> Optional[AdminCapability]:
        """Admin capability built from the configured addresses and token secret."""
        from shpool.security.auth import AddressAdminPolicy, AnyOfAdminPolicy, TokenAdminPolicy

        policies: List[AdminCapability] = []
        if self.admin_address_list:
            policies.append(AddressAdminPolicy(self.admin_address_list))
        if self.admin_token_secret:
            policies.append(TokenAdminPolicy(self.admin_token_secret, self.admin_token_algorithm))

        if not policies:
            return None
        if len(policies) == 1:
            return policies[0]
        return AnyOfAdminPolicy(*policies)


@lru_cache()
def get_settings() -> PoolSettings:
    """Get cached settings (loads ``.env`` once)."""
    load_dotenv()
    return PoolSettings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(level=level or get_settings().log_level, format=LOG_FORMAT)
