"""Admin authorization for privileged ledger operations."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

import jwt

from shpool.core.interfaces import AdminCapability
from shpool.utils.encoding import normalize_address

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ADMIN_ROLE = "admin"
ACCESS_TOKEN_EXPIRE_HOURS = 24


def create_admin_token(
    subject: str,
    secret_key: str,
    role: str = ADMIN_ROLE,
    expires_delta: Optional[timedelta] = None,
    algorithm: str = ALGORITHM,
) -> tuple[str, datetime]:
    """
    Create a JWT bearer credential for an operator.

    Returns:
        tuple: (token, expiry_datetime)
    """
    if expires_delta is None:
        expires_delta = timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    to_encode = {
        "sub": subject,
        "role": role,
        "exp": expire,
        "iat": now,
    }

    encoded_jwt = jwt.encode(to_encode, secret_key, algorithm=algorithm)
    return encoded_jwt, expire


def verify_admin_token(
    token: str, secret_key: str, algorithm: str = ALGORITHM
) -> Optional[Dict[str, Any]]:
    """
    Verify and decode an operator token.

    Returns:
        Dictionary with token payload if valid, None if invalid/expired
    """
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        logger.warning("Rejected expired admin token")
        return None
    except jwt.InvalidTokenError:
        return None


class AddressAdminPolicy(AdminCapability):
    """Admin capability granted to a fixed set of addresses."""

    def __init__(self, admins: Iterable[str]):
        self.admins = {normalize_address(a) for a in admins}

    def is_admin(self, caller: Optional[str]) -> bool:
        if not caller:
            return False
        try:
            return normalize_address(caller) in self.admins
        except ValueError:
            return False


class TokenAdminPolicy(AdminCapability):
    """Admin capability proven by a JWT bearer token with role ``admin``."""

    def __init__(self, secret_key: str, algorithm: str = ALGORITHM):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def is_admin(self, caller: Optional[str]) -> bool:
        if not caller:
            return False
        if caller.startswith("Bearer "):
            caller = caller[7:]
        payload = verify_admin_token(caller, self.secret_key, self.algorithm)
        return bool(payload and payload.get("role") == ADMIN_ROLE)


class AnyOfAdminPolicy(AdminCapability):
    """Grants admin if any of the wrapped policies does."""

    def __init__(self, *policies: AdminCapability):
        self.policies = policies

    def is_admin(self, caller: Optional[str]) -> bool:
        return any(p.is_admin(caller) for p in self.policies)
