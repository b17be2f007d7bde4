"""Security and authorization module."""

from shpool.security.auth import (
    AddressAdminPolicy,
    TokenAdminPolicy,
    AnyOfAdminPolicy,
    create_admin_token,
    verify_admin_token,
)

__all__ = [
    "AddressAdminPolicy",
    "TokenAdminPolicy",
    "AnyOfAdminPolicy",
    "create_admin_token",
    "verify_admin_token",
]
