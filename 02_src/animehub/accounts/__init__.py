"""Accounts module."""

from .service import AccountService, hash_password, verify_password

__all__ = ["AccountService", "hash_password", "verify_password"]
