"""Repositories for ledger tables outside the core wallet flows."""

from .account_repository import get_account, upsert_account

__all__ = ["get_account", "upsert_account"]
