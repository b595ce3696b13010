"""HTTP API for the credit ledger."""

from .app import create_app

__all__ = ["create_app"]
