"""Point ledger: metered AI usage credits for individuals and organizations."""

__version__ = "1.0.0"
