"""Core ledger components."""
