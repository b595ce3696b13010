"""Timing and clock helpers."""

import time
from datetime import datetime, timezone


def elapsed_ms(started: float) -> float:
    """Milliseconds since a time.perf_counter() reading."""
    return (time.perf_counter() - started) * 1000


def utcnow() -> datetime:
    """Naive UTC now; all ledger timestamps are stored naive in UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
