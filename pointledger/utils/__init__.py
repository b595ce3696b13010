"""Shared utilities."""

from .env_utils import parse_bool_env, parse_int_env, parse_str_env
from .timer_utils import elapsed_ms, utcnow

__all__ = [
    "parse_bool_env",
    "parse_int_env",
    "parse_str_env",
    "elapsed_ms",
    "utcnow",
]
