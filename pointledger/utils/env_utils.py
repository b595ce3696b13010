"""Environment variable utilities.

Typed parsing of environment variables with defaults. Invalid values fall
back to the default instead of raising.
"""

import os
from typing import Optional


def parse_bool_env(key: str, default: bool = True) -> bool:
    """Parse a boolean environment variable.

    Args:
        key: The environment variable name.
        default: Value used when the variable is not set.

    Returns:
        True only for 'true' (case-insensitive).

    Examples:
        >>> os.environ["DB_ECHO"] = "TRUE"
        >>> parse_bool_env("DB_ECHO", default=False)
        True
    """
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() == "true"


def parse_int_env(key: str, default: int) -> int:
    """Parse an integer environment variable, falling back to default."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def parse_str_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Parse a string environment variable.

    Empty strings are treated as unset.
    """
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value
