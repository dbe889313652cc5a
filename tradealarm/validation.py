"""Input validation utilities for security boundaries.

This module provides validation functions for external input reaching the
session engine from the HTTP control surface (user identifiers, balances,
thresholds, reminder cadence, result limits).

Chat text never goes through here: the classifier turns malformed chat
input into an ignored event instead of raising.
"""

import re
from typing import Any, Optional

from .exceptions import TradeAlarmError


class ValidationError(TradeAlarmError):
    """Raised when input validation fails.

    Use this instead of ValueError for validation errors to allow
    callers to distinguish validation failures from other errors.
    """
    pass


_IDENTIFIER_PATTERN = re.compile(r'^-?[A-Za-z0-9_@.:-]+$')


def validate_user_identifier(identifier: Any) -> str:
    """Validate an opaque user identifier (Telegram chat id).

    Args:
        identifier: User key, string or integer chat id

    Returns:
        Identifier as a stripped string

    Raises:
        ValidationError: If identifier empty, too long or malformed

    Examples:
        >>> validate_user_identifier(123456789)
        "123456789"
        >>> validate_user_identifier("-100200300")
        "-100200300"
        >>> validate_user_identifier("")  # Blocked
        ValidationError: identifier must be a non-empty string
    """
    if isinstance(identifier, bool) or identifier is None:
        raise ValidationError("identifier must be a non-empty string")

    if isinstance(identifier, int):
        identifier = str(identifier)

    if not isinstance(identifier, str) or not identifier.strip():
        raise ValidationError("identifier must be a non-empty string")

    identifier = identifier.strip()

    if len(identifier) > 64:
        raise ValidationError(f"identifier too long (max 64 chars): {identifier[:16]}...")

    if not _IDENTIFIER_PATTERN.match(identifier):
        raise ValidationError(f"Invalid identifier format: {identifier}")

    return identifier


def _coerce_int(value: Any, name: str) -> int:
    """Convert value to int, rejecting bools, floats with fractions and junk."""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer, got: bool")

    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{name} must be a whole number, got: {value}")
        return int(value)

    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{name} must be an integer, got: {type(value).__name__}"
        )


def validate_amount(value: Any, name: str = "amount") -> int:
    """Validate a signed integer amount in minor units (e.g. start balance).

    Examples:
        >>> validate_amount("100000", "start_balance")
        100000
        >>> validate_amount(-500, "start_balance")
        -500
    """
    return _coerce_int(value, name)


def validate_threshold(value: Any, name: str = "threshold") -> int:
    """Validate a non-negative threshold; 0 means disabled.

    Raises:
        ValidationError: If negative or not an integer

    Examples:
        >>> validate_threshold(50000, "target_win")
        50000
        >>> validate_threshold(0, "stop_loss")  # OK - disabled
        0
        >>> validate_threshold(-1, "stop_loss")  # Blocked
        ValidationError: stop_loss must not be negative
    """
    num = _coerce_int(value, name)

    if num < 0:
        raise ValidationError(f"{name} must not be negative, got: {num}")

    return num


def validate_interval_minutes(value: Any, max_minutes: int = 24 * 60) -> int:
    """Validate reminder cadence in minutes.

    Raises:
        ValidationError: If not a positive integer or longer than a day
    """
    num = _coerce_int(value, "interval_minutes")

    if num < 1:
        raise ValidationError(f"interval_minutes must be at least 1, got: {num}")

    if num > max_minutes:
        raise ValidationError(
            f"interval_minutes cannot exceed {max_minutes}, got: {num}"
        )

    return num


def validate_limit(limit: Optional[int], max_limit: int = 1000) -> Optional[int]:
    """Validate result limit parameter.

    Args:
        limit: Number of results to return
        max_limit: Maximum allowed limit

    Returns:
        Validated limit or None

    Raises:
        ValidationError: If limit invalid

    Examples:
        >>> validate_limit(100)
        100
        >>> validate_limit(None)  # OK - means no limit
        None
        >>> validate_limit(999999)  # Blocked
        ValidationError: Limit cannot exceed 1000
    """
    if limit is None:
        return None

    limit = _coerce_int(limit, "limit")

    if limit < 1:
        raise ValidationError(f"Limit must be at least 1, got: {limit}")

    if limit > max_limit:
        raise ValidationError(
            f"Limit cannot exceed {max_limit}, got: {limit}"
        )

    return limit
