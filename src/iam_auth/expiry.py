"""
Token expiry policy.

A token is treated as stale once a configured fraction of its declared
lifetime has passed, so that callers never present a token that expires
mid-request. Deadlines are expressed on the monotonic clock and are immune
to wall-clock adjustments.
"""

import math
from typing import Optional, Union

from iam_auth.errors import InvalidConfigurationError
from iam_auth.models import TokenRecord

# Expiry threshold bounds (both exclusive)
DEFAULT_EXPIRY_THRESHOLD = 0.85
MIN_EXPIRY_THRESHOLD = 0.1
MAX_EXPIRY_THRESHOLD = 1.0


def compute_refresh_deadline(
    now: float,
    issued_lifetime_seconds: int,
    threshold: float,
) -> float:
    """
    Compute the monotonic time at which a token becomes stale.

    The threshold must already be validated; no checks are made here.

    Args:
        now: Current monotonic clock reading, in seconds
        issued_lifetime_seconds: Lifetime declared by the server (expires_in)
        threshold: Fraction of the lifetime after which to refresh

    Returns:
        now + floor(issued_lifetime_seconds * threshold)

    Example:
        >>> compute_refresh_deadline(100.0, 3600, 0.85)
        3160.0
    """
    return now + math.floor(issued_lifetime_seconds * threshold)


def validate_expiry_threshold(value: Union[str, float, int, None]) -> float:
    """
    Parse and validate an expiry threshold.

    Accepts numbers and numeric strings (as read from the environment or a
    config file).

    Args:
        value: Threshold candidate

    Returns:
        The threshold as a float

    Raises:
        InvalidConfigurationError: If the value is not numeric or lies outside
            the open interval (0.1, 1.0)
    """
    try:
        threshold = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise InvalidConfigurationError(
            f"Expiry threshold must be numeric, got {value!r}",
            cause=e,
        ) from e

    # NaN fails both comparisons
    if not (MIN_EXPIRY_THRESHOLD < threshold < MAX_EXPIRY_THRESHOLD):
        raise InvalidConfigurationError(
            f"Expiry threshold can be set between {MIN_EXPIRY_THRESHOLD} (excluding) "
            f"and {MAX_EXPIRY_THRESHOLD:g} (excluding), got {value!r}",
            context={"expiry_threshold": value},
        )
    return threshold


def is_stale(record: Optional[TokenRecord], now: float) -> bool:
    """Whether a cached record must be refreshed at monotonic time ``now``."""
    if record is None:
        return True
    return now >= record.refresh_deadline
