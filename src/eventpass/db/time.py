# src/eventpass/db/time.py
"""Time utilities for stored records."""

from collections.abc import Callable
from datetime import UTC, datetime

# Services take a clock so expiry can be tested without sleeping.
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def to_epoch(moment: datetime) -> int:
    """Return whole epoch seconds for a timezone-aware datetime."""
    return int(moment.timestamp())


def from_epoch(seconds: int) -> datetime:
    """Return a UTC datetime for epoch seconds."""
    return datetime.fromtimestamp(seconds, UTC)
