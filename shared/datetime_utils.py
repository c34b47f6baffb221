"""
Date/time helpers - framework-agnostic.

MongoDB hands back naive datetimes unless the client is created with
``tz_aware=True``; every comparison in the app goes through ``as_utc`` so
either shape works.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime.

    Naive datetimes (no ``tzinfo``) are assumed to be UTC. ``None`` passes
    through unchanged.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Return True when *expires_at* is missing or not in the future."""
    expires_at = as_utc(expires_at)
    if expires_at is None:
        return True
    return expires_at <= (now or utcnow())
