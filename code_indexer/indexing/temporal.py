"""Freshness window bookkeeping for indexed files.

Every indexed file carries ``createdAt`` and ``expiresAt`` timestamps in
both its vector payload and its state record. Search treats recency as a
hard filter: a candidate survives only if its creation time parses, its
expiry is not in the past, and it is younger than the window.
"""

from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from ..utils.timestamps import parse_iso, to_iso


class FreshnessWindow:
    """Stamps new entries and decides whether existing ones are still fresh."""

    def __init__(self, ttl_seconds: float):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl = timedelta(seconds=ttl_seconds)

    @property
    def ttl_seconds(self) -> float:
        return self.ttl.total_seconds()

    def stamp(self, now: datetime) -> tuple[str, str]:
        """Return ``(createdAt, expiresAt)`` for an entry written at ``now``."""
        return to_iso(now), to_iso(now + self.ttl)

    def is_fresh(
        self,
        created_at: object,
        expires_at: object,
        now: datetime,
    ) -> bool:
        created = parse_iso(created_at)
        if created is None:
            return False

        if expires_at is not None:
            expires = parse_iso(expires_at)
            # A present but unreadable expiry is treated as already passed
            if expires is None or expires < now:
                return False

        return now - created <= self.ttl

    def is_fresh_payload(self, payload: Mapping[str, Any], now: datetime) -> bool:
        return self.is_fresh(payload.get("createdAt"), payload.get("expiresAt"), now)

    @staticmethod
    def age_seconds(created_at: object, now: datetime) -> float | None:
        created = parse_iso(created_at)
        if created is None:
            return None
        return (now - created).total_seconds()
