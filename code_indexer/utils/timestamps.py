"""UTC timestamp helpers shared by state files and vector payloads.

Timestamps are ISO-8601 strings with millisecond precision and a ``Z``
suffix (``2025-01-31T12:00:00.000Z``), the format existing state files use.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return (
        moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    )


def mtime_to_iso(mtime: float) -> str:
    """Render an ``os.stat`` modification time the way records store it."""
    return to_iso(datetime.fromtimestamp(mtime, UTC))


def parse_iso(value: object) -> datetime | None:
    """Parse an ISO timestamp; anything unparseable yields ``None``.

    Naive timestamps are taken to be UTC.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
