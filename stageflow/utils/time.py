from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with utc_now()."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
