from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime so it compares against utcnow().

    Kickoff times written by older catalog feeds may come back naive.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def as_utc(dt: datetime | None) -> datetime | None:
    """ensure_utc for optional fields at the response boundary."""
    return ensure_utc(dt) if dt is not None else None
