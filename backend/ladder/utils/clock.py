from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC, matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_now() -> datetime:
    """FastAPI dependency for the request clock (overridden in tests)."""
    return utcnow()
