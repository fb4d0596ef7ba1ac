"""
Half-hour slot helpers.

All slot timestamps are stored as naive UTC datetimes. The canonical slot key
(what the API accepts and returns) is ``YYYY-MM-DDTHH:MM:SSZ``.
"""
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from ladder.errors import BadRequestError

SLOT_MINUTES = 30
GRID_FIRST_HOUR = 6  # 06:00
GRID_LAST_HOUR = 22  # grid ends at 22:00 (last slot starts 21:30)
WEEK = timedelta(days=7)


def parse_iso(value: Optional[str], field: str = "timestamp") -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into naive UTC."""
    if not value or not isinstance(value, str):
        raise BadRequestError(f"{field} required")
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        raise BadRequestError(f"Invalid {field}: {value}")
    return to_naive_utc(dt)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def slot_key(dt: datetime) -> str:
    return to_naive_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")


def monday_start(dt: datetime) -> datetime:
    """Monday 00:00 UTC of the week containing ``dt``."""
    dt = to_naive_utc(dt)
    monday = dt - timedelta(days=dt.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_week_start(value: Optional[str]) -> datetime:
    return monday_start(parse_iso(value, "weekStart"))


def is_half_hour(dt: datetime) -> bool:
    return dt.minute in (0, 30) and dt.second == 0 and dt.microsecond == 0


def parse_slot(value: str) -> datetime:
    dt = parse_iso(value, "slot")
    if not is_half_hour(dt):
        raise BadRequestError(f"Slot must start on a half hour: {value}")
    return dt


def parse_week_slots(values: Iterable[str], week_start: datetime) -> List[datetime]:
    """Parse slot keys and require that each falls inside the given week."""
    week_end = week_start + WEEK
    slots: List[datetime] = []
    seen = set()
    for value in values:
        dt = parse_slot(value)
        if not (week_start <= dt < week_end):
            raise BadRequestError(f"Slot {value} is outside the week of {slot_key(week_start)}")
        if dt not in seen:
            seen.add(dt)
            slots.append(dt)
    return slots


def week_grid(week_start: datetime) -> List[datetime]:
    """Every bookable slot of the week: 7 days x 06:00-22:00, half-hourly."""
    slots = []
    for day in range(7):
        day_start = week_start + timedelta(days=day, hours=GRID_FIRST_HOUR)
        for i in range((GRID_LAST_HOUR - GRID_FIRST_HOUR) * 60 // SLOT_MINUTES):
            slots.append(day_start + timedelta(minutes=i * SLOT_MINUTES))
    return slots
