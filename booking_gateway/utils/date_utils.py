"""Date manipulation utilities pinned to Philippine time (UTC+08:00, no DST)"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

PH_TZ = timezone(timedelta(hours=8), "Asia/Manila")

ONE_DAY = timedelta(days=1)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_ph(value: datetime) -> datetime:
    return ensure_aware(value).astimezone(PH_TZ)


def now_ph() -> datetime:
    return datetime.now(PH_TZ)


def at_ph(day: date, hhmm: str = "00:00") -> datetime:
    """Wall-clock time on a Philippine calendar day"""
    return datetime.combine(day, time.fromisoformat(hhmm), tzinfo=PH_TZ)


def start_of_day_ph(value: Optional[datetime] = None) -> datetime:
    return at_ph(to_ph(value or now_ph()).date())


def day_bounds_ph(value: datetime) -> Tuple[date, datetime, datetime]:
    """Calendar date plus [start, next day start) for the day containing value"""
    day_start = start_of_day_ph(value)
    return day_start.date(), day_start, day_start + ONE_DAY


def horizon_day_diff(value: datetime, now: datetime) -> int:
    """Whole Philippine calendar days from today to the day of value"""
    return (start_of_day_ph(value) - start_of_day_ph(now)).days


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def _clock(value: datetime) -> str:
    hour = value.hour % 12 or 12
    return f"{hour}:{value.minute:02d} {'AM' if value.hour < 12 else 'PM'}"


def format_ph(value: Optional[datetime], fmt: str) -> str:
    """
    Render a datetime in Philippine time.

    Supported formats: "MMM d, h:mm a", "h:mm a", "PPP p", "EEE".
    """
    if value is None:
        return "Unscheduled"
    local = to_ph(value)

    if fmt == "MMM d, h:mm a":
        return f"{local.strftime('%b')} {local.day}, {_clock(local)}"
    if fmt == "h:mm a":
        return _clock(local)
    if fmt == "PPP p":
        return f"{local.strftime('%B')} {local.day}, {local.year} at {_clock(local)}"
    if fmt == "EEE":
        return local.strftime("%a")
    raise ValueError(f"Unsupported format: {fmt}")
