"""
Relative date window resolution for the read_relative tool action.

Turns intents like "yesterday" or "last_n_days" into an absolute
[start, end] window in the caller's timezone.
"""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import InvalidInput

DEFAULT_LOOKBACK_DAYS = 7


def _start_of_day(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _end_of_day(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time(23, 59, 59), tzinfo=tz)


def _first_of_month(day: date) -> date:
    return day.replace(day=1)


def _last_of_month(day: date) -> date:
    next_month = (day.replace(day=28) + timedelta(days=4)).replace(day=1)
    return next_month - timedelta(days=1)


def _parse_day(value: str | None, label: str) -> date:
    try:
        return date.fromisoformat((value or "").strip()[:10])
    except ValueError:
        raise InvalidInput(f"Invalid '{label}' date")


def to_iso(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def compute_range(
    tz: str,
    intent: str | None = None,
    n: int | None = None,
    on: str | None = None,
    since: str | None = None,
    start: str | None = None,
    end: str | None = None,
    now: datetime | None = None,
) -> tuple[str, str, str]:
    """
    Resolve a relative date intent to an absolute window.

    Supported intents: today, yesterday, this_week, last_week, this_month,
    last_month, last_n_days (n, default 7), on_date (on), since_date (since),
    between (start, end; swapped if reversed). Anything else means the last
    7 days. Weeks start on Monday.

    Returns:
        (start_iso, end_iso, timezone name)

    Raises:
        InvalidInput: Unknown timezone or unparseable date
    """
    try:
        zone = ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidInput(f"Unknown timezone '{tz}'")

    current = (now or datetime.now(zone)).astimezone(zone)
    today = current.date()
    intent = (intent or "").strip()

    if intent == "today":
        first, last = today, today
    elif intent == "yesterday":
        first = last = today - timedelta(days=1)
    elif intent == "this_week":
        first = today - timedelta(days=today.weekday())
        last = first + timedelta(days=6)
    elif intent == "last_week":
        first = today - timedelta(days=today.weekday() + 7)
        last = first + timedelta(days=6)
    elif intent == "this_month":
        first, last = _first_of_month(today), _last_of_month(today)
    elif intent == "last_month":
        last = _first_of_month(today) - timedelta(days=1)
        first = _first_of_month(last)
    elif intent == "last_n_days":
        days = int(n) if n else DEFAULT_LOOKBACK_DAYS
        first, last = today - timedelta(days=days), today
    elif intent == "on_date":
        first = last = _parse_day(on, "on")
    elif intent == "since_date":
        first, last = _parse_day(since, "since"), today
    elif intent == "between":
        first, last = _parse_day(start, "start"), _parse_day(end, "end")
        if last < first:
            first, last = last, first
    else:
        first, last = today - timedelta(days=DEFAULT_LOOKBACK_DAYS), today

    return (
        to_iso(_start_of_day(first, zone)),
        to_iso(_end_of_day(last, zone)),
        zone.key,
    )
