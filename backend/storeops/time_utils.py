from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")

DATE_KEY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock:
    """Source of 'now' for handlers. Always returns UTC-naive datetimes."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return utcnow()


class FixedClock(Clock):
    """Deterministic clock for tests and replays."""

    def __init__(self, at: datetime | str):
        self._at = to_utc_naive(at)

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime | str) -> None:
        self._at = to_utc_naive(at)

    def advance(self, **kwargs) -> datetime:
        self._at = self._at + timedelta(**kwargs)
        return self._at


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime | str) -> datetime:
    """Coerce an aware/naive datetime or ISO string to UTC-naive."""
    if isinstance(value, str):
        parsed = parse_iso_datetime(value)
        if parsed is None:
            raise ValueError("Empty datetime string")
        return parsed
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def resolve_timezone(name: str | None, default: str = "UTC") -> ZoneInfo:
    """
    Resolve an IANA timezone identifier.

    Missing, blank or unknown identifiers fall back to `default`, and to UTC
    when the default itself is unusable.
    """
    for candidate in (name, default):
        if not candidate or not str(candidate).strip():
            continue
        try:
            return ZoneInfo(str(candidate).strip())
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back", candidate)
    return UTC


def format_date_key(instant: datetime, tz: ZoneInfo) -> str:
    """YYYY-MM-DD of `instant` (UTC-naive or aware) as seen in `tz`."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).date().isoformat()


def parse_date_key(value: str | None) -> Optional[date]:
    if not isinstance(value, str):
        return None
    match = DATE_KEY_RE.match(value)
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


@dataclass(frozen=True)
class DayWindow:
    """Half-open [start, end) window in UTC-naive time for one local day."""
    start: datetime
    end: datetime
    date_key: str


def local_day_window(day: date, tz: ZoneInfo) -> DayWindow:
    # Both midnights are resolved separately so 23h/25h DST days come out right
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return DayWindow(
        start=start.astimezone(timezone.utc).replace(tzinfo=None),
        end=end.astimezone(timezone.utc).replace(tzinfo=None),
        date_key=day.isoformat(),
    )


def previous_day_window(tz: ZoneInfo, reference: datetime) -> DayWindow:
    """The full local calendar day before the local day containing `reference`."""
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    today = reference.astimezone(tz).date()
    return local_day_window(today - timedelta(days=1), tz)


def current_clock() -> Clock:
    """The app's injected clock (app.extensions["clock"]), else the system clock."""
    from flask import current_app, has_app_context

    if has_app_context():
        clock = current_app.extensions.get("clock")
        if clock is not None:
            return clock
    return SystemClock()
