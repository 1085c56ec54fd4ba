# syllabus_sync/utils/dates.py
"""
Date helpers for syllabus events.

LocalDateTime keeps the calendar date, wall-clock time and UTC offset as
separate fields. Day arithmetic happens on the calendar fields so that a
"Tuesday 10:00 -04:00" stays a 10:00 event when shifted to Thursday, no
matter which DST boundaries an absolute instant would cross.
"""

import re
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_ISO_RE = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:[T ](?P<hour>\d{2}):(?P<minute>\d{2})"
    r"(?::(?P<second>\d{2})(?:\.(?P<fraction>\d{1,9}))?)?"
    r"(?P<offset>Z|[+-]\d{2}:?\d{2})?)?$"
)

_DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


@dataclass(frozen=True)
class LocalDateTime:
    """Calendar date + time of day + optional fixed UTC offset (minutes)."""

    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    second: int = 0
    millisecond: int = 0
    offset_minutes: int | None = None

    @classmethod
    def parse(cls, value: str) -> "LocalDateTime":
        """
        Parse an ISO-8601 date or date-time string.

        Accepts date-only values, times with or without seconds/fractions,
        and an optional ``Z`` or ``±HH:MM`` offset. Raises ValueError for
        anything that is not a real calendar date/time.
        """
        if not isinstance(value, str):
            raise ValueError("expected an ISO-8601 string")

        match = _ISO_RE.match(value.strip())
        if not match:
            raise ValueError(f"not an ISO-8601 date-time: {value!r}")

        parts = match.groupdict()
        year, month, day = int(parts["year"]), int(parts["month"]), int(parts["day"])
        hour = int(parts["hour"] or 0)
        minute = int(parts["minute"] or 0)
        second = int(parts["second"] or 0)
        fraction = parts["fraction"] or "0"
        millisecond = int(fraction.ljust(3, "0")[:3])

        # Raises ValueError on impossible dates/times (Feb 30, 25:00, ...)
        date(year, month, day)
        if hour > 23 or minute > 59 or second > 59:
            raise ValueError(f"invalid time of day: {value!r}")

        offset_minutes = _parse_offset(parts["offset"])
        if offset_minutes is not None and abs(offset_minutes) >= 24 * 60:
            raise ValueError(f"invalid UTC offset: {value!r}")

        return cls(year, month, day, hour, minute, second, millisecond, offset_minutes)

    @classmethod
    def from_datetime(cls, value: datetime) -> "LocalDateTime":
        offset = value.utcoffset()
        return cls(
            value.year,
            value.month,
            value.day,
            value.hour,
            value.minute,
            value.second,
            value.microsecond // 1000,
            None if offset is None else int(offset.total_seconds() // 60),
        )

    @property
    def has_offset(self) -> bool:
        return self.offset_minutes is not None

    def is_midnight(self) -> bool:
        return self.hour == 0 and self.minute == 0 and self.second == 0 and self.millisecond == 0

    def calendar_date(self) -> date:
        return date(self.year, self.month, self.day)

    def weekday(self) -> int:
        """Monday = 0 ... Sunday = 6, from the literal calendar fields."""
        return self.calendar_date().weekday()

    def resolve_offset(self, tz: ZoneInfo | timezone) -> "LocalDateTime":
        """Attach the offset that ``tz`` has at this wall-clock time, if none is set."""
        if self.offset_minutes is not None:
            return self
        naive = datetime(
            self.year, self.month, self.day, self.hour, self.minute, self.second,
            self.millisecond * 1000,
        )
        offset = naive.replace(tzinfo=tz).utcoffset() or timedelta(0)
        return replace(self, offset_minutes=int(offset.total_seconds() // 60))

    def to_datetime(self) -> datetime:
        """Absolute instant. Only valid once an offset is known."""
        if self.offset_minutes is None:
            raise ValueError("cannot convert a LocalDateTime without an offset to an instant")
        return datetime(
            self.year, self.month, self.day, self.hour, self.minute, self.second,
            self.millisecond * 1000,
            tzinfo=timezone(timedelta(minutes=self.offset_minutes)),
        )

    def add_days(self, days: int) -> "LocalDateTime":
        """Shift the calendar date, keeping wall-clock time and offset untouched."""
        shifted = self.calendar_date() + timedelta(days=days)
        return replace(self, year=shifted.year, month=shifted.month, day=shifted.day)

    def add_hours(self, hours: float) -> "LocalDateTime":
        """Shift by an absolute duration, rendered in this value's own offset."""
        return LocalDateTime.from_datetime(self.to_datetime() + timedelta(hours=hours))

    def at_midnight(self) -> "LocalDateTime":
        return replace(self, hour=0, minute=0, second=0, millisecond=0)

    def isoformat(self) -> str:
        """Canonical ``YYYY-MM-DDTHH:MM:SS.mmm±HH:MM`` rendering."""
        if self.offset_minutes is None:
            raise ValueError("cannot render a LocalDateTime without an offset")
        sign = "-" if self.offset_minutes < 0 else "+"
        hours, minutes = divmod(abs(self.offset_minutes), 60)
        return (
            f"{self.year:04d}-{self.month:02d}-{self.day:02d}"
            f"T{self.hour:02d}:{self.minute:02d}:{self.second:02d}.{self.millisecond:03d}"
            f"{sign}{hours:02d}:{minutes:02d}"
        )

    def __str__(self) -> str:
        if self.offset_minutes is None:
            return (
                f"{self.year:04d}-{self.month:02d}-{self.day:02d}"
                f"T{self.hour:02d}:{self.minute:02d}:{self.second:02d}.{self.millisecond:03d}"
            )
        return self.isoformat()


def _parse_offset(raw: str | None) -> int | None:
    if raw is None:
        return None
    if raw == "Z":
        return 0
    sign = -1 if raw[0] == "-" else 1
    digits = raw[1:].replace(":", "")
    return sign * (int(digits[:2]) * 60 + int(digits[2:]))


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Look up an IANA zone, raising ValueError for unknown names."""
    if not name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def parse_term_bound(value: str, tz: ZoneInfo, end_of_day: bool = False) -> LocalDateTime:
    """
    Parse a term boundary.

    A date-only boundary covers the whole day: the start bound is 00:00:00.000
    and the end bound is 23:59:59.999, both in ``tz``.
    """
    bound = LocalDateTime.parse(value)
    if end_of_day and "T" not in value and " " not in value.strip():
        bound = replace(bound, hour=23, minute=59, second=59, millisecond=999)
    return bound.resolve_offset(tz)


def weekday_of_iso(value: str) -> int | None:
    """Weekday (Monday = 0) of the literal date prefix of an ISO string."""
    match = _DATE_PREFIX_RE.match(value)
    if not match:
        return None
    year, month, day = (int(g) for g in match.groups())
    return date(year, month, day).weekday()


def add_days_to_iso(value: str, days: int) -> str:
    """Rewrite only the ``YYYY-MM-DD`` prefix, leaving time and offset as written."""
    match = _DATE_PREFIX_RE.match(value)
    if not match:
        return value
    year, month, day = (int(g) for g in match.groups())
    shifted = date(year, month, day) + timedelta(days=days)
    return shifted.isoformat() + value[match.end():]
