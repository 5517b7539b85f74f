"""Half-open time intervals and the single overlap predicate used everywhere.

All instants are naive UTC datetimes, matching the TIMESTAMP WITHOUT TIME ZONE columns.
"""
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from operator import attrgetter

from meetslot.core.errors import ValidationError


def naive_utc(dt: datetime) -> datetime:
    """Ensure datetime is naive UTC (convert aware values to UTC, then strip)."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC)
    return dt.replace(tzinfo=None)


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


@dataclass(frozen=True)
class Interval:
    """`[start, end)`; zero-length and inverted intervals are rejected."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if not self.start < self.end:
            raise ValidationError(
                f"Interval end ({self.end.isoformat()}) must be after start ({self.start.isoformat()})",
                param="end_time",
            )

    @classmethod
    def of(cls, start: datetime, end: datetime) -> "Interval":
        return cls(naive_utc(start), naive_utc(end))

    @classmethod
    def anchored(cls, day: date, start_time: time, end_time: time) -> "Interval":
        """Anchor a time-of-day pair onto a calendar date."""
        return cls(datetime.combine(day, start_time), datetime.combine(day, end_time))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


def overlaps(a: Interval, b: Interval) -> bool:
    # Adjacent intervals (a.end == b.start) do not overlap.
    return a.start < b.end and a.end > b.start


def expand(interval: Interval, minutes: int) -> Interval:
    if minutes <= 0:
        return interval
    delta = timedelta(minutes=minutes)
    return Interval(interval.start - delta, interval.end + delta)


def sort_by_start(intervals: Iterable[Interval]) -> list[Interval]:
    # sorted() is stable, so ties keep insertion order
    return sorted(intervals, key=attrgetter("start"))


def day_window(day: date) -> Interval:
    start = datetime.combine(day, time.min)
    return Interval(start, start + timedelta(days=1))
