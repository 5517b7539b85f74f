from collections.abc import Iterator
from datetime import date, timedelta

from meetslot.core.config import settings
from meetslot.core.interval import Interval
from meetslot.models.availability_rule import AvailabilityRule


def expand_rule(
    rule: AvailabilityRule,
    target_date: date,
    duration_minutes: int,
    buffer_minutes: int = 0,
) -> Iterator[Interval]:
    """Yield fixed-duration candidate slots for `rule` anchored on `target_date`.

    Consecutive candidates are spaced by `buffer_minutes`; a slot ending exactly at the
    rule's end is valid. Callers validate the duration first, so out-of-range input here
    is a programming error.
    """
    if not settings.min_duration_minutes <= duration_minutes <= settings.max_duration_minutes:
        raise ValueError(f"duration_minutes out of range: {duration_minutes}")
    if buffer_minutes < 0:
        raise ValueError(f"buffer_minutes must be >= 0: {buffer_minutes}")
    if rule.start_time >= rule.end_time:
        raise ValueError(f"rule {rule.id} ends before it starts")
    window = Interval.anchored(target_date, rule.start_time, rule.end_time)

    duration = timedelta(minutes=duration_minutes)
    step = duration + timedelta(minutes=buffer_minutes)
    slot_start = window.start
    while slot_start + duration <= window.end:
        yield Interval(slot_start, slot_start + duration)
        slot_start += step
