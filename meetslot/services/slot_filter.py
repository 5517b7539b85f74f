from collections.abc import Iterable, Sequence

from meetslot.core.interval import Interval, expand, overlaps


def filter_slots(
    candidates: Iterable[Interval], blocked: Sequence[Interval], buffer_minutes: int = 0
) -> list[Interval]:
    """Drop candidates whose buffer-expanded span touches any blocked interval.

    The buffer widens the candidate, not the blocked interval. Order is preserved.
    """
    kept: list[Interval] = []
    for slot in candidates:
        padded = expand(slot, buffer_minutes)
        if not any(overlaps(padded, busy) for busy in blocked):
            kept.append(slot)
    return kept
