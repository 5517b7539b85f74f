from meetslot.core.errors import ConflictError
from meetslot.core.interval import Interval
from meetslot.services.stores import BookingStore


class BookingConflictGuard:
    """Hard-conflict check run on every booking mutation.

    Only confirmed bookings count and no buffer is applied; buffer is a slot-discovery
    policy, not a hard conflict. The store passed in must belong to the same open
    host transaction as the write that follows, otherwise two writers can both see
    the interval as free.
    """

    def __init__(self, bookings: BookingStore) -> None:
        self.bookings = bookings

    async def check(
        self, host_id: int, interval: Interval, exclude_booking_id: int | None = None
    ) -> bool:
        """True when the interval conflicts with a confirmed booking."""
        return await self.bookings.find_overlapping(host_id, interval, exclude_id=exclude_booking_id)

    async def ensure_free(
        self,
        host_id: int,
        interval: Interval,
        exclude_booking_id: int | None = None,
        error: type[ConflictError] = ConflictError,
    ) -> None:
        if await self.check(host_id, interval, exclude_booking_id):
            raise error("Time slot overlaps with an existing booking", param="start_time")
