import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from meetslot.core.config import settings
from meetslot.core.interval import Interval, utc_now
from meetslot.core.outcome import Failed, Outcome, capture
from meetslot.services.stores import BookingStore, CalendarProvider, RequestStore

logger = logging.getLogger(__name__)


class BusySetAggregator:
    """Union of everything that must not be offered for one host and window.

    Confirmed bookings and pending holds are authoritative; a failure there aborts the
    query. External calendars are best-effort: each provider runs concurrently under its
    own timeout and a failing one is logged and left out.
    """

    def __init__(
        self,
        bookings: BookingStore,
        requests: RequestStore,
        providers: Sequence[CalendarProvider] = (),
        provider_timeout: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.bookings = bookings
        self.requests = requests
        self.providers = list(providers)
        self.provider_timeout = (
            settings.calendar_timeout_seconds if provider_timeout is None else provider_timeout
        )
        self.clock = clock

    async def collect(self, host_id: int, window: Interval) -> list[Interval]:
        # Store calls share one session, so they run sequentially; providers fan out.
        confirmed = await capture("booking store", self.bookings.list_confirmed(host_id, window))
        blocked = list(confirmed.unwrap())
        held = await capture(
            "request store",
            self.requests.list_pending_non_expired(host_id, window, self.clock()),
        )
        blocked.extend(held.unwrap())

        calendars = await self._query_providers(host_id, window)
        for provider, outcome in zip(self.providers, calendars):
            if isinstance(outcome, Failed):
                logger.warning(
                    "Calendar provider %s failed for host %s, ignoring: %r",
                    provider.name,
                    host_id,
                    outcome.reason,
                )
                continue
            blocked.extend(outcome.value)
        logger.debug(
            "Busy set for host %s over %s - %s: %d interval(s)", host_id, window.start, window.end, len(blocked)
        )
        return blocked

    async def _query_providers(self, host_id: int, window: Interval) -> list[Outcome]:
        if not self.providers:
            return []
        return list(
            await asyncio.gather(
                *(
                    capture(
                        f"calendar:{p.name}",
                        p.get_busy_intervals(host_id, window),
                        timeout=self.provider_timeout,
                        reraise=(),
                    )
                    for p in self.providers
                )
            )
        )
