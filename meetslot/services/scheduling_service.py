import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta

from meetslot.core.config import settings
from meetslot.core.errors import ValidationError
from meetslot.core.interval import Interval, day_window, expand, sort_by_start, utc_now
from meetslot.core.outcome import require
from meetslot.models.availability_rule import AvailabilityRule
from meetslot.models.host_settings import HostSettings
from meetslot.services.busy_set import BusySetAggregator
from meetslot.services.rule_expander import expand_rule
from meetslot.services.slot_filter import filter_slots
from meetslot.services.stores import RuleStore, SettingsStore

logger = logging.getLogger(__name__)


def day_of_week(d: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (d.weekday() + 1) % 7


def resolve_duration(requested: int | None, host_settings: HostSettings | None = None) -> int:
    """Explicit request -> host default -> global default, then policy bounds."""
    duration = (
        requested
        or (host_settings.default_meeting_duration_minutes if host_settings else None)
        or settings.default_duration_minutes
    )
    if not settings.min_duration_minutes <= duration <= settings.max_duration_minutes:
        raise ValidationError(
            f"Duration must be between {settings.min_duration_minutes} and "
            f"{settings.max_duration_minutes} minutes",
            param="duration",
        )
    return duration


def validate_booking_date(target: date, today: date, horizon_days: int) -> None:
    if target < today:
        raise ValidationError("Date is in the past", param="date")
    if target > today + timedelta(days=horizon_days):
        raise ValidationError(
            f"Date is beyond the booking horizon of {horizon_days} days", param="date"
        )


def effective_buffer(host_settings: HostSettings, rule: AvailabilityRule) -> int:
    # Host-level buffer overrides the rule's when set
    return host_settings.buffer_minutes or rule.buffer_minutes or 0


class SchedulingService:
    """Computes the public list of bookable slots for one host and day."""

    def __init__(
        self,
        rules: RuleStore,
        host_settings: SettingsStore,
        busy_set: BusySetAggregator,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.rules = rules
        self.host_settings = host_settings
        self.busy_set = busy_set
        self.clock = clock

    async def get_available_slots(
        self, host_id: int, target_date: date, duration_minutes: int | None = None
    ) -> list[Interval]:
        now = self.clock()
        policy = await require("settings store", self.host_settings.get_host_settings(host_id))
        validate_booking_date(target_date, now.date(), policy.booking_horizon_days)
        duration = resolve_duration(duration_minutes, policy)

        rules = await require("rule store", self.rules.list_rules(host_id, day_of_week(target_date)))
        if not rules:
            return []

        buffers = [effective_buffer(policy, rule) for rule in rules]
        # Padded candidates near midnight reach into the neighbouring days
        window = expand(day_window(target_date), max(buffers))
        blocked = await self.busy_set.collect(host_id, window)
        slots: list[Interval] = []
        for rule, buffer in zip(rules, buffers):
            candidates = expand_rule(rule, target_date, duration, buffer)
            slots.extend(filter_slots(candidates, blocked, buffer))

        if target_date == now.date():
            slots = [s for s in slots if s.start >= now]
        result = sort_by_start(slots)
        logger.debug(
            "Host %s on %s: %d rule(s), %d blocked, %d slot(s) of %d min",
            host_id,
            target_date,
            len(rules),
            len(blocked),
            len(result),
            duration,
        )
        return result
