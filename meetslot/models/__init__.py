from meetslot.models.host import Host, HostCreate, HostPublic
from meetslot.models.host_settings import HostSettings, HostSettingsPublic, HostSettingsUpdate
from meetslot.models.availability_rule import (
    AvailabilityRule,
    AvailabilityRuleCreate,
    AvailabilityRulePublic,
    AvailabilityRuleUpdate,
)
from meetslot.models.booking import Booking, BookingPublic, BookingStatus
from meetslot.models.booking_request import BookingRequest, BookingRequestPublic, BookingRequestStatus
from meetslot.models.calendar_connection import (
    CalendarConnection,
    CalendarConnectionPublic,
    CalendarProviderName,
    CalendarStatus,
)
from meetslot.models.refresh_token import RefreshToken

__all__ = [
    "Host",
    "HostCreate",
    "HostPublic",
    "HostSettings",
    "HostSettingsPublic",
    "HostSettingsUpdate",
    "AvailabilityRule",
    "AvailabilityRuleCreate",
    "AvailabilityRulePublic",
    "AvailabilityRuleUpdate",
    "Booking",
    "BookingPublic",
    "BookingStatus",
    "BookingRequest",
    "BookingRequestPublic",
    "BookingRequestStatus",
    "CalendarConnection",
    "CalendarConnectionPublic",
    "CalendarStatus",
    "CalendarProviderName",
    "RefreshToken",
]
