"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability_resolver import AvailabilityResolver
from .candidates import generate_candidate_times
from .models import (
    AvailabilityWindow,
    BlockedDate,
    BusyTimesResult,
    DayOfWeek,
    EventSpec,
    Schedule,
    SchedulingSettings,
    SlotReservation,
    TimeRange,
)

__all__ = [
    "AvailabilityResolver",
    "AvailabilityWindow",
    "BlockedDate",
    "BusyTimesResult",
    "DayOfWeek",
    "EventSpec",
    "Schedule",
    "SchedulingSettings",
    "SlotReservation",
    "TimeRange",
    "generate_candidate_times",
]
