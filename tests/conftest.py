"""
Shared fixtures for the availability tests.
"""

import pytest

from eleva_availability.domain.models import AvailabilityWindow, DayOfWeek, EventSpec, Schedule


@pytest.fixture
def new_york_schedule() -> Schedule:
    """Monday 09:00-12:00 in New York."""
    return Schedule(
        owner_id="expert-1",
        timezone="America/New_York",
        availabilities=[
            AvailabilityWindow(day_of_week=DayOfWeek.MONDAY, start_time="09:00", end_time="12:00"),
        ],
    )


@pytest.fixture
def half_hour_event() -> EventSpec:
    return EventSpec(owner_id="expert-1", duration_in_minutes=30)
