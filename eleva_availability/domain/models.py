"""
Domain models for schedules, busy intervals and booking constraints.

All instants are absolute pendulum ``DateTime`` values. Wall-clock values
(window start/end, blocked dates) only become instants once anchored to a
calendar date in an explicit IANA timezone.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Dict, List, Sequence

import pendulum
from pendulum import DateTime

from .exceptions import ScheduleValidationError


class DayOfWeek(str, Enum):
    """Weekday of a recurring availability window, Monday first."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def index(self) -> int:
        """Return 0 for Monday through 6 for Sunday."""
        return list(DayOfWeek).index(self)

    @classmethod
    def from_datetime(cls, dt: DateTime) -> "DayOfWeek":
        """Weekday of ``dt`` in whatever timezone ``dt`` carries."""
        return list(cls)[dt.weekday()]


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end. Overlap checks treat the range
    as half-open, ``[start, end)``.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not overlap."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies entirely within this range, endpoints included."""
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


def parse_time_of_day(value: str) -> time:
    """Parse an ``HH:MM`` wall-clock string."""
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM")

    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM")

    return time(hour=hour, minute=minute)


@dataclass(frozen=True)
class AvailabilityWindow:
    """
    A recurring weekly window, e.g. Monday 09:00 - 17:00.

    Times are stored as entered by the expert and are interpreted in the
    owning schedule's timezone.
    """
    day_of_week: DayOfWeek
    start_time: str
    end_time: str

    def anchor(self, on: DateTime, timezone: str) -> TimeRange:
        """
        Turn the window into absolute instants on the calendar date of ``on``.

        ``on`` must already be expressed in ``timezone``. The date's own
        offset is used, so windows on DST transition days keep their
        wall-clock boundaries.

        Raises:
            ValueError: If the stored times are malformed or out of order
        """
        start = parse_time_of_day(self.start_time)
        end = parse_time_of_day(self.end_time)

        return TimeRange(
            start=pendulum.datetime(on.year, on.month, on.day, start.hour, start.minute, tz=timezone),
            end=pendulum.datetime(on.year, on.month, on.day, end.hour, end.minute, tz=timezone),
        )


@dataclass
class Schedule:
    """An expert's weekly availability in their home timezone."""
    owner_id: str
    timezone: str
    availabilities: List[AvailabilityWindow] = field(default_factory=list)

    def windows_by_day(self) -> Dict[DayOfWeek, List[AvailabilityWindow]]:
        """Group windows by weekday for direct lookup."""
        grouped: Dict[DayOfWeek, List[AvailabilityWindow]] = {}
        for window in self.availabilities:
            grouped.setdefault(window.day_of_week, []).append(window)
        return grouped


def validate_windows(windows: Sequence[AvailabilityWindow]) -> None:
    """
    Reject windows that the resolver cannot interpret correctly.

    Raises:
        ScheduleValidationError: On malformed times, windows that end
            before they start (which includes windows crossing midnight),
            or overlapping windows on the same weekday
    """
    parsed: Dict[DayOfWeek, List[tuple]] = {}

    for window in windows:
        try:
            start = parse_time_of_day(window.start_time)
            end = parse_time_of_day(window.end_time)
        except ValueError as exc:
            raise ScheduleValidationError(str(exc)) from exc

        if end <= start:
            raise ScheduleValidationError(
                f"{window.day_of_week.value} window {window.start_time}-{window.end_time} "
                "must end after it starts; windows crossing midnight are not supported"
            )

        parsed.setdefault(window.day_of_week, []).append((start, end, window))

    for day, entries in parsed.items():
        entries.sort(key=lambda entry: entry[0])
        for (_, prev_end, prev), (start, _, current) in zip(entries, entries[1:]):
            if start < prev_end:
                raise ScheduleValidationError(
                    f"Overlapping {day.value} windows: "
                    f"{prev.start_time}-{prev.end_time} and {current.start_time}-{current.end_time}"
                )


@dataclass(frozen=True)
class EventSpec:
    """The bookable event: who offers it and how long it lasts."""
    owner_id: str
    duration_in_minutes: int

    def __post_init__(self):
        if self.duration_in_minutes <= 0:
            raise ValueError("duration_in_minutes must be greater than zero")


@dataclass(frozen=True)
class SchedulingSettings:
    """
    Per-expert booking constraints.

    Buffers pad the booked interval on both sides; the padded interval is
    what must fit the window and avoid busy time.
    """
    minimum_notice_minutes: int = 0
    before_event_buffer: int = 0
    after_event_buffer: int = 0

    def __post_init__(self):
        for name in ("minimum_notice_minutes", "before_event_buffer", "after_event_buffer"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")


@dataclass(frozen=True)
class SlotReservation:
    """A start time held for a guest while they complete payment."""
    start_time: DateTime
    expires_at: DateTime
    guest_email: str = ""

    def is_active(self, now: DateTime) -> bool:
        return self.expires_at > now


@dataclass(frozen=True)
class BlockedDate:
    """A whole calendar day, in ``timezone``, on which the expert is unavailable."""
    date: date
    timezone: str = "UTC"
    reason: str = ""

    def covers(self, instant: DateTime) -> bool:
        return instant.in_timezone(self.timezone).date() == self.date

    def day_range(self) -> TimeRange:
        """Midnight to midnight of the blocked day, DST aware."""
        start = pendulum.datetime(self.date.year, self.date.month, self.date.day, tz=self.timezone)
        return TimeRange(start=start, end=start.add(days=1))

    def overlaps(self, time_range: TimeRange) -> bool:
        """True if any part of ``time_range`` falls on the blocked day."""
        return self.day_range().overlaps(time_range)


@dataclass
class BusyTimesResult:
    """
    Busy intervals returned by a calendar adapter.

    ``degraded`` is set when the calendar could not be queried and the
    ranges are therefore incomplete rather than genuinely empty.
    """
    ranges: List[TimeRange] = field(default_factory=list)
    degraded: bool = False
