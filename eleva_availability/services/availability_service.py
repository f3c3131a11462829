"""
Application services for listing and re-validating bookable start times.

The service fetches the expert's schedule read model and calendar busy
times through protocol-typed collaborators and delegates the filtering to
the domain-level ``AvailabilityResolver``. Booking handlers call
``validate_booking_time`` at write time, since a listed slot may have been
taken after the page was rendered.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

import pendulum
from pendulum import DateTime

from ..domain.availability_resolver import AvailabilityResolver
from ..domain.candidates import generate_candidate_times
from ..domain.models import (
    BlockedDate,
    BusyTimesResult,
    EventSpec,
    Schedule,
    SchedulingSettings,
    SlotReservation,
)

logger = logging.getLogger(__name__)


class CalendarClientProtocol(Protocol):
    """Protocol describing the calendar client behaviour needed by the service."""

    async def get_busy_times(
        self,
        email: str,
        start_time: DateTime,
        end_time: DateTime,
    ) -> BusyTimesResult:
        """Return busy time ranges for one calendar."""


class ScheduleStoreProtocol(Protocol):
    """Read model of everything the resolver needs about an expert."""

    def get_schedule(self, owner_id: str) -> Optional[Schedule]: ...

    def get_settings(self, owner_id: str) -> SchedulingSettings: ...

    def get_blocked_dates(self, owner_id: str) -> List[BlockedDate]: ...

    def get_active_reservations(self, owner_id: str, now: DateTime) -> List[SlotReservation]: ...

    def get_calendar_email(self, owner_id: str) -> Optional[str]: ...


class AvailabilityService:
    """
    Orchestrates schedule lookup, busy-time retrieval and resolution.
    """

    # Longest span sent to the calendar in one free/busy query
    MAX_QUERY_DAYS = 31

    def __init__(
        self,
        store: ScheduleStoreProtocol,
        calendar_client: CalendarClientProtocol,
        resolver: Optional[AvailabilityResolver] = None,
        *,
        step_minutes: int = 15,
        months_ahead: int = 2,
    ) -> None:
        self._store = store
        self._calendar_client = calendar_client
        self._resolver = resolver or AvailabilityResolver()
        self._step_minutes = step_minutes
        self._months_ahead = months_ahead

    async def list_available_times(
        self,
        event: EventSpec,
        candidates: Optional[Sequence[DateTime]] = None,
        now: Optional[DateTime] = None,
    ) -> List[DateTime]:
        """
        Bookable start times for ``event``.

        Without explicit candidates, every step from now through the
        booking horizon is tried.
        """
        now = now or pendulum.now("UTC")
        if candidates is None:
            candidates = generate_candidate_times(
                now,
                step_minutes=self._step_minutes,
                months_ahead=self._months_ahead,
            )

        if not candidates:
            return []

        schedule = self._store.get_schedule(event.owner_id)
        if schedule is None:
            return []

        busy = await self.fetch_busy_times(
            event=event,
            start_time=min(candidates),
            end_time=max(candidates).add(minutes=event.duration_in_minutes),
        )

        return self._resolver.resolve(
            candidates,
            event,
            schedule,
            busy.ranges,
            settings=self._store.get_settings(event.owner_id),
            reservations=self._store.get_active_reservations(event.owner_id, now),
            blocked_dates=self._store.get_blocked_dates(event.owner_id),
            now=now,
        )

    async def next_available_time(
        self,
        event: EventSpec,
        now: Optional[DateTime] = None,
    ) -> Optional[DateTime]:
        """The earliest bookable start time, or None."""
        times = await self.list_available_times(event, now=now)
        return times[0] if times else None

    async def validate_booking_time(
        self,
        event: EventSpec,
        start_time: DateTime,
        now: Optional[DateTime] = None,
    ) -> bool:
        """
        Re-check a submitted start time against fresh calendar data.
        """
        valid = await self.list_available_times(event, candidates=[start_time], now=now)
        if not valid:
            logger.info(
                "Rejected booking time %s for %s",
                start_time.to_iso8601_string(),
                event.owner_id,
            )
        return bool(valid)

    async def fetch_busy_times(
        self,
        *,
        event: EventSpec,
        start_time: DateTime,
        end_time: DateTime,
    ) -> BusyTimesResult:
        """
        Fetch busy times for the event owner's calendar, if one is known.

        The span is widened by the buffers and queried in pieces of at most
        ``MAX_QUERY_DAYS``. If any piece is degraded, so is the result.
        """
        email = self._store.get_calendar_email(event.owner_id)
        if not email:
            return BusyTimesResult()

        settings = self._store.get_settings(event.owner_id)
        query_start = start_time.subtract(minutes=settings.before_event_buffer)
        query_end = end_time.add(minutes=settings.after_event_buffer)

        result = BusyTimesResult()
        chunk_start = query_start
        while chunk_start < query_end:
            chunk_end = min(chunk_start.add(days=self.MAX_QUERY_DAYS), query_end)
            chunk = await self._calendar_client.get_busy_times(
                email=email,
                start_time=chunk_start,
                end_time=chunk_end,
            )
            result.ranges.extend(chunk.ranges)
            result.degraded = result.degraded or chunk.degraded
            chunk_start = chunk_end

        if result.degraded:
            logger.warning(
                "Busy times for %s are incomplete; availability may include taken slots",
                event.owner_id,
            )

        return result
