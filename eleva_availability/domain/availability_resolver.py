"""
Core business logic for deciding which start times can be booked.

Pure domain logic: schedules, busy intervals and reservations are fetched
elsewhere and handed in. Nothing here reads the host's local timezone.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from pendulum import DateTime

from .models import (
    AvailabilityWindow,
    BlockedDate,
    DayOfWeek,
    EventSpec,
    Schedule,
    SchedulingSettings,
    SlotReservation,
    TimeRange,
    parse_time_of_day,
)

logger = logging.getLogger(__name__)


class AvailabilityResolver:
    """
    Filters candidate start times down to the bookable ones.

    Algorithm, applied to each candidate on its own:
    1. Drop candidates held by an active slot reservation
    2. Drop candidates earlier than now + minimum notice
    3. Drop candidates whose event touches a blocked date
    4. Pad the event with the before/after buffers
    5. Keep the candidate if the padded event fits inside at least one
       window of its weekday (in the schedule timezone) and overlaps no
       busy interval

    The result is a subsequence of the input; order is preserved.
    """

    def resolve(
        self,
        candidates: Sequence[DateTime],
        event: EventSpec,
        schedule: Optional[Schedule],
        busy_intervals: Iterable[TimeRange],
        *,
        settings: Optional[SchedulingSettings] = None,
        reservations: Iterable[SlotReservation] = (),
        blocked_dates: Iterable[BlockedDate] = (),
        now: Optional[DateTime] = None,
    ) -> List[DateTime]:
        """
        Return the candidates that can be booked.

        Args:
            candidates: Potential start times, in any timezone
            event: Event being booked (owner and duration)
            schedule: The owner's weekly schedule, or None if not configured
            busy_intervals: Busy time from the owner's external calendar
            settings: Notice period and buffers; defaults to none of either
            reservations: Held start times. When ``now`` is omitted they are
                all treated as active
            blocked_dates: Days the owner takes no bookings
            now: Reference time for the notice period and reservation expiry.
                When omitted, no notice period is enforced

        Returns:
            The accepted candidates, in input order
        """
        if not candidates:
            return []

        if schedule is None:
            logger.debug("No schedule configured for %s", event.owner_id)
            return []

        settings = settings or SchedulingSettings()
        windows_by_day = self._usable_windows(schedule)
        busy = list(busy_intervals)
        blocked = list(blocked_dates)
        reserved_starts = self._reserved_starts(reservations, now)
        earliest = now.add(minutes=settings.minimum_notice_minutes) if now is not None else None

        valid_times: List[DateTime] = []

        for candidate in candidates:
            if candidate.timestamp() in reserved_starts:
                logger.debug("Skipping reserved slot %s", candidate.to_iso8601_string())
                continue

            if earliest is not None and candidate < earliest:
                continue

            booked = TimeRange(start=candidate, end=candidate.add(minutes=event.duration_in_minutes))
            if any(blocked_date.overlaps(booked) for blocked_date in blocked):
                continue

            event_range = self._event_range(candidate, event, settings)

            if any(event_range.overlaps(busy_range) for busy_range in busy):
                continue

            windows = self._windows_for(candidate, schedule.timezone, windows_by_day)
            if any(window.contains(event_range) for window in windows):
                valid_times.append(candidate)

        logger.debug(
            "Returning %d valid times out of %d requested for %s",
            len(valid_times),
            len(candidates),
            event.owner_id,
        )

        return valid_times

    def _event_range(
        self,
        candidate: DateTime,
        event: EventSpec,
        settings: SchedulingSettings
    ) -> TimeRange:
        """The booked interval including buffers, as absolute instants."""
        start = candidate.in_timezone("UTC")
        return TimeRange(
            start=start.subtract(minutes=settings.before_event_buffer),
            end=start.add(minutes=event.duration_in_minutes + settings.after_event_buffer),
        )

    def _windows_for(
        self,
        candidate: DateTime,
        timezone: str,
        windows_by_day: Dict[DayOfWeek, List[AvailabilityWindow]]
    ) -> List[TimeRange]:
        """
        Anchor the candidate's weekday windows to its date in ``timezone``.

        A candidate just after midnight UTC can still be the previous day
        for the expert, so both the weekday and the date come from the
        schedule timezone.
        """
        local = candidate.in_timezone(timezone)
        windows = windows_by_day.get(DayOfWeek.from_datetime(local), [])

        anchored: List[TimeRange] = []
        for window in windows:
            try:
                anchored.append(window.anchor(local, timezone))
            except ValueError as exc:
                # Only reachable when a DST gap collapses a very short window
                logger.debug("Window %s-%s unusable on %s: %s",
                             window.start_time, window.end_time, local.to_date_string(), exc)

        return anchored

    def _usable_windows(self, schedule: Schedule) -> Dict[DayOfWeek, List[AvailabilityWindow]]:
        """
        Group the schedule's windows by weekday, dropping malformed ones.

        A bad row is a data-integrity problem upstream; it costs that one
        window, not the whole schedule.
        """
        usable: Dict[DayOfWeek, List[AvailabilityWindow]] = {}

        for day, windows in schedule.windows_by_day().items():
            for window in windows:
                try:
                    start = parse_time_of_day(window.start_time)
                    end = parse_time_of_day(window.end_time)
                except ValueError as exc:
                    logger.warning("Skipping malformed %s window for %s: %s",
                                   day.value, schedule.owner_id, exc)
                    continue

                if end <= start:
                    logger.warning("Skipping %s window %s-%s for %s: end is not after start",
                                   day.value, window.start_time, window.end_time, schedule.owner_id)
                    continue

                usable.setdefault(day, []).append(window)

        return usable

    @staticmethod
    def _reserved_starts(
        reservations: Iterable[SlotReservation],
        now: Optional[DateTime]
    ) -> Set[float]:
        return {
            reservation.start_time.timestamp()
            for reservation in reservations
            if now is None or reservation.is_active(now)
        }
