"""
Mock calendar client for running without Microsoft authentication.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import Date, DateTime

from ..domain.models import BusyTimesResult, TimeRange

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockCalendarClient:
    """
    Serves busy times from a JSON file of calendar events.

    Each event looks like::

        {"calendarId": "ana@example.com", "summary": "Clinic",
         "start": "2024-03-04T14:00:00Z", "end": "2024-03-04T15:00:00Z",
         "status": "confirmed", "transparency": "opaque"}

    Date-only ``start``/``end`` values mark all-day events; the end date is
    exclusive and the days are taken in the event's ``timeZone`` (or the
    client's default timezone).
    """

    def __init__(self, data_file: Optional[Path] = None, config=None, timezone: str = "UTC"):
        """
        Initialize the mock client.

        Args:
            data_file: JSON event file; defaults to the bundled sample
            config: Optional AppConfig for calendar_id mapping
            timezone: Timezone for all-day events without their own
        """
        self.data_file = data_file or DEFAULT_DATA_FILE
        self.config = config
        self.timezone = timezone
        self.calendar_events = self._load_calendar_data()

    def _load_calendar_data(self) -> List[Dict[str, Any]]:
        if not self.data_file.exists():
            logger.warning("Mock calendar file %s not found, no busy times will be returned", self.data_file)
            return []

        with open(self.data_file, "r", encoding="utf-8") as f:
            return json.load(f)

    def _get_calendar_id_for_email(self, email: str) -> str:
        """Map email to calendar_id using config."""
        if self.config:
            expert = self.config.find_expert(email)
            if expert and expert.calendar_id:
                return expert.calendar_id

        return email

    async def get_busy_times(
        self,
        email: str,
        start_time: DateTime,
        end_time: DateTime
    ) -> BusyTimesResult:
        """Busy ranges for ``email`` that overlap the requested window."""
        calendar_id = self._get_calendar_id_for_email(email)
        window = TimeRange(start=start_time, end=end_time)
        busy: List[TimeRange] = []

        for event in self.calendar_events:
            if event.get("calendarId", "").lower() != calendar_id.lower():
                continue

            if event.get("transparency") == "transparent" or event.get("status") == "cancelled":
                continue

            try:
                event_range = self._event_range(event)
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid mock event %s: %s", event.get("summary", "?"), exc)
                continue

            if event_range.overlaps(window):
                busy.append(event_range)

        return BusyTimesResult(ranges=busy)

    def _event_range(self, event: Dict[str, Any]) -> TimeRange:
        timezone = event.get("timeZone", self.timezone)
        start = pendulum.parse(event["start"], tz=timezone, exact=True)
        end = pendulum.parse(event["end"], tz=timezone, exact=True)

        if isinstance(start, Date) and not isinstance(start, DateTime):
            start = pendulum.datetime(start.year, start.month, start.day, tz=timezone)
        if isinstance(end, Date) and not isinstance(end, DateTime):
            end = pendulum.datetime(end.year, end.month, end.day, tz=timezone)

        if not isinstance(start, DateTime) or not isinstance(end, DateTime):
            raise ValueError("start and end must be dates or datetimes")

        return TimeRange(start=start, end=end)

    def test_connection(self) -> Dict[str, Any]:
        """Mock connection test."""
        return {
            "displayName": "Mock Expert",
            "mail": "mock.expert@example.com",
            "userPrincipalName": "mock.expert@example.com"
        }
