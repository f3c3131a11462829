"""
Microsoft Graph API client for fetching an expert's busy times.
"""

import asyncio
import logging
from typing import Any, Dict, List

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyTimesResult, TimeRange

logger = logging.getLogger(__name__)


class GraphCalendarClient:
    """
    Client for Microsoft Graph API calendar operations.

    Uses the /calendar/getSchedule endpoint to fetch free/busy information.
    All times are requested and parsed in UTC.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    # Statuses that block a booking; "free" and "unknown" do not
    BUSY_STATUSES = {"busy", "tentative", "oof", "workingelsewhere"}

    def __init__(self, access_token: str, timeout: int = 30):
        """
        Initialize the Graph API client.

        Args:
            access_token: Valid Microsoft Graph access token
            timeout: Request timeout in seconds
        """
        self.access_token = access_token
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

    async def get_busy_times(
        self,
        email: str,
        start_time: DateTime,
        end_time: DateTime
    ) -> BusyTimesResult:
        """
        Get busy times for one calendar.

        An unreachable calendar does not make the expert unbookable: the
        result comes back empty with ``degraded`` set, and a warning is
        logged so the state is distinguishable from a free calendar.

        Args:
            email: Calendar owner's email address
            start_time: Start of the time window
            end_time: End of the time window

        Returns:
            BusyTimesResult with the busy ranges
        """
        payload = {
            "schedules": [email],
            "startTime": {
                "dateTime": start_time.in_timezone("UTC").format("YYYY-MM-DD[T]HH:mm:ss"),
                "timeZone": "UTC"
            },
            "endTime": {
                "dateTime": end_time.in_timezone("UTC").format("YYYY-MM-DD[T]HH:mm:ss"),
                "timeZone": "UTC"
            },
            "availabilityViewInterval": 15
        }

        try:
            data = await asyncio.to_thread(self._post_schedule, payload)
        except CalendarAPIError as exc:
            logger.warning(
                "Calendar unavailable for %s, treating as no known busy time: %s",
                email,
                exc,
            )
            return BusyTimesResult(ranges=[], degraded=True)

        busy_times = self._parse_schedule_response(data)
        ranges = busy_times.get(email.lower())
        if ranges is None:
            logger.warning(
                "Calendar unreadable for %s, treating as no known busy time",
                email,
            )
            return BusyTimesResult(ranges=[], degraded=True)

        return BusyTimesResult(ranges=ranges)

    def _post_schedule(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.GRAPH_API_ENDPOINT}/me/calendar/getSchedule"

        try:
            response = requests.post(
                url,
                headers=self.headers,
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

        except (requests.exceptions.RequestException, ValueError) as e:
            raise CalendarAPIError(f"Failed to fetch schedule from Microsoft Graph: {e}") from e

    def _parse_schedule_response(self, response_data: Dict[str, Any]) -> Dict[str, List[TimeRange]]:
        """
        Parse the getSchedule API response into our domain model.

        Response format:
        {
            "value": [
                {
                    "scheduleId": "expert@example.com",
                    "scheduleItems": [
                        {
                            "status": "busy",
                            "start": {"dateTime": "...", "timeZone": "UTC"},
                            "end": {"dateTime": "...", "timeZone": "UTC"}
                        }
                    ]
                }
            ]
        }

        Keys of the returned mapping are lower-cased emails. A schedule that
        came back with an ``error`` object is left out of the mapping.
        """
        busy_times: Dict[str, List[TimeRange]] = {}

        for schedule in response_data.get("value", []):
            email = schedule.get("scheduleId", "").lower()

            if "error" in schedule:
                error = schedule["error"] or {}
                logger.warning(
                    "Graph returned an error for %s: %s",
                    email,
                    error.get("message") or error.get("responseCode") or error,
                )
                continue

            busy_ranges: List[TimeRange] = []

            for item in schedule.get("scheduleItems", []):
                status = item.get("status", "").lower()
                if status not in self.BUSY_STATUSES:
                    continue

                try:
                    start = self._parse_datetime(item["start"]["dateTime"])
                    end = self._parse_datetime(item["end"]["dateTime"])
                    busy_ranges.append(TimeRange(start=start, end=end))

                except (KeyError, ValueError) as e:
                    logger.warning("Could not parse schedule item for %s: %s", email, e)
                    continue

            busy_times[email] = busy_ranges

        return busy_times

    def _parse_datetime(self, datetime_str: str) -> DateTime:
        """
        Parse a Graph datetime string. Strings without an offset are UTC,
        which is what the Prefer header asks for.
        """
        dt = pendulum.parse(datetime_str, tz="UTC")

        if isinstance(dt, DateTime):
            return dt.in_timezone("UTC")

        raise ValueError(f"Could not parse datetime: {datetime_str}")

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching user profile.

        Returns:
            User profile data

        Raises:
            CalendarAPIError: If connection test fails
        """
        url = f"{self.GRAPH_API_ENDPOINT}/me"

        try:
            response = requests.get(url, headers=self.headers, timeout=10)
            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Connection test failed: {e}") from e
