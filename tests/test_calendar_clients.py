"""
Tests for the calendar adapters.
"""

import asyncio
import json

import pendulum
import pytest
import requests

from eleva_availability.adapters import graph_client as graph_module
from eleva_availability.adapters.graph_client import GraphCalendarClient
from eleva_availability.adapters.mock_calendar_client import MockCalendarClient
from eleva_availability.domain.exceptions import CalendarAPIError


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self._payload


GRAPH_RESPONSE = {
    "value": [
        {
            "scheduleId": "Ana@Example.com",
            "scheduleItems": [
                {
                    "status": "busy",
                    "start": {"dateTime": "2024-03-04T14:00:00", "timeZone": "UTC"},
                    "end": {"dateTime": "2024-03-04T14:30:00", "timeZone": "UTC"},
                },
                {
                    "status": "free",
                    "start": {"dateTime": "2024-03-04T15:00:00", "timeZone": "UTC"},
                    "end": {"dateTime": "2024-03-04T16:00:00", "timeZone": "UTC"},
                },
                {
                    "status": "oof",
                    "start": {"dateTime": "2024-03-05T00:00:00", "timeZone": "UTC"},
                    "end": {"dateTime": "2024-03-06T00:00:00", "timeZone": "UTC"},
                },
                {
                    "status": "tentative",
                    "start": {"dateTime": "not a date", "timeZone": "UTC"},
                    "end": {"dateTime": "2024-03-04T18:00:00", "timeZone": "UTC"},
                },
            ],
        }
    ]
}

START = pendulum.parse("2024-03-04T00:00:00Z")
END = pendulum.parse("2024-03-06T00:00:00Z")


class TestGraphCalendarClient:
    """Tests for the Microsoft Graph free/busy adapter."""

    def test_busy_items_are_parsed(self, monkeypatch):
        captured = {}

        def fake_post(url, headers, json, timeout):
            captured["url"] = url
            captured["json"] = json
            return FakeResponse(GRAPH_RESPONSE)

        monkeypatch.setattr(graph_module.requests, "post", fake_post)
        client = GraphCalendarClient(access_token="token")

        result = asyncio.run(client.get_busy_times("ana@example.com", START, END))

        assert not result.degraded
        assert [(r.start, r.end) for r in result.ranges] == [
            (pendulum.parse("2024-03-04T14:00:00Z"), pendulum.parse("2024-03-04T14:30:00Z")),
            (pendulum.parse("2024-03-05T00:00:00Z"), pendulum.parse("2024-03-06T00:00:00Z")),
        ]
        assert captured["url"].endswith("/me/calendar/getSchedule")
        assert captured["json"]["schedules"] == ["ana@example.com"]
        assert captured["json"]["startTime"] == {"dateTime": "2024-03-04T00:00:00", "timeZone": "UTC"}

    def test_unreachable_calendar_fails_open_and_flags_degraded(self, monkeypatch):
        def fake_post(url, headers, json, timeout):
            raise requests.exceptions.ConnectionError("boom")

        monkeypatch.setattr(graph_module.requests, "post", fake_post)
        client = GraphCalendarClient(access_token="token")

        result = asyncio.run(client.get_busy_times("ana@example.com", START, END))

        assert result.ranges == []
        assert result.degraded

    def test_http_error_is_degraded(self, monkeypatch):
        monkeypatch.setattr(
            graph_module.requests, "post", lambda url, headers, json, timeout: FakeResponse({}, status_code=503)
        )
        client = GraphCalendarClient(access_token="token")

        result = asyncio.run(client.get_busy_times("ana@example.com", START, END))

        assert result.degraded

    def test_schedule_error_entry_is_degraded(self, monkeypatch, caplog):
        """Graph answers 200 but reports the mailbox as unreadable."""
        payload = {
            "value": [
                {
                    "scheduleId": "ana@example.com",
                    "error": {"message": "The user is not found.", "responseCode": "ErrorMailRecipientNotFound"},
                }
            ]
        }
        monkeypatch.setattr(
            graph_module.requests, "post", lambda url, headers, json, timeout: FakeResponse(payload)
        )
        client = GraphCalendarClient(access_token="token")

        with caplog.at_level("WARNING", logger=graph_module.__name__):
            result = asyncio.run(client.get_busy_times("ana@example.com", START, END))

        assert result.ranges == []
        assert result.degraded
        assert "The user is not found." in caplog.text

    def test_missing_schedule_entry_is_degraded(self, monkeypatch):
        payload = {"value": [{"scheduleId": "someone-else@example.com", "scheduleItems": []}]}
        monkeypatch.setattr(
            graph_module.requests, "post", lambda url, headers, json, timeout: FakeResponse(payload)
        )
        client = GraphCalendarClient(access_token="token")

        result = asyncio.run(client.get_busy_times("ana@example.com", START, END))

        assert result.ranges == []
        assert result.degraded

    def test_empty_schedule_is_free_not_degraded(self, monkeypatch):
        payload = {"value": [{"scheduleId": "ana@example.com", "scheduleItems": []}]}
        monkeypatch.setattr(
            graph_module.requests, "post", lambda url, headers, json, timeout: FakeResponse(payload)
        )
        client = GraphCalendarClient(access_token="token")

        result = asyncio.run(client.get_busy_times("ana@example.com", START, END))

        assert result.ranges == []
        assert not result.degraded

    def test_connection_test_raises_domain_error(self, monkeypatch):
        def fake_get(url, headers, timeout):
            raise requests.exceptions.Timeout("slow")

        monkeypatch.setattr(graph_module.requests, "get", fake_get)
        client = GraphCalendarClient(access_token="token")

        with pytest.raises(CalendarAPIError, match="Connection test failed"):
            client.test_connection()


class TestMockCalendarClient:
    """Tests for the JSON-backed mock calendar."""

    @pytest.fixture
    def data_file(self, tmp_path):
        events = [
            {"calendarId": "ana@example.com", "summary": "Clinic",
             "start": "2024-03-04T14:00:00Z", "end": "2024-03-04T15:00:00Z"},
            {"calendarId": "ana@example.com", "summary": "Free lunch",
             "start": "2024-03-04T12:00:00Z", "end": "2024-03-04T13:00:00Z", "transparency": "transparent"},
            {"calendarId": "ana@example.com", "summary": "Cancelled",
             "start": "2024-03-04T16:00:00Z", "end": "2024-03-04T17:00:00Z", "status": "cancelled"},
            {"calendarId": "ana@example.com", "summary": "Holiday",
             "start": "2024-03-05", "end": "2024-03-06", "timeZone": "America/New_York"},
            {"calendarId": "ana@example.com", "summary": "Next month",
             "start": "2024-04-04T14:00:00Z", "end": "2024-04-04T15:00:00Z"},
            {"calendarId": "other@example.com", "summary": "Not ours",
             "start": "2024-03-04T14:00:00Z", "end": "2024-03-04T15:00:00Z"},
        ]
        path = tmp_path / "events.json"
        path.write_text(json.dumps(events), encoding="utf-8")
        return path

    def test_busy_times_in_window(self, data_file):
        client = MockCalendarClient(data_file=data_file)

        result = asyncio.run(client.get_busy_times("ana@example.com", START, END))

        assert [(r.start, r.end) for r in result.ranges] == [
            (pendulum.parse("2024-03-04T14:00:00Z"), pendulum.parse("2024-03-04T15:00:00Z")),
            (pendulum.parse("2024-03-05T05:00:00Z"), pendulum.parse("2024-03-06T05:00:00Z")),
        ]

    def test_missing_file_returns_no_busy_time(self, tmp_path):
        client = MockCalendarClient(data_file=tmp_path / "missing.json")

        result = asyncio.run(client.get_busy_times("ana@example.com", START, END))

        assert result.ranges == []

    def test_bundled_sample_loads(self):
        client = MockCalendarClient()

        result = asyncio.run(client.get_busy_times("ana.ferreira@example.com", START, END.add(days=7)))

        assert len(result.ranges) == 2
