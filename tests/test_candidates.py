"""
Tests for candidate start time generation.
"""

import pendulum
import pytest

from eleva_availability.domain.candidates import generate_candidate_times, round_up_to_step


class TestRoundUpToStep:
    """Tests for rounding the horizon start."""

    @pytest.mark.parametrize(
        "now, expected",
        [
            ("2024-03-04T13:45:00Z", "2024-03-04T13:45:00Z"),
            ("2024-03-04T13:45:01Z", "2024-03-04T14:00:00Z"),
            ("2024-03-04T13:46:00Z", "2024-03-04T14:00:00Z"),
            ("2024-03-04T23:59:00Z", "2024-03-05T00:00:00Z"),
        ],
    )
    def test_rounds_up(self, now, expected):
        assert round_up_to_step(pendulum.parse(now), 15) == pendulum.parse(expected)

    def test_result_is_utc(self):
        lisbon = pendulum.parse("2024-07-01 10:07", tz="Europe/Lisbon")

        rounded = round_up_to_step(lisbon, 15)

        assert rounded.timezone_name == "UTC"
        assert rounded == pendulum.parse("2024-07-01T09:15:00Z")

    def test_rejects_non_positive_step(self):
        with pytest.raises(ValueError):
            round_up_to_step(pendulum.now("UTC"), 0)

    @pytest.mark.parametrize("step", [7, 45, 90])
    def test_rejects_step_that_does_not_divide_the_hour(self, step):
        with pytest.raises(ValueError, match="divide 60"):
            round_up_to_step(pendulum.now("UTC"), step)


class TestGenerateCandidateTimes:
    """Tests for the two-month booking horizon."""

    def test_two_month_horizon(self):
        now = pendulum.parse("2024-01-31T23:50:00Z")

        times = generate_candidate_times(now)

        assert times[0] == pendulum.parse("2024-02-01T00:00:00Z")
        assert times[-1] == pendulum.parse("2024-04-01T23:45:00Z")
        # February (leap year) + March + 1 April, 96 quarter hours per day
        assert len(times) == (29 + 31 + 1) * 96

    def test_times_are_evenly_spaced(self):
        times = generate_candidate_times(pendulum.parse("2024-03-04T10:00:00Z"), step_minutes=30, months_ahead=1)

        assert all((b - a).in_minutes() == 30 for a, b in zip(times, times[1:]))
