"""
Generation of candidate booking start times over the booking horizon.
"""

from typing import List

from pendulum import DateTime


def round_up_to_step(moment: DateTime, step_minutes: int) -> DateTime:
    """
    Round ``moment`` up to the next multiple of ``step_minutes`` past the hour.

    Values already on a step boundary are returned unchanged (seconds and
    microseconds cleared). The step must divide the hour so every candidate
    lands on the same minutes of every hour.
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be greater than zero")
    if 60 % step_minutes:
        raise ValueError(f"step_minutes must divide 60, got {step_minutes}")

    moment = moment.in_timezone("UTC")
    floored = moment.set(minute=moment.minute - moment.minute % step_minutes, second=0, microsecond=0)

    if floored == moment:
        return floored
    return floored.add(minutes=step_minutes)


def generate_candidate_times(
    now: DateTime,
    step_minutes: int = 15,
    months_ahead: int = 2
) -> List[DateTime]:
    """
    Every ``step_minutes`` from ``now`` (rounded up) through the end of the
    day ``months_ahead`` months later, all in UTC.
    """
    start = round_up_to_step(now, step_minutes)
    end = start.add(months=months_ahead).end_of("day")

    times: List[DateTime] = []
    current = start
    while current <= end:
        times.append(current)
        current = current.add(minutes=step_minutes)

    return times
