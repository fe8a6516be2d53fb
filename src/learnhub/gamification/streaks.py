"""Daily streak transitions.

A streak counts consecutive UTC calendar days with at least one activity.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone


@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None


def activity_day(event_time: datetime) -> date:
    """UTC calendar day of an event. Naive datetimes are taken as UTC."""
    if event_time.tzinfo is None:
        return event_time.date()
    return event_time.astimezone(timezone.utc).date()


def advance_streak(state: StreakState, event_time: datetime) -> StreakState:
    """Apply one activity at ``event_time`` to a streak state.

    - first activity ever: streak 1
    - same day: unchanged
    - next day: +1
    - gap of two or more days: reset to 1
    - event dated before the last activity: unchanged (late or skewed clock)
    """
    day = activity_day(event_time)
    longest = max(state.longest_streak, state.current_streak)

    if state.last_activity_date is None:
        return StreakState(1, max(longest, 1), day)

    day_delta = (day - state.last_activity_date).days

    if day_delta < 0:
        return StreakState(state.current_streak, longest, state.last_activity_date)
    if day_delta == 0:
        return StreakState(state.current_streak, longest, day)
    if day_delta == 1:
        current = state.current_streak + 1
        return StreakState(current, max(longest, current), day)
    return StreakState(1, max(longest, 1), day)
