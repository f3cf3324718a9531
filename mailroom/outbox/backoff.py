# mailroom/outbox/backoff.py
from datetime import datetime, timedelta
from typing import Optional, Sequence

# Delay before attempt N+1 after N failed attempts (1-based by attempt count)
BACKOFF_SCHEDULE = (
    timedelta(seconds=5),
    timedelta(minutes=5),
    timedelta(hours=1),
    timedelta(hours=3),
    timedelta(hours=6),
    timedelta(hours=24),
)


def validate_schedule(schedule: Sequence[timedelta]) -> tuple:
    """Return the schedule as a tuple; it must be non-empty, positive and non-decreasing."""
    schedule = tuple(schedule)
    if not schedule:
        raise ValueError("Backoff schedule must contain at least one delay")
    previous = timedelta(0)
    for delay in schedule:
        if delay <= timedelta(0):
            raise ValueError(f"Backoff delays must be positive, got {delay}")
        if delay < previous:
            raise ValueError("Backoff schedule must be non-decreasing")
        previous = delay
    return schedule


def next_attempt_at(attempts: int, now: datetime,
                    schedule: Sequence[timedelta] = BACKOFF_SCHEDULE) -> Optional[datetime]:
    """
    When the next attempt may run after ``attempts`` failed attempts.

    Returns None once the schedule is exhausted, which means give up.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1 after a failed attempt")
    index = attempts - 1
    if index >= len(schedule):
        return None
    return now + schedule[index]


def max_attempts(schedule: Sequence[timedelta] = BACKOFF_SCHEDULE) -> int:
    """Total attempts a job gets before it is given up: one per delay plus the first."""
    return len(schedule) + 1
