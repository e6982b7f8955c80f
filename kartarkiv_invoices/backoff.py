"""Deadline arithmetic for email delivery retries. All values are seconds."""

from __future__ import annotations

from typing import Optional

SAFETY_BUFFER = 0.5
MIN_ATTEMPT_BUDGET = 1.5
BASE_DELAY = 2.0
MAX_DELAY = 30.0


def attempt_budget(remaining: float) -> float:
    """Time allowed for one attempt: whatever is left minus the buffer, floored."""
    return max(MIN_ATTEMPT_BUDGET, remaining - SAFETY_BUFFER)


def planned_delay(attempt: int) -> float:
    return min(MAX_DELAY, BASE_DELAY * 2 ** (attempt - 1))


def next_delay(attempt: int, remaining: float) -> Optional[float]:
    """Delay before the attempt after ``attempt``, or None when the deadline cannot fit one more."""
    headroom = remaining - SAFETY_BUFFER - MIN_ATTEMPT_BUDGET
    if headroom <= 0:
        return None
    delay = min(planned_delay(attempt), headroom)
    return delay if delay > 0 else None
