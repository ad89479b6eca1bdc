"""
Session billing math.

Durations are taken in whole elapsed milliseconds and converted to an exact
``Decimal`` number of hours; cost is ``hourly_rate * hours`` with no rounding.
Rounding to cents is a display concern (see ``billiards.utils.format_cost``).
"""
from datetime import timedelta
from decimal import Decimal
from typing import Optional

MS_PER_HOUR = Decimal(3_600_000)


def elapsed_milliseconds(started_at, ended_at) -> int:
    return (ended_at - started_at) // timedelta(milliseconds=1)


def duration_hours(started_at, ended_at) -> Decimal:
    return Decimal(elapsed_milliseconds(started_at, ended_at)) / MS_PER_HOUR


def session_cost(hourly_rate, started_at, ended_at) -> Optional[Decimal]:
    """Billed amount for a session, or None when the table has no rate."""
    if hourly_rate is None:
        return None
    return Decimal(str(hourly_rate)) * duration_hours(started_at, ended_at)
