# app/services/consumption.py
"""
Consumption-rate estimation over cumulative meter readings.

All dates are handled as naive UTC. Aware datetimes are converted first,
which is also what Motor hands back by default.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from app.models.energy import Reading

SECONDS_PER_DAY = 86400.0


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def elapsed_days(start: datetime, end: datetime) -> float:
    """Fractional days from start to end (negative if end is earlier)."""
    return (as_utc(end) - as_utc(start)).total_seconds() / SECONDS_PER_DAY


def days_between(start: datetime, end: datetime) -> float:
    """Elapsed days clamped to a minimum of one day."""
    return max(1.0, elapsed_days(start, end))


def sort_by_date(readings: Sequence[Reading]) -> List[Reading]:
    return sorted(readings, key=lambda r: as_utc(r.date))


def daily_rate(readings: Sequence[Reading]) -> Optional[float]:
    """
    Average daily consumption since tracking began.

    Uses the first and last reading of the full history:
    (last.amount - first.amount) / max(1, days between them).
    Returns None when fewer than two readings exist.
    """
    if len(readings) < 2:
        return None

    ordered = sort_by_date(readings)
    first, last = ordered[0], ordered[-1]
    return (last.amount - first.amount) / days_between(first.date, last.date)


def monthly_daily_averages(
    readings: Sequence[Reading],
    year: Optional[int] = None,
) -> List[float]:
    """
    Average daily consumption per calendar month (index 0 = January).

    Consumption between each pair of consecutive readings is spread
    day by day at that pair's rate, so a span crossing a month boundary
    contributes to both months. When year is given, only days inside that
    year are counted.
    """
    totals = [0.0] * 12
    days = [0.0] * 12

    if len(readings) < 2:
        return totals

    ordered = sort_by_date(readings)
    for start, end in zip(ordered, ordered[1:]):
        span = elapsed_days(start.date, end.date)
        if span <= 0:
            continue
        rate = (end.amount - start.amount) / span

        current = as_utc(start.date)
        stop = as_utc(end.date)
        while current < stop:
            next_day = (current + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
            chunk_end = min(next_day, stop)
            chunk = (chunk_end - current).total_seconds() / SECONDS_PER_DAY

            if year is None or current.year == year:
                totals[current.month - 1] += rate * chunk
                days[current.month - 1] += chunk
            current = chunk_end

    return [t / d if d > 0 else 0.0 for t, d in zip(totals, days)]
