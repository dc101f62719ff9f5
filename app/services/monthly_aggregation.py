# app/services/monthly_aggregation.py
"""
End-of-month meter values for the monthly chart.

For every month the value is, in order of preference:
  1. an actual reading within MONTH_END_TOLERANCE_DAYS of month end
  2. linear interpolation between the readings around month end
  3. linear extrapolation from two readings on one side
  4. None
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from app.models.energy import EnergyType, Reading
from app.services.consumption import as_utc, sort_by_date

logger = logging.getLogger(__name__)

MONTH_END_TOLERANCE_DAYS = 3

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def month_end(year: int, month: int) -> datetime:
    """Last moment of the month (month is 1-12)."""
    if month == 12:
        first_of_next = datetime(year + 1, 1, 1)
    else:
        first_of_next = datetime(year, month + 1, 1)
    return first_of_next - timedelta(microseconds=1)


def find_nearest_reading(
    readings: Sequence[Reading],
    target: datetime,
    tolerance_days: int = MONTH_END_TOLERANCE_DAYS,
) -> Optional[Reading]:
    nearest = None
    best = None
    for reading in readings:
        # whole days, truncated toward zero
        distance = abs(int((as_utc(reading.date) - target).total_seconds() / 86400))
        if distance > tolerance_days:
            continue
        if best is None or distance < best:
            best = distance
            nearest = reading
        elif distance == best and as_utc(reading.date) > as_utc(nearest.date):
            # same distance: the later reading is closer to end of day
            nearest = reading
    return nearest


def interpolate_value(prev: Reading, nxt: Reading, target: datetime) -> float:
    prev_t = as_utc(prev.date)
    next_t = as_utc(nxt.date)
    if prev_t > next_t:
        raise ValueError("Invalid reading order: prev must be before next")
    if prev_t == next_t:
        raise ValueError("Cannot interpolate between readings on the same date")

    ratio = (target - prev_t).total_seconds() / (next_t - prev_t).total_seconds()
    return prev.amount + (nxt.amount - prev.amount) * ratio


def extrapolate_value(first: Reading, second: Reading, target: datetime) -> float:
    span = (as_utc(second.date) - as_utc(first.date)).total_seconds()
    if span == 0:
        return second.amount
    rate = (second.amount - first.amount) / span
    return second.amount + rate * (target - as_utc(second.date)).total_seconds()


def _source(readings: Sequence[Reading]) -> List[Dict[str, Any]]:
    return [{"date": as_utc(r.date), "amount": r.amount} for r in readings]


def _point(month: int, value: Optional[float], method: str, sources=None, **details) -> Dict[str, Any]:
    calculation = {"method": method}
    if sources is not None:
        calculation["source_readings"] = _source(sources)
    calculation.update(details)
    return {
        "month": month,
        "month_label": MONTH_LABELS[month - 1],
        "meter_reading": value,
        "is_actual": method == "actual",
        "is_interpolated": method == "interpolated",
        "is_extrapolated": method == "extrapolated",
        "calculation_details": calculation,
    }


def calculate_monthly_readings(
    readings: Sequence[Reading],
    year: int,
    energy_type: EnergyType,
) -> List[Dict[str, Any]]:
    """Twelve month-end meter values for one energy type."""
    ordered = sort_by_date([r for r in readings if r.type == energy_type])

    results = []
    for month in range(1, 13):
        target = month_end(year, month)

        actual = find_nearest_reading(ordered, target)
        if actual is not None:
            results.append(_point(month, actual.amount, "actual", [actual]))
            continue

        before = [r for r in ordered if as_utc(r.date) < target]
        after = [r for r in ordered if as_utc(r.date) > target]

        if before and after:
            prev, nxt = before[-1], after[0]
            ratio = (target - as_utc(prev.date)).total_seconds() / (
                as_utc(nxt.date) - as_utc(prev.date)
            ).total_seconds()
            results.append(
                _point(
                    month,
                    interpolate_value(prev, nxt, target),
                    "interpolated",
                    [prev, nxt],
                    interpolation_ratio=ratio,
                )
            )
            continue

        if len(before) >= 2:
            pair = before[-2:]
        elif len(after) >= 2:
            pair = after[:2]
        else:
            results.append(_point(month, None, "none"))
            continue

        results.append(_point(month, extrapolate_value(pair[0], pair[1], target), "extrapolated", pair))

    return results


def calculate_monthly_consumption(
    monthly: List[Dict[str, Any]],
    previous_december: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """
    Consumption per month as the difference of consecutive month-end values.
    January needs previous_december, otherwise it is None.
    """
    if len(monthly) != 12:
        raise ValueError("monthly data must contain exactly 12 months")

    results = []
    for i, current in enumerate(monthly):
        previous = previous_december if i == 0 else monthly[i - 1]

        consumption = None
        if previous is not None and current["meter_reading"] is not None and previous["meter_reading"] is not None:
            consumption = current["meter_reading"] - previous["meter_reading"]
            if consumption < 0:
                logger.warning(
                    f"Negative consumption detected for {current['month_label']} ({current['month']}): {consumption}"
                )

        if consumption is None:
            is_actual = False
            is_derived = False
        else:
            is_actual = bool(current["is_actual"] and previous["is_actual"])
            is_derived = not is_actual

        results.append(
            {
                "month": current["month"],
                "month_label": current["month_label"],
                "consumption": consumption,
                "is_actual": is_actual,
                "is_derived": is_derived,
            }
        )
    return results
