# app/services/projection_service.py
"""
Projection engine.

Given the cumulative readings and pricing contracts of one user and energy
type, estimates current-month and current-year consumption and cost by
extrapolating the average daily rate since tracking began.

The calculation itself is pure (``calculate_projection``); ``ProjectionService``
only loads the inputs from the repositories.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from app.models.energy import Contract, EnergyType, Reading
from app.models.projection import (
    MeterProjection,
    MonthlyProjectionPoint,
    MonthProjection,
    ProjectionResult,
    YearProjection,
)
from app.repositories.base import now_utc
from app.services.consumption import (
    as_utc,
    daily_rate,
    days_between,
    elapsed_days,
    monthly_daily_averages,
    sort_by_date,
)

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365


def _month_start(year: int, month: int) -> datetime:
    if month > 12:
        return datetime(year + 1, month - 12, 1)
    return datetime(year, month, 1)


def find_active_contract(
    contracts: Sequence[Contract],
    energy_type: EnergyType,
    on: datetime,
) -> Optional[Contract]:
    """
    The contract in force for energy_type on the given date: started on or
    before it, not yet ended, and the most recently started one if several
    overlap.
    """
    on = as_utc(on)
    candidates = [
        c for c in contracts
        if c.type == energy_type
        and as_utc(c.start_date) <= on
        and (c.end_date is None or as_utc(c.end_date) >= on)
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda c: as_utc(c.start_date))


def _consumption_in_period(
    ordered: List[Reading],
    period_start: datetime,
    period_end: datetime,
) -> tuple:
    """
    Consumption recorded inside [period_start, period_end).

    Returns (consumption, readings_in_period). With a single in-period reading
    the last reading before the period is used as the baseline.
    """
    inside = [r for r in ordered if period_start <= as_utc(r.date) < period_end]

    if len(inside) >= 2:
        return inside[-1].amount - inside[0].amount, inside
    if len(inside) == 1:
        before = [r for r in ordered if as_utc(r.date) < period_start]
        if before:
            return inside[0].amount - before[-1].amount, inside
    return 0.0, inside


def _cost(units: float, days: float, contract: Optional[Contract]) -> float:
    if contract is None:
        return 0.0
    return units * contract.working_price + contract.base_price / DAYS_PER_YEAR * days


def calculate_interval_cost(
    start: datetime,
    end: datetime,
    consumption: float,
    contracts: Sequence[Contract],
) -> float:
    """
    Cost of ``consumption`` used evenly between start and end, split across
    every contract overlapping the interval by the days they share.

    A contract's end date counts as a full day. Days not covered by any
    contract cost nothing.
    """
    start, end = as_utc(start), as_utc(end)
    total_days = elapsed_days(start, end)
    if total_days <= 0:
        return 0.0

    per_day = consumption / total_days
    cost = 0.0
    for contract in contracts:
        contract_start = as_utc(contract.start_date)
        contract_end = as_utc(contract.end_date) + timedelta(days=1) if contract.end_date else end

        overlap = elapsed_days(max(start, contract_start), min(end, contract_end))
        if overlap > 0:
            cost += _cost(per_day * overlap, overlap, contract)
    return cost


def calculate_projection(
    readings: Sequence[Reading],
    contracts: Sequence[Contract],
    as_of: datetime,
    energy_type: EnergyType,
) -> Optional[ProjectionResult]:
    """
    Project current-month and current-year totals as of ``as_of``.

    Returns None when fewer than two readings exist up to ``as_of``. Without
    an active contract every cost is 0 and ``has_contract`` is False.
    """
    as_of = as_utc(as_of)
    ordered = [
        r for r in sort_by_date(readings)
        if r.type == energy_type and as_utc(r.date) <= as_of
    ]

    rate = daily_rate(ordered)
    if rate is None:
        return None

    contract = find_active_contract(contracts, energy_type, as_of)

    # current month
    month_start = _month_start(as_of.year, as_of.month)
    next_month = _month_start(as_of.year, as_of.month + 1)
    days_in_month = (next_month - month_start).days
    days_elapsed_month = elapsed_days(month_start, as_of)
    days_remaining_month = max(0.0, days_in_month - days_elapsed_month)

    actual_month, in_month = _consumption_in_period(ordered, month_start, next_month)
    projected_month = rate * days_remaining_month
    elapsed_month = actual_month if in_month else rate * days_elapsed_month
    total_month = elapsed_month + projected_month

    # current year
    year_start = datetime(as_of.year, 1, 1)
    next_year = datetime(as_of.year + 1, 1, 1)
    days_in_year = (next_year - year_start).days
    days_elapsed_year = elapsed_days(year_start, as_of)
    days_remaining_year = max(0.0, days_in_year - days_elapsed_year)

    actual_year, in_year = _consumption_in_period(ordered, year_start, next_year)
    projected_year = rate * days_remaining_year
    elapsed_year = actual_year if in_year else rate * days_elapsed_year
    total_year = elapsed_year + projected_year

    # the year carries the full annual base fee
    cost_year = 0.0
    if contract is not None:
        cost_year = total_year * contract.working_price + contract.base_price

    return ProjectionResult(
        type=energy_type,
        as_of=as_of,
        daily_average=rate,
        has_contract=contract is not None,
        current_month=MonthProjection(
            actual=actual_month,
            projected=projected_month,
            estimated_total=total_month,
            estimated_cost=_cost(total_month, days_in_month, contract),
            days_remaining=days_remaining_month,
        ),
        year=YearProjection(
            actual_to_date=actual_year,
            projected_remainder=projected_year,
            estimated_total=total_year,
            estimated_cost=cost_year,
            days_remaining=days_remaining_year,
        ),
        monthly_data=_monthly_series(ordered, in_year, as_of),
    )


def _monthly_series(
    ordered: List[Reading],
    in_year: List[Reading],
    as_of: datetime,
) -> List[MonthlyProjectionPoint]:
    year = as_of.year
    year_start = datetime(year, 1, 1)

    # bridge from the last reading of the previous year
    actual_source = list(in_year)
    if in_year:
        before = [r for r in ordered if as_utc(r.date) < year_start]
        if before:
            actual_source.insert(0, before[-1])

    actual_rates = monthly_daily_averages(actual_source, year=year)
    projected_rates = monthly_daily_averages(ordered)

    series = []
    for month in range(1, 13):
        start = _month_start(year, month)
        days_in = (_month_start(year, month + 1) - start).days

        actual: Optional[float] = actual_rates[month - 1] * days_in
        if month > as_of.month:
            actual = None
        elif month == as_of.month and not any(as_utc(r.date) >= start for r in in_year):
            actual = None

        series.append(
            MonthlyProjectionPoint(
                month=month,
                actual=actual,
                projected=projected_rates[month - 1] * days_in,
            )
        )
    return series


def calculate_meter_projection(
    meter_id: str,
    readings: Sequence[Reading],
    contract: Optional[Contract],
) -> Optional[MeterProjection]:
    """Yearly estimate for a single meter from its first and last reading."""
    if len(readings) < 2:
        return None

    ordered = sort_by_date(readings)
    first, last = ordered[0], ordered[-1]

    total = last.amount - first.amount
    days_tracked = days_between(first.date, last.date)
    average = total / days_tracked
    yearly = average * DAYS_PER_YEAR

    yearly_cost = 0.0
    if contract is not None:
        yearly_cost = contract.base_price + yearly * contract.working_price

    return MeterProjection(
        meter_id=meter_id,
        total_consumption=total,
        daily_average=average,
        estimated_yearly_consumption=yearly,
        estimated_yearly_cost=yearly_cost,
        days_tracked=round(days_tracked),
        has_contract=contract is not None,
    )


class ProjectionService:
    """Loads readings and contracts for a user and runs the projection engine."""

    def __init__(self, reading_repository, contract_repository):
        self.readings = reading_repository
        self.contracts = contract_repository

    async def get_projections(
        self,
        user_id: str,
        energy_type: EnergyType,
        as_of: Optional[datetime] = None,
    ) -> Optional[ProjectionResult]:
        as_of = as_utc(as_of) if as_of else now_utc()

        readings = await self.readings.find_all(user_id, energy_type=energy_type)
        if len(readings) < 2:
            logger.debug(f"Not enough {energy_type.value} readings for user {user_id} to project")
            return None

        contracts = await self.contracts.find_by_type(user_id, energy_type)
        return calculate_projection(readings, contracts, as_of, energy_type)

    async def get_meter_projection(
        self,
        user_id: str,
        meter_id: str,
        energy_type: EnergyType,
        as_of: Optional[datetime] = None,
    ) -> Optional[MeterProjection]:
        as_of = as_utc(as_of) if as_of else now_utc()

        readings = await self.readings.find_all(user_id, energy_type=energy_type, meter_id=meter_id)
        readings = [r for r in readings if as_utc(r.date) <= as_of]
        contracts = await self.contracts.find_by_type(user_id, energy_type)
        contract = find_active_contract(contracts, energy_type, as_of)
        return calculate_meter_projection(meter_id, readings, contract)
