# app/services/aggregates.py
"""
Dashboard totals across energy types.

Per energy type the estimated yearly cost uses the whole-history daily rate
and the contract active on ``as_of``. Historical years are priced with
``calculate_interval_cost`` so a year spanning a contract change is split
between the contracts.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from app.models.energy import Contract, EnergyType, Reading
from app.models.projection import AggregateResult, YearStats
from app.repositories.base import now_utc
from app.services.consumption import as_utc, daily_rate, sort_by_date
from app.services.projection_service import (
    DAYS_PER_YEAR,
    calculate_interval_cost,
    find_active_contract,
)

logger = logging.getLogger(__name__)


def _year_consumption(ordered: List[Reading], year: int):
    """(start reading, end reading) bounding the consumption of a year, or None."""
    year_start = datetime(year, 1, 1)
    next_year = datetime(year + 1, 1, 1)

    if not any(year_start <= as_utc(r.date) < next_year for r in ordered):
        return None

    # first reading in the year, last reading up to its end
    start = next(r for r in ordered if as_utc(r.date) >= year_start)
    up_to_end = [r for r in ordered if as_utc(r.date) < next_year]
    if len(up_to_end) < 2 or up_to_end[-1] is start:
        return None
    return start, up_to_end[-1]


def calculate_aggregates(
    readings: Sequence[Reading],
    contracts: Sequence[Contract],
    as_of: datetime,
) -> AggregateResult:
    as_of = as_utc(as_of)
    yearly_cost: Dict[EnergyType, float] = {t: 0.0 for t in EnergyType}
    history: Dict[int, YearStats] = {}

    for energy_type in EnergyType:
        ordered = [
            r for r in sort_by_date(readings)
            if r.type == energy_type and as_utc(r.date) <= as_of
        ]
        rate = daily_rate(ordered)
        if rate is None:
            continue
        typed_contracts = [c for c in contracts if c.type == energy_type]

        contract = find_active_contract(typed_contracts, energy_type, as_of)
        if contract is not None:
            yearly_cost[energy_type] = contract.base_price + rate * DAYS_PER_YEAR * contract.working_price

        for year in range(as_utc(ordered[0].date).year, as_of.year + 1):
            bounds = _year_consumption(ordered, year)
            if bounds is None:
                continue
            first, last = bounds
            consumption = last.amount - first.amount
            cost = calculate_interval_cost(first.date, last.date, consumption, typed_contracts)

            stats = history.setdefault(year, YearStats(year=year))
            if energy_type is EnergyType.POWER:
                stats.power_consumption += consumption
                stats.power_cost += cost
            else:
                stats.gas_consumption += consumption
                stats.gas_cost += cost
            stats.cost += cost

    previous = history.get(as_of.year - 1)
    return AggregateResult(
        as_of=as_of,
        total_yearly_cost=sum(yearly_cost.values()),
        power_yearly_cost=yearly_cost[EnergyType.POWER],
        gas_yearly_cost=yearly_cost[EnergyType.GAS],
        previous_year_total=previous.cost if previous else 0.0,
        previous_year_power=previous.power_cost if previous else 0.0,
        previous_year_gas=previous.gas_cost if previous else 0.0,
        yearly_history=[history[y] for y in sorted(history)],
    )


class AggregatesService:
    def __init__(self, reading_repository, contract_repository):
        self.readings = reading_repository
        self.contracts = contract_repository

    async def get_aggregates(self, user_id: str, as_of: Optional[datetime] = None) -> AggregateResult:
        as_of = as_utc(as_of) if as_of else now_utc()
        readings = await self.readings.find_all(user_id)
        contracts = await self.contracts.find_all(user_id)
        logger.debug(f"Aggregating {len(readings)} readings and {len(contracts)} contracts for user {user_id}")
        return calculate_aggregates(readings, contracts, as_of)
