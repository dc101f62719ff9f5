from datetime import datetime

import pytest

from app.services.aggregates import AggregatesService, calculate_aggregates

AS_OF = datetime(2024, 6, 15)


@pytest.fixture
def history(make_reading, make_contract):
    readings = [
        # power: 10 per day over the whole history
        make_reading(0, datetime(2023, 1, 1)),
        make_reading(1820, datetime(2023, 7, 2)),
        make_reading(4250, datetime(2024, 3, 1)),
        # gas: 2 per day, no contract
        make_reading(0, datetime(2024, 1, 1), type="gas"),
        make_reading(20, datetime(2024, 1, 11), type="gas"),
    ]
    contracts = [make_contract(365, 0.5, datetime(2023, 1, 1))]
    return readings, contracts


def test_yearly_cost_per_type(history):
    result = calculate_aggregates(*history, AS_OF)

    assert result.power_yearly_cost == pytest.approx(365 + 10 * 365 * 0.5)
    assert result.gas_yearly_cost == 0
    assert result.total_yearly_cost == pytest.approx(result.power_yearly_cost)


def test_yearly_history(history):
    result = calculate_aggregates(*history, AS_OF)

    assert [y.year for y in result.yearly_history] == [2023, 2024]
    last_year = result.yearly_history[0]
    # Jan 1 to Jul 2: 182 days, 1820 units
    assert last_year.power_consumption == pytest.approx(1820)
    assert last_year.power_cost == pytest.approx(1820 * 0.5 + 182)
    assert result.previous_year_total == pytest.approx(last_year.cost)
    assert result.previous_year_power == pytest.approx(last_year.power_cost)
    assert result.previous_year_gas == 0

    this_year = result.yearly_history[1]
    # a single power reading in 2024 gives no power interval
    assert this_year.power_consumption == 0
    assert this_year.gas_consumption == pytest.approx(20)
    assert this_year.cost == 0


def test_year_spanning_contract_change(make_reading, make_contract):
    readings = [
        make_reading(0, datetime(2024, 1, 1)),
        make_reading(600, datetime(2024, 3, 1)),
    ]
    contracts = [
        make_contract(365, 0.5, datetime(2023, 1, 1), end=datetime(2024, 1, 30)),
        make_contract(730, 1.0, datetime(2024, 1, 31)),
    ]
    year = calculate_aggregates(readings, contracts, AS_OF).yearly_history[0]
    assert year.power_cost == pytest.approx(300 * 0.5 + 30 + 300 * 1.0 + 60)


def test_readings_after_as_of_are_ignored(history, make_reading):
    readings, contracts = history
    later = make_reading(99999, datetime(2024, 12, 1))
    assert calculate_aggregates(readings + [later], contracts, AS_OF) == calculate_aggregates(
        readings, contracts, AS_OF
    )


def test_no_readings():
    result = calculate_aggregates([], [], AS_OF)
    assert result.total_yearly_cost == 0
    assert result.yearly_history == []


class StubRepository:
    def __init__(self, items):
        self.items = items

    async def find_all(self, user_id):
        return [i for i in self.items if i.user_id == user_id]


@pytest.mark.asyncio
async def test_service_loads_user_data(history, make_reading):
    readings, contracts = history
    service = AggregatesService(
        StubRepository(readings + [make_reading(5, datetime(2024, 2, 1), user_id="u2")]),
        StubRepository(contracts),
    )
    result = await service.get_aggregates("u1", AS_OF)
    assert result.power_yearly_cost == pytest.approx(2190)
    assert (await service.get_aggregates("u2", AS_OF)).total_yearly_cost == 0
