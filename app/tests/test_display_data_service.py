from datetime import datetime

import pytest

from app.core.config import Settings
from app.models.display_data import DisplayDataType
from app.models.energy import EnergyType, ReadingCreate
from app.repositories.display_data import DisplayDataRepository
from app.repositories.readings import SourceReadingRepository
from app.services.display_data_service import (
    DisplayDataService,
    generate_data_hash,
    resolve_display_type,
)

MONTHLY = {"type": "power", "year": 2024}
HISTOGRAM = {
    "type": "power",
    "start_date": "2024-01-01T00:00:00",
    "end_date": "2024-01-11T00:00:00",
    "bucket_count": 10,
}


@pytest.fixture
def readings(fake_db):
    return SourceReadingRepository(fake_db)


@pytest.fixture
def service(fake_db, readings):
    return DisplayDataService(readings, DisplayDataRepository(fake_db), Settings(_env_file=None))


async def _add(readings, amount, date, type=EnergyType.POWER, user_id="u1"):
    return await readings.create(user_id, ReadingCreate(type=type, amount=amount, date=date))


def test_hash_is_order_independent(make_reading):
    a = make_reading(1, datetime(2024, 1, 1), reading_id="a")
    b = make_reading(2, datetime(2024, 1, 2), reading_id="b")
    assert generate_data_hash([a, b]) == generate_data_hash([b, a])
    assert generate_data_hash([a]) != generate_data_hash([a, b])


def test_hash_changes_with_amount(make_reading):
    a = make_reading(1, datetime(2024, 1, 1), reading_id="a")
    edited = make_reading(2, datetime(2024, 1, 1), reading_id="a")
    assert generate_data_hash([a]) != generate_data_hash([edited])


def test_resolve_display_type():
    assert resolve_display_type("monthly-chart-gas", {}) == ("monthly-chart", EnergyType.GAS)
    assert resolve_display_type("histogram", {"type": "gas"}) == ("histogram", EnergyType.GAS)
    assert resolve_display_type("monthly-chart", {}) == ("monthly-chart", EnergyType.POWER)
    with pytest.raises(ValueError):
        resolve_display_type("pie-chart", {})
    with pytest.raises(ValueError):
        resolve_display_type("histogram-water", {})


@pytest.mark.asyncio
async def test_miss_then_hit(service, readings):
    await _add(readings, 1000, datetime(2024, 1, 31))
    await _add(readings, 1300, datetime(2024, 2, 29))

    first, hit = await service.get_or_calculate("u1", "monthly-chart", MONTHLY)
    assert hit is False
    assert first.display_type == DisplayDataType.MONTHLY_CHART_POWER
    assert first.metadata.source_reading_count == 2
    assert len(first.data["readings"]) == 12
    assert first.data["consumption"][1]["consumption"] == pytest.approx(300)

    second, hit = await service.get_or_calculate("u1", "monthly-chart", MONTHLY)
    assert hit is True
    assert second.source_data_hash == first.source_data_hash


@pytest.mark.asyncio
async def test_new_reading_makes_cache_stale(service, readings, fake_db):
    await _add(readings, 1000, datetime(2024, 1, 31))
    await _add(readings, 1300, datetime(2024, 2, 29))
    first, _ = await service.get_or_calculate("u1", "monthly-chart-power", MONTHLY)

    await _add(readings, 1600, datetime(2024, 3, 31))
    assert await service.get_display_data("u1", "monthly-chart-power", MONTHLY) is None

    fresh, hit = await service.get_or_calculate("u1", "monthly-chart-power", MONTHLY)
    assert hit is False
    assert fresh.source_data_hash != first.source_data_hash
    assert fresh.metadata.source_reading_count == 3
    # recalculation overwrites the entry in place
    assert len(fake_db.display_energy_data.docs) == 1


@pytest.mark.asyncio
async def test_other_year_is_a_miss(service, readings):
    await _add(readings, 1000, datetime(2024, 1, 31))
    await service.get_or_calculate("u1", "monthly-chart", MONTHLY)

    assert await service.get_display_data("u1", "monthly-chart", {"type": "power", "year": 2023}) is None


@pytest.mark.asyncio
async def test_histogram_payload_and_cache(service, readings):
    await _add(readings, 1, datetime(2024, 1, 1))
    await _add(readings, 2, datetime(2024, 1, 5, 12))
    await _add(readings, 3, datetime(2024, 2, 1))  # outside the window

    entry, hit = await service.get_or_calculate("u1", "histogram", HISTOGRAM)
    assert hit is False
    assert entry.display_type == DisplayDataType.HISTOGRAM_POWER
    assert [b["count"] for b in entry.data["buckets"]] == [1, 0, 0, 0, 1, 0, 0, 0, 0, 0]
    assert entry.data["max_count"] == 1
    assert entry.metadata.source_reading_count == 2

    _, hit = await service.get_or_calculate("u1", "histogram", HISTOGRAM)
    assert hit is True


@pytest.mark.asyncio
async def test_histogram_defaults(service, readings):
    await _add(readings, 1, datetime(2024, 1, 1))
    await _add(readings, 2, datetime(2024, 3, 1))

    entry = await service.calculate_histogram_data("u1", EnergyType.POWER)
    filters = entry.metadata.filters
    assert filters["start_date"] == datetime(2024, 1, 1)
    assert filters["bucket_count"] == 100
    assert filters["end_date"] > datetime(2024, 3, 1)
    assert sum(b["count"] for b in entry.data["buckets"]) == 2

    _, hit = await service.get_or_calculate("u1", "histogram", {"type": "power"})
    assert hit is True


@pytest.mark.asyncio
async def test_invalid_filters(service):
    with pytest.raises(ValueError):
        await service.get_or_calculate("u1", "histogram", {"start_date": "not-a-date"})
    with pytest.raises(ValueError):
        await service.get_or_calculate("u1", "histogram", {"bucket_count": -1})
    with pytest.raises(ValueError):
        await service.get_or_calculate("u1", "bar-chart", {})


@pytest.mark.asyncio
async def test_invalidate_all_for_user(service, readings):
    await _add(readings, 1000, datetime(2024, 1, 31))
    await _add(readings, 1000, datetime(2024, 1, 31), user_id="u2")
    await service.get_or_calculate("u1", "monthly-chart", MONTHLY)
    await service.get_or_calculate("u1", "histogram", {"type": "power"})
    await service.get_or_calculate("u2", "monthly-chart", MONTHLY)

    assert await service.invalidate_all_for_user("u1") == 2
    assert await service.get_display_data("u1", "monthly-chart", MONTHLY) is None
    assert await service.get_display_data("u2", "monthly-chart", MONTHLY) is not None


@pytest.mark.asyncio
async def test_cache_can_be_disabled(fake_db, readings):
    service = DisplayDataService(
        readings,
        DisplayDataRepository(fake_db),
        Settings(_env_file=None, DISPLAY_CACHE_ENABLED=False),
    )
    await _add(readings, 1000, datetime(2024, 1, 31))

    await service.get_or_calculate("u1", "monthly-chart", MONTHLY)
    _, hit = await service.get_or_calculate("u1", "monthly-chart", MONTHLY)
    assert hit is False


@pytest.mark.asyncio
async def test_monthly_chart_helper(service, readings):
    await _add(readings, 10, datetime(2024, 6, 30), type=EnergyType.GAS)

    entry = await service.calculate_monthly_chart_data("u1", EnergyType.GAS, 2024)
    assert entry.display_type == DisplayDataType.MONTHLY_CHART_GAS
    assert entry.data["readings"][5]["is_actual"] is True


@pytest.mark.asyncio
async def test_bucket_count_is_capped(service):
    await service.get_or_calculate("u1", "histogram", {"type": "power", "bucket_count": 1000})
    with pytest.raises(ValueError):
        await service.get_or_calculate("u1", "histogram", {"type": "power", "bucket_count": 10**8})
