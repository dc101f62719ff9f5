# app/services/display_data_service.py
"""
Display data cache.

Pre-computed chart payloads are stored per (user, display type) together with
a SHA-256 hash of the readings they were built from. A stored payload is only
served while that hash still matches the current readings; otherwise it is
recalculated and overwritten. Reading mutations also drop every payload of the
user, so stale entries do not linger.
"""

import hashlib
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.core.config import Settings
from app.models.display_data import DisplayData, DisplayDataMetadata, DisplayDataType
from app.models.energy import EnergyType, Reading
from app.repositories.base import now_utc
from app.services.consumption import as_utc
from app.services.histogram import aggregate_into_buckets, date_range, max_bucket_count
from app.services.monthly_aggregation import calculate_monthly_consumption, calculate_monthly_readings

logger = logging.getLogger(__name__)

MONTHLY_CHART = "monthly-chart"
HISTOGRAM = "histogram"


def generate_data_hash(readings: Sequence[Reading]) -> str:
    """SHA-256 over reading ids, dates and amounts, independent of order."""
    parts = sorted(f"{r.id}-{as_utc(r.date).isoformat()}-{r.amount}" for r in readings)
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def _truncate_ms(value: datetime) -> datetime:
    # Mongo keeps millisecond precision
    value = as_utc(value)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def _parse_date(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _truncate_ms(value)
    try:
        return _truncate_ms(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        raise ValueError(f"Invalid date filter: {value!r}")


def resolve_display_type(display_type: str, filters: Dict[str, Any]) -> Tuple[str, EnergyType]:
    """
    Split "monthly-chart-gas" / "histogram" (+ filters.type) into kind and
    energy type. Unknown kinds raise ValueError.
    """
    for kind in (MONTHLY_CHART, HISTOGRAM):
        if display_type == kind:
            return kind, EnergyType(filters.get("type") or EnergyType.POWER.value)
        if display_type.startswith(kind + "-"):
            return kind, EnergyType(display_type[len(kind) + 1:])
    raise ValueError(f"Unsupported display type: {display_type}")


class DisplayDataService:
    def __init__(self, reading_repository, display_repository, cfg: Settings):
        self.readings = reading_repository
        self.display = display_repository
        self.settings = cfg

    async def _source(
        self,
        user_id: str,
        display_type: str,
        filters: Dict[str, Any],
    ) -> Tuple[DisplayDataType, Dict[str, Any], List[Reading]]:
        """Resolve the stored display type, normalised filters and source readings."""
        kind, energy_type = resolve_display_type(display_type, filters)
        stored_type = DisplayDataType(f"{kind}-{energy_type.value}")

        if kind == MONTHLY_CHART:
            year = int(filters.get("year") or now_utc().year)
            if year < 1900 or year > 2100:
                year = now_utc().year
            readings = await self.readings.find_by_date_range(
                user_id,
                datetime(year, 1, 1),
                datetime(year + 1, 1, 1) - timedelta(milliseconds=1),
                energy_type,
            )
            return stored_type, {"year": year, "type": energy_type.value}, readings

        bucket_count = int(filters.get("bucket_count") or self.settings.DEFAULT_HISTOGRAM_BUCKETS)
        if bucket_count < 1:
            raise ValueError("bucket_count must be at least 1")
        if bucket_count > self.settings.MAX_HISTOGRAM_BUCKETS:
            raise ValueError(f"bucket_count must be at most {self.settings.MAX_HISTOGRAM_BUCKETS}")

        all_readings = await self.readings.find_all(user_id, energy_type=energy_type)
        first, _ = date_range(all_readings)
        today = now_utc().replace(hour=0, minute=0, second=0, microsecond=0)

        end = _parse_date(filters.get("end_date")) or today + timedelta(days=1)
        start = _parse_date(filters.get("start_date")) or _truncate_ms(first or today - timedelta(days=365))
        if end < start:
            start, end = end, start

        readings = [r for r in all_readings if start <= as_utc(r.date) <= end]
        normalized = {
            "type": energy_type.value,
            "start_date": start,
            "end_date": end,
            "bucket_count": bucket_count,
        }
        return stored_type, normalized, readings

    async def get_display_data(
        self,
        user_id: str,
        display_type: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Optional[DisplayData]:
        """Cached payload if its source hash still matches, else None."""
        stored_type, normalized, readings = await self._source(user_id, display_type, filters or {})
        return await self._lookup(user_id, stored_type, normalized, readings)

    async def _lookup(self, user_id, stored_type, normalized, readings) -> Optional[DisplayData]:
        cached = await self.display.find_by_type_and_filters(user_id, stored_type, normalized)
        if cached is None:
            return None
        if cached.source_data_hash != generate_data_hash(readings):
            logger.info(f"Display data {stored_type.value} for user {user_id} is stale")
            return None
        return cached

    async def calculate_display_data(
        self,
        user_id: str,
        display_type: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> DisplayData:
        stored_type, normalized, readings = await self._source(user_id, display_type, filters or {})
        return await self._store(user_id, stored_type, normalized, readings)

    async def calculate_monthly_chart_data(self, user_id: str, energy_type: EnergyType, year: int) -> DisplayData:
        return await self.calculate_display_data(
            user_id, MONTHLY_CHART, {"type": EnergyType(energy_type).value, "year": year}
        )

    async def calculate_histogram_data(
        self,
        user_id: str,
        energy_type: EnergyType,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        bucket_count: Optional[int] = None,
    ) -> DisplayData:
        return await self.calculate_display_data(
            user_id,
            HISTOGRAM,
            {
                "type": EnergyType(energy_type).value,
                "start_date": start,
                "end_date": end,
                "bucket_count": bucket_count,
            },
        )

    async def get_or_calculate(
        self,
        user_id: str,
        display_type: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Tuple[DisplayData, bool]:
        """Cached payload and True, or a freshly stored one and False."""
        stored_type, normalized, readings = await self._source(user_id, display_type, filters or {})

        if self.settings.DISPLAY_CACHE_ENABLED:
            cached = await self._lookup(user_id, stored_type, normalized, readings)
            if cached is not None:
                return cached, True

        return await self._store(user_id, stored_type, normalized, readings), False

    async def _store(
        self,
        user_id: str,
        stored_type: DisplayDataType,
        normalized: Dict[str, Any],
        readings: List[Reading],
    ) -> DisplayData:
        started = time.perf_counter()

        if stored_type.value.startswith(MONTHLY_CHART):
            energy_type = EnergyType(normalized["type"])
            monthly = calculate_monthly_readings(readings, normalized["year"], energy_type)
            data: Dict[str, Any] = {
                "year": normalized["year"],
                "type": energy_type.value,
                "readings": monthly,
                "consumption": calculate_monthly_consumption(monthly),
            }
        else:
            buckets = aggregate_into_buckets(
                readings, normalized["start_date"], normalized["end_date"], normalized["bucket_count"]
            )
            data = {"buckets": buckets, "max_count": max_bucket_count(buckets)}

        entry = DisplayData(
            user_id=user_id,
            display_type=stored_type,
            data=data,
            calculated_at=now_utc(),
            source_data_hash=generate_data_hash(readings),
            metadata=DisplayDataMetadata(
                source_reading_count=len(readings),
                calculation_time_ms=(time.perf_counter() - started) * 1000,
                filters=normalized,
            ),
        )
        logger.info(f"Calculated {stored_type.value} for user {user_id} from {len(readings)} readings")
        return await self.display.upsert(entry)

    async def invalidate_all_for_user(self, user_id: str) -> int:
        return await self.display.invalidate_for_user(user_id)
