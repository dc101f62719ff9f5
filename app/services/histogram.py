# app/services/histogram.py
"""Reading density over time, used by the timeline slider."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.models.energy import Reading
from app.services.consumption import as_utc


def date_range(readings: Sequence[Reading]) -> Tuple[Optional[datetime], Optional[datetime]]:
    if not readings:
        return None, None
    dates = [as_utc(r.date) for r in readings]
    return min(dates), max(dates)


def create_empty_buckets(start: datetime, end: datetime, bucket_count: int) -> List[Dict[str, Any]]:
    width = (end - start) / bucket_count
    return [
        {"start_date": start + width * i, "end_date": start + width * (i + 1), "count": 0}
        for i in range(bucket_count)
    ]


def aggregate_into_buckets(
    readings: Sequence[Reading],
    start: datetime,
    end: datetime,
    bucket_count: int,
) -> List[Dict[str, Any]]:
    """Count readings per equal-width bucket between start and end."""
    if bucket_count < 1:
        raise ValueError("bucket_count must be at least 1")

    start, end = as_utc(start), as_utc(end)
    buckets = create_empty_buckets(start, end, bucket_count)

    total = (end - start).total_seconds()
    for reading in readings:
        when = as_utc(reading.date)
        if when < start or when > end:
            continue

        index = int((when - start).total_seconds() / total * bucket_count) if total > 0 else 0
        buckets[max(0, min(bucket_count - 1, index))]["count"] += 1

    return buckets


def max_bucket_count(buckets: Sequence[Dict[str, Any]]) -> int:
    return max((b["count"] for b in buckets), default=0)
