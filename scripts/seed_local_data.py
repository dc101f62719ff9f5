"""Seed a demo user with meters, readings, contracts and backend flags.

Usage (recommended):
  # start a local mongo with docker (one-liner)
  docker run --name energy-mongo -p 27017:27017 -d mongo:7.0 --bind_ip_all

  # set env for local dev (or edit .env)
  export MONGODB_URL="mongodb://localhost:27017"
  python scripts/seed_local_data.py

The script is idempotent (uses upsert by unique keys). Login: demo / demo123
"""
from __future__ import annotations

import asyncio
import pathlib
import sys
from datetime import datetime, timedelta

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from app.api.auth import hash_password
from app.core.config import settings
from app.core.database import (
    CONTRACTS_COLLECTION,
    METERS_COLLECTION,
    READINGS_COLLECTION,
    close_mongo_connection,
    connect_to_mongo,
    ensure_indexes,
)
from app.repositories.base import now_utc
from app.repositories.feature_flags import FeatureFlagRepository
from app.services.feature_flags import FeatureFlagService

DEMO_USER = {
    "username": "demo",
    "email": "demo@local.test",
    "full_name": "Demo Household",
    "role": "user",
    "is_active": True,
}

# (meter_number, name, type, unit, start value, daily consumption)
METERS = [
    ("P-1001", "House power", "power", "kWh", 12000.0, 9.5),
    ("G-2001", "Gas boiler", "gas", "m³", 3400.0, 2.2),
]


async def seed_user(db) -> str:
    doc = dict(DEMO_USER)
    doc["hashed_password"] = hash_password("demo123")
    await db.users.update_one(
        {"username": doc["username"]},
        {"$set": doc, "$setOnInsert": {"created_at": now_utc()}},
        upsert=True,
    )
    user = await db.users.find_one({"username": doc["username"]})
    return str(user["_id"])


async def seed_meters_and_readings(db, user_id: str) -> int:
    today = now_utc().replace(hour=0, minute=0, second=0, microsecond=0)
    start = datetime(today.year - 1, 1, 1)
    count = 0

    for number, name, type_, unit, value, per_day in METERS:
        await db[METERS_COLLECTION].update_one(
            {"user_id": user_id, "meter_number": number},
            {"$set": {"name": name, "type": type_, "unit": unit, "updated_at": now_utc()},
             "$setOnInsert": {"created_at": now_utc()}},
            upsert=True,
        )
        meter = await db[METERS_COLLECTION].find_one({"user_id": user_id, "meter_number": number})
        meter_id = str(meter["_id"])

        # roughly one reading a month, heavier in winter
        day = start
        while day <= today:
            await db[READINGS_COLLECTION].update_one(
                {"user_id": user_id, "type": type_, "date": day},
                {"$set": {"amount": round(value, 1), "unit": unit, "meter_id": meter_id, "updated_at": now_utc()},
                 "$setOnInsert": {"created_at": now_utc()}},
                upsert=True,
            )
            count += 1
            step = 30 if day.month in (4, 5, 6, 7, 8, 9) else 28
            factor = 0.7 if day.month in (5, 6, 7, 8) else 1.3
            value += per_day * factor * step
            day += timedelta(days=step)

    return count


async def seed_contracts(db, user_id: str) -> None:
    contracts = [
        {"type": "power", "provider_name": "City Power", "base_price": 120.0, "working_price": 0.32},
        {"type": "gas", "provider_name": "Gas Works", "base_price": 180.0, "working_price": 0.11},
    ]
    start = datetime(now_utc().year - 1, 1, 1)
    for c in contracts:
        await db[CONTRACTS_COLLECTION].update_one(
            {"user_id": user_id, "type": c["type"], "start_date": start},
            {"$set": {**c, "end_date": None, "updated_at": now_utc()},
             "$setOnInsert": {"created_at": now_utc()}},
            upsert=True,
        )


async def main():
    client, db = await connect_to_mongo(settings)
    try:
        await ensure_indexes(db)
        user_id = await seed_user(db)
        readings = await seed_meters_and_readings(db, user_id)
        await seed_contracts(db, user_id)
        created = await FeatureFlagService(FeatureFlagRepository(db), settings).initialize_backend_flags()

        print(f"Seeded user demo ({user_id}): {readings} readings, {len(METERS)} meters, {created} new flags")
        print("Done.")
    finally:
        await close_mongo_connection(client)


if __name__ == '__main__':
    asyncio.run(main())
