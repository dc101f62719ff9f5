"""Copy legacy readings from `energies` into `source_energy_readings`.

Usage:
  python scripts/migrate_to_new_backend.py            # dry run
  python scripts/migrate_to_new_backend.py --apply
  python scripts/migrate_to_new_backend.py --apply --enable

Readings already present in the new collection (same user, type and date)
are skipped, so the script can be re-run. --enable switches the global
NEW_BACKEND_ENABLED flag on once the copy finished.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib
import sys

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from app.core.config import settings
from app.core.database import (
    LEGACY_READINGS_COLLECTION,
    READINGS_COLLECTION,
    close_mongo_connection,
    connect_to_mongo,
)
from app.models.energy import EnergyType
from app.repositories.base import now_utc
from app.repositories.feature_flags import FeatureFlagRepository
from app.services.feature_flags import GLOBAL_BACKEND_FLAG

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("migrate_to_new_backend")


def to_source_doc(legacy: dict) -> dict:
    energy_type = EnergyType(legacy["type"])
    return {
        "user_id": str(legacy["user_id"]),
        "type": energy_type.value,
        "amount": float(legacy["amount"]),
        "date": legacy["date"],
        "unit": legacy.get("unit") or energy_type.default_unit,
        "meter_id": legacy.get("meter_id"),
        "legacy_id": str(legacy["_id"]),
        "created_at": legacy.get("created_at") or now_utc(),
        "updated_at": now_utc(),
    }


async def migrate(db, apply: bool) -> dict:
    stats = {"seen": 0, "copied": 0, "skipped": 0, "invalid": 0}
    target = db[READINGS_COLLECTION]

    async for legacy in db[LEGACY_READINGS_COLLECTION].find({}):
        stats["seen"] += 1
        try:
            doc = to_source_doc(legacy)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Skipping legacy reading {legacy.get('_id')}: {e}")
            stats["invalid"] += 1
            continue

        existing = await target.find_one({"user_id": doc["user_id"], "type": doc["type"], "date": doc["date"]})
        if existing:
            stats["skipped"] += 1
            continue

        if apply:
            await target.insert_one(doc)
        stats["copied"] += 1

    return stats


async def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--apply", action="store_true", help="write documents (default: dry run)")
    parser.add_argument("--enable", action="store_true", help=f"enable {GLOBAL_BACKEND_FLAG} afterwards")
    args = parser.parse_args(argv)

    client, db = await connect_to_mongo(settings)
    try:
        stats = await migrate(db, args.apply)
        mode = "copied" if args.apply else "would copy"
        logger.info(
            f"{stats['seen']} legacy readings: {mode} {stats['copied']}, "
            f"skipped {stats['skipped']} existing, {stats['invalid']} invalid"
        )

        if args.enable:
            if not args.apply:
                logger.warning("--enable ignored in dry run")
            else:
                await FeatureFlagRepository(db).set(GLOBAL_BACKEND_FLAG, {"enabled": True})
                logger.info(f"{GLOBAL_BACKEND_FLAG} enabled")
    finally:
        await close_mongo_connection(client)


if __name__ == '__main__':
    asyncio.run(main())
