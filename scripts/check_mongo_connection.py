"""Check MongoDB connectivity using the project's settings.

Usage:
  python scripts/check_mongo_connection.py

Prints the effective database name, tries to connect and shows how many
documents the reading collections hold, or a clear error.
"""
import pathlib
import sys

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from pymongo import MongoClient

from app.core.config import settings
from app.core.database import (
    LEGACY_READINGS_COLLECTION,
    READINGS_COLLECTION,
    _get_db_name_from_uri,
)

try:
    uri = settings.get_mongo_uri()
except RuntimeError as e:
    print(e)
    sys.exit(1)

db_name = _get_db_name_from_uri(uri, settings.MONGODB_DB)
print("Database:", db_name)

try:
    client = MongoClient(uri, serverSelectionTimeoutMS=5000)
    info = client.server_info()
    print("MongoDB server info:", {k: info.get(k) for k in ("version", "gitVersion") if k in info})
    db = client[db_name]
    for name in (READINGS_COLLECTION, LEGACY_READINGS_COLLECTION):
        print(f"{name}: {db[name].estimated_document_count()} documents")
    client.close()
except Exception as e:
    print("Failed to connect to MongoDB:\n", e)
    print("Suggested checks:\n - Is MONGODB_URL in .env correct?\n - Is the mongod / Atlas cluster reachable from this machine?")
    sys.exit(1)
