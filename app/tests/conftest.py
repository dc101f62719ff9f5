import copy
import sys
import pathlib
from datetime import datetime

import pytest
from bson import ObjectId

# Ensure the project root is importable so `import app` works
ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


# ---------------------------------------------------------------------------
# In-memory stand-ins for Motor collections
# ---------------------------------------------------------------------------

_MISSING = object()


def _lookup(doc, dotted):
    value = doc
    for part in dotted.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _matches_condition(value, cond):
    if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
        for op, arg in cond.items():
            if op == "$exists":
                if (value is not _MISSING) != bool(arg):
                    return False
                continue
            if op == "$ne":
                if value == arg:
                    return False
                continue
            if op == "$in":
                if value is _MISSING or value not in arg:
                    return False
                continue
            if value is _MISSING or value is None:
                return False
            if op == "$gte" and not value >= arg:
                return False
            if op == "$lte" and not value <= arg:
                return False
            if op == "$gt" and not value > arg:
                return False
            if op == "$lt" and not value < arg:
                return False
        return True
    if cond is None:
        return value is _MISSING or value is None
    return value is not _MISSING and value == cond


def matches(doc, query):
    for key, cond in (query or {}).items():
        if key == "$or":
            if not any(matches(doc, q) for q in cond):
                return False
        elif key == "$and":
            if not all(matches(doc, q) for q in cond):
                return False
        elif not _matches_condition(_lookup(doc, key), cond):
            return False
    return True


def _project(doc, projection):
    out = copy.deepcopy(doc)
    if projection and projection.get("_id") == 0:
        out.pop("_id", None)
    return out


class _Result:
    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)


class FakeCursor:
    def __init__(self, docs, projection=None):
        self._docs = docs
        self._projection = projection
        self._skip = 0
        self._limit = 0

    def sort(self, key_or_list, direction=1):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        for key, d in reversed(keys):
            self._docs.sort(key=lambda doc: _lookup(doc, key), reverse=d == -1)
        return self

    def skip(self, n):
        self._skip = n
        return self

    def limit(self, n):
        self._limit = n
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in await self.to_list():
            yield doc

    async def to_list(self, length=None):
        docs = self._docs[self._skip:]
        if self._limit:
            docs = docs[: self._limit]
        if length:
            docs = docs[:length]
        return [_project(d, self._projection) for d in docs]


class FakeCollection:
    def __init__(self):
        self.docs = []

    def _find(self, query):
        return [d for d in self.docs if matches(d, query)]

    def find(self, query=None, projection=None):
        return FakeCursor(self._find(query), projection)

    async def find_one(self, query=None, projection=None):
        found = self._find(query)
        return _project(found[0], projection) if found else None

    async def insert_one(self, doc):
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", ObjectId())
        self.docs.append(stored)
        return _Result(inserted_id=stored["_id"])

    async def insert_many(self, docs):
        ids = [(await self.insert_one(d)).inserted_id for d in docs]
        return _Result(inserted_ids=ids)

    def _apply(self, doc, update, inserting):
        for key, value in update.get("$set", {}).items():
            doc[key] = copy.deepcopy(value)
        if inserting:
            for key, value in update.get("$setOnInsert", {}).items():
                doc[key] = copy.deepcopy(value)

    async def update_one(self, query, update, upsert=False):
        found = self._find(query)
        if found:
            self._apply(found[0], update, inserting=False)
            return _Result(matched_count=1, modified_count=1, upserted_id=None)
        if not upsert:
            return _Result(matched_count=0, modified_count=0, upserted_id=None)
        doc = {k: v for k, v in query.items() if not k.startswith("$") and not isinstance(v, dict)}
        doc["_id"] = ObjectId()
        self._apply(doc, update, inserting=True)
        self.docs.append(doc)
        return _Result(matched_count=0, modified_count=0, upserted_id=doc["_id"])

    async def find_one_and_update(self, query, update, projection=None, upsert=False, return_document=None):
        found = self._find(query)
        if found:
            self._apply(found[0], update, inserting=False)
            return _project(found[0], projection)
        if not upsert:
            return None
        result = await self.update_one(query, update, upsert=True)
        return await self.find_one({"_id": result.upserted_id}, projection)

    async def delete_one(self, query):
        found = self._find(query)
        if found:
            self.docs.remove(found[0])
        return _Result(deleted_count=len(found[:1]))

    async def delete_many(self, query):
        found = self._find(query)
        for doc in found:
            self.docs.remove(doc)
        return _Result(deleted_count=len(found))

    async def count_documents(self, query):
        return len(self._find(query))

    async def create_index(self, keys, **kwargs):
        return str(keys)


class FakeDB:
    def __init__(self):
        self._collections = {}

    def __getitem__(self, name):
        return self._collections.setdefault(name, FakeCollection())

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    async def command(self, name):
        return {"ok": 1}


@pytest.fixture
def fake_db():
    return FakeDB()


def _make_reading(amount, date, type="power", user_id="u1", reading_id=None, meter_id=None):
    from app.models.energy import EnergyType, Reading

    return Reading(
        id=reading_id or str(ObjectId()),
        user_id=user_id,
        type=EnergyType(type),
        amount=amount,
        date=date,
        meter_id=meter_id,
    )


def _make_contract(base_price, working_price, start, end=None, type="power", user_id="u1"):
    from app.models.energy import Contract, EnergyType

    return Contract(
        id=str(ObjectId()),
        user_id=user_id,
        type=EnergyType(type),
        start_date=start,
        end_date=end,
        base_price=base_price,
        working_price=working_price,
    )


@pytest.fixture
def scenario_readings():
    """Jan 1 = 1000 and May 1 = 2210 in a leap year: 121 days at 10 per day."""
    return [
        _make_reading(1000, datetime(2024, 1, 1)),
        _make_reading(2210, datetime(2024, 5, 1)),
    ]


@pytest.fixture
def make_reading():
    return _make_reading


@pytest.fixture
def make_contract():
    return _make_contract
