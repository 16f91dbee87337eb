"""MongoDiagnosisStore against an in-process stand-in for a motor collection.

The stand-in implements only the calls the store makes: equality and
``$lt``/``$gt`` filters, exclusion projections, sort/skip/limit cursors,
``$inc`` updates with upsert, and a unique index on chosen keys.
"""

from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from pymongo.errors import DuplicateKeyError

from app.services import diagnosis_store
from app.services.diagnosis_store import MongoDiagnosisStore
from conftest import make_record

DAY = date(2024, 5, 10)


def _matches(doc, query):
    for key, condition in query.items():
        value = doc.get(key)
        if isinstance(condition, dict):
            if value is None:
                return False
            if "$lt" in condition and not value < condition["$lt"]:
                return False
            if "$gt" in condition and not value > condition["$gt"]:
                return False
        elif value != condition:
            return False
    return True


def _project(doc, projection):
    if not projection:
        return dict(doc)
    return {k: v for k, v in doc.items() if projection.get(k, 1)}


def _increment(doc, update):
    for key, amount in update["$inc"].items():
        doc[key] = doc.get(key, 0) + amount


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction):
        self._docs = sorted(self._docs, key=lambda d: d.get(key, ""), reverse=direction < 0)
        return self

    def skip(self, count):
        self._docs = self._docs[count:]
        return self

    def limit(self, count):
        self._docs = self._docs[:count]
        return self

    async def _iterate(self):
        for doc in self._docs:
            yield doc

    def __aiter__(self):
        return self._iterate()


class FakeCollection:
    def __init__(self, unique=()):
        self.docs = []
        self.unique = unique
        self._next_id = 0

    def _insert(self, doc):
        if self.unique:
            key = tuple(doc.get(k) for k in self.unique)
            if any(tuple(d.get(k) for k in self.unique) == key for d in self.docs):
                raise DuplicateKeyError("E11000 duplicate key error", 11000)
        self._next_id += 1
        self.docs.append({"_id": self._next_id, **doc})
        return self.docs[-1]

    async def insert_one(self, doc):
        return SimpleNamespace(inserted_id=self._insert(doc)["_id"])

    async def find_one(self, query):
        for doc in self.docs:
            if _matches(doc, query):
                return dict(doc)
        return None

    def find(self, query, projection=None):
        return FakeCursor([_project(d, projection) for d in self.docs if _matches(d, query)])

    async def count_documents(self, query):
        return sum(1 for d in self.docs if _matches(d, query))

    async def delete_one(self, query):
        for doc in self.docs:
            if _matches(doc, query):
                self.docs.remove(doc)
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query):
        kept = [d for d in self.docs if not _matches(d, query)]
        deleted = len(self.docs) - len(kept)
        self.docs = kept
        return SimpleNamespace(deleted_count=deleted)

    async def update_one(self, query, update):
        for doc in self.docs:
            if _matches(doc, query):
                _increment(doc, update)
                return SimpleNamespace(modified_count=1)
        return SimpleNamespace(modified_count=0)

    async def find_one_and_update(self, query, update, upsert=False, return_document=None):
        for doc in self.docs:
            if _matches(doc, query):
                _increment(doc, update)
                return dict(doc)
        if not upsert:
            return None
        seeded = {k: v for k, v in query.items() if not isinstance(v, dict)}
        _increment(seeded, update)
        return dict(self._insert(seeded))


@pytest.fixture
def collections(monkeypatch):
    diagnoses = FakeCollection()
    usage = FakeCollection(unique=("user_id", "day"))
    monkeypatch.setattr(diagnosis_store, "get_diagnoses_collection", lambda: diagnoses)
    monkeypatch.setattr(diagnosis_store, "get_usage_collection", lambda: usage)
    return SimpleNamespace(diagnoses=diagnoses, usage=usage)


@pytest.fixture
def mongo_store(collections):
    return MongoDiagnosisStore()


async def test_add_stores_json_document(mongo_store, collections):
    record = make_record(photo_data_uri="data:image/png;base64,AAAA")

    assert await mongo_store.add(record) == record.id

    stored = collections.diagnoses.docs[0]
    assert stored["id"] == record.id
    assert stored["photo_data_uri"] == "data:image/png;base64,AAAA"


async def test_list_is_most_recent_first_and_per_user(mongo_store):
    older = make_record("2024-05-01T10:00:00+00:00")
    newer = make_record("2024-05-03T10:00:00+00:00")
    other = make_record("2024-05-02T10:00:00+00:00", user_id="someone-else")
    for record in (older, newer, other):
        await mongo_store.add(record)

    listed = await mongo_store.list_for_user("local-user")

    assert [r.id for r in listed] == [newer.id, older.id]
    assert await mongo_store.count_for_user("local-user") == 2


async def test_pagination(mongo_store):
    records = [make_record(f"2024-05-0{d}T10:00:00+00:00") for d in range(1, 6)]
    for record in records:
        await mongo_store.add(record)

    page = await mongo_store.list_for_user("local-user", limit=2, offset=1)

    assert [r.id for r in page] == [records[3].id, records[2].id]


async def test_listing_without_media(mongo_store):
    await mongo_store.add(
        make_record(
            photo_data_uri="data:image/png;base64,AAAA",
            audio_data_uri="data:audio/wav;base64,AAAA",
        )
    )

    bare = await mongo_store.list_for_user("local-user", include_media=False)
    full = await mongo_store.list_for_user("local-user")

    assert bare[0].photo_data_uri is None
    assert bare[0].audio_data_uri is None
    assert full[0].photo_data_uri == "data:image/png;base64,AAAA"


async def test_get_respects_owner(mongo_store):
    record = make_record(user_id="farmer-a")
    await mongo_store.add(record)

    found = await mongo_store.get("farmer-a", record.id)

    assert found == record
    assert await mongo_store.get("farmer-b", record.id) is None


async def test_delete_and_clear_counts(mongo_store):
    mine = [make_record() for _ in range(3)]
    theirs = make_record(user_id="someone-else")
    for record in mine + [theirs]:
        await mongo_store.add(record)

    assert await mongo_store.delete("local-user", mine[0].id) is True
    assert await mongo_store.delete("local-user", mine[0].id) is False
    assert await mongo_store.delete("local-user", theirs.id) is False

    assert await mongo_store.clear("local-user") == 2
    assert await mongo_store.clear("local-user") == 0
    assert await mongo_store.count_for_user("someone-else") == 1


async def test_reserve_stops_at_limit(mongo_store, collections):
    assert await mongo_store.reserve_daily_slot("farmer-1", DAY, 2) is True
    assert await mongo_store.reserve_daily_slot("farmer-1", DAY, 2) is True
    assert await mongo_store.reserve_daily_slot("farmer-1", DAY, 2) is False

    assert await mongo_store.used_on_day("farmer-1", DAY) == 2
    assert len(collections.usage.docs) == 1
    assert collections.usage.docs[0]["day"] == "2024-05-10"


async def test_release_frees_a_slot(mongo_store):
    await mongo_store.reserve_daily_slot("farmer-1", DAY, 1)
    await mongo_store.release_daily_slot("farmer-1", DAY)

    assert await mongo_store.used_on_day("farmer-1", DAY) == 0
    assert await mongo_store.reserve_daily_slot("farmer-1", DAY, 1) is True


async def test_release_never_goes_negative(mongo_store):
    await mongo_store.release_daily_slot("farmer-1", DAY)
    await mongo_store.reserve_daily_slot("farmer-1", DAY, 1)
    await mongo_store.release_daily_slot("farmer-1", DAY)
    await mongo_store.release_daily_slot("farmer-1", DAY)

    assert await mongo_store.used_on_day("farmer-1", DAY) == 0


async def test_usage_is_per_user_and_day(mongo_store):
    await mongo_store.reserve_daily_slot("farmer-1", DAY, 1)

    assert await mongo_store.reserve_daily_slot("farmer-2", DAY, 1) is True
    assert await mongo_store.reserve_daily_slot("farmer-1", DAY + timedelta(days=1), 1) is True
    assert await mongo_store.used_on_day("farmer-1", DAY - timedelta(days=1)) == 0
