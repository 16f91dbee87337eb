from datetime import date

import pytest

from app.config.settings import settings
from app.models.diagnosis import DiagnosisRecord
from app.services import diagnosis_store
from app.services.diagnosis_store import DiagnosisStore, InMemoryDiagnosisStore
from conftest import make_record


async def test_list_is_most_recent_first_and_per_user(store):
    older = make_record("2024-05-01T10:00:00+00:00")
    newer = make_record("2024-05-03T10:00:00+00:00")
    other = make_record("2024-05-02T10:00:00+00:00", user_id="someone-else")
    for record in (older, newer, other):
        await store.add(record)

    listed = await store.list_for_user("local-user")

    assert [r.id for r in listed] == [newer.id, older.id]
    assert await store.count_for_user("local-user") == 2


async def test_pagination(store):
    records = [make_record(f"2024-05-0{d}T10:00:00+00:00") for d in range(1, 6)]
    for record in records:
        await store.add(record)

    page = await store.list_for_user("local-user", limit=2, offset=1)

    assert [r.id for r in page] == [records[3].id, records[2].id]


async def test_get_respects_owner(store):
    record = make_record(user_id="farmer-a")
    await store.add(record)

    assert await store.get("farmer-a", record.id) == record
    assert await store.get("farmer-b", record.id) is None


async def test_delete_and_clear(store):
    mine = [make_record() for _ in range(3)]
    theirs = make_record(user_id="someone-else")
    for record in mine + [theirs]:
        await store.add(record)

    assert await store.delete("local-user", mine[0].id) is True
    assert await store.delete("local-user", mine[0].id) is False
    assert await store.delete("local-user", theirs.id) is False

    assert await store.clear("local-user") == 2
    assert await store.list_for_user("local-user") == []
    assert await store.count_for_user("someone-else") == 1


async def test_listing_without_media_keeps_stored_copy(store):
    record = make_record(photo_data_uri="data:image/png;base64,AAAA")
    await store.add(record)

    bare = await store.list_for_user("local-user", include_media=False)

    assert bare[0].id == record.id
    assert bare[0].photo_data_uri is None
    assert (await store.get("local-user", record.id)).photo_data_uri == record.photo_data_uri


async def test_daily_slots(store):
    day = date(2024, 5, 10)

    assert await store.reserve_daily_slot("farmer-1", day, 2) is True
    assert await store.reserve_daily_slot("farmer-1", day, 2) is True
    assert await store.reserve_daily_slot("farmer-1", day, 2) is False
    assert await store.reserve_daily_slot("farmer-2", day, 2) is True

    await store.release_daily_slot("farmer-1", day)
    assert await store.used_on_day("farmer-1", day) == 1
    await store.release_daily_slot("farmer-1", date(2024, 5, 11))
    assert await store.used_on_day("farmer-1", date(2024, 5, 11)) == 0


def test_store_interface_is_abstract():
    class ListOnly(DiagnosisStore):
        async def list_for_user(self, user_id, limit=None, offset=0, include_media=True):
            return []

    with pytest.raises(TypeError):
        DiagnosisStore()
    with pytest.raises(TypeError):
        ListOnly()


def test_record_normalises_missing_fields():
    record = DiagnosisRecord(
        possible_diseases=None,
        identified_issues=None,
        recommended_next_steps=None,
        confidence_level=None,
        timestamp=None,
    )

    assert record.possible_diseases == []
    assert record.identified_issues == []
    assert record.confidence_level == ""
    assert record.timestamp == ""


def test_store_backend_selected_from_settings(monkeypatch):
    monkeypatch.setattr(diagnosis_store, "_diagnosis_store", None)
    monkeypatch.setattr(settings, "record_store_backend", "memory")

    first = diagnosis_store.get_diagnosis_store()

    assert isinstance(first, InMemoryDiagnosisStore)
    assert diagnosis_store.get_diagnosis_store() is first


def test_mongo_backend_selected(monkeypatch):
    monkeypatch.setattr(diagnosis_store, "_diagnosis_store", None)
    monkeypatch.setattr(settings, "record_store_backend", "mongo")

    assert isinstance(
        diagnosis_store.get_diagnosis_store(), diagnosis_store.MongoDiagnosisStore
    )
