"""Diagnosis history storage.

Two backends share one interface: MongoDB for deployments and a
process-local dict for development and tests. Handlers receive the store
through ``get_diagnosis_store`` so it can be swapped per app.

Besides the records themselves each backend keeps a per-user, per-day
usage counter. A slot is reserved before a diagnosis is generated and
released again if generation fails, so concurrent requests cannot overrun
the daily limit. Deleting records does not give slots back.
"""

from abc import ABC, abstractmethod
from app.models.diagnosis import DiagnosisRecord
from app.config.database import get_diagnoses_collection, get_usage_collection
from app.config.settings import settings
from datetime import date
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from typing import Dict, List, Optional, Tuple
import asyncio
import logging

logger = logging.getLogger(__name__)

# Heavy payload fields left out of media-free listings
MEDIA_FIELDS = ("photo_data_uri", "audio_data_uri")


class DiagnosisStore(ABC):
    """Interface for reading and writing a user's diagnosis records.

    Listings are most recent first. ``include_media=False`` leaves the
    photo and audio payloads out, for callers that only aggregate.
    """

    @abstractmethod
    async def add(self, record: DiagnosisRecord) -> str: ...

    @abstractmethod
    async def get(self, user_id: str, record_id: str) -> Optional[DiagnosisRecord]: ...

    @abstractmethod
    async def list_for_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
        include_media: bool = True,
    ) -> List[DiagnosisRecord]: ...

    @abstractmethod
    async def count_for_user(self, user_id: str) -> int: ...

    @abstractmethod
    async def delete(self, user_id: str, record_id: str) -> bool: ...

    @abstractmethod
    async def clear(self, user_id: str) -> int: ...

    @abstractmethod
    async def reserve_daily_slot(self, user_id: str, day: date, limit: int) -> bool:
        """Take one of ``limit`` slots for ``day``; False when none are left."""

    @abstractmethod
    async def release_daily_slot(self, user_id: str, day: date) -> None:
        """Give back a slot taken by ``reserve_daily_slot``."""

    @abstractmethod
    async def used_on_day(self, user_id: str, day: date) -> int: ...


class MongoDiagnosisStore(DiagnosisStore):
    """Diagnosis records kept in a MongoDB collection."""

    async def add(self, record: DiagnosisRecord) -> str:
        """
        Store a new diagnosis record.

        Args:
            record: DiagnosisRecord to store

        Returns:
            Record ID
        """
        collection = get_diagnoses_collection()
        await collection.insert_one(record.model_dump(mode="json"))

        logger.info(f"Stored diagnosis {record.id} for user {record.user_id}")
        return record.id

    async def get(self, user_id: str, record_id: str) -> Optional[DiagnosisRecord]:
        collection = get_diagnoses_collection()
        doc = await collection.find_one({"id": record_id, "user_id": user_id})

        if doc:
            doc.pop("_id", None)
            return DiagnosisRecord(**doc)
        return None

    async def list_for_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
        include_media: bool = True,
    ) -> List[DiagnosisRecord]:
        """
        Get diagnosis records for a user.

        Args:
            user_id: User identifier
            limit: Maximum number of records to return (None for all)
            offset: Number of records to skip
            include_media: Whether to load photo/audio payloads

        Returns:
            List of DiagnosisRecord, most recent first
        """
        projection = {"_id": 0}
        if not include_media:
            projection.update({field: 0 for field in MEDIA_FIELDS})

        collection = get_diagnoses_collection()
        cursor = collection.find({"user_id": user_id}, projection).sort("timestamp", -1)
        if offset:
            cursor = cursor.skip(offset)
        if limit is not None:
            cursor = cursor.limit(limit)

        records = []
        async for doc in cursor:
            records.append(DiagnosisRecord(**doc))

        logger.info(f"Retrieved {len(records)} diagnoses for user {user_id}")
        return records

    async def count_for_user(self, user_id: str) -> int:
        collection = get_diagnoses_collection()
        return await collection.count_documents({"user_id": user_id})

    async def delete(self, user_id: str, record_id: str) -> bool:
        collection = get_diagnoses_collection()
        result = await collection.delete_one({"id": record_id, "user_id": user_id})

        if result.deleted_count > 0:
            logger.info(f"Deleted diagnosis {record_id} for user {user_id}")
            return True
        return False

    async def clear(self, user_id: str) -> int:
        collection = get_diagnoses_collection()
        result = await collection.delete_many({"user_id": user_id})

        logger.info(f"Cleared {result.deleted_count} diagnoses for user {user_id}")
        return result.deleted_count

    async def reserve_daily_slot(self, user_id: str, day: date, limit: int) -> bool:
        """
        Atomically increment today's counter while it is below ``limit``.

        When the counter is already full the filter misses, the upsert tries
        to insert a second document for the same user and day, and the
        unique index rejects it.
        """
        collection = get_usage_collection()
        try:
            doc = await collection.find_one_and_update(
                {"user_id": user_id, "day": day.isoformat(), "count": {"$lt": limit}},
                {"$inc": {"count": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            logger.info(f"No diagnosis slots left for user {user_id} on {day}")
            return False

        logger.debug(f"Reserved slot {doc['count']}/{limit} for user {user_id} on {day}")
        return True

    async def release_daily_slot(self, user_id: str, day: date) -> None:
        collection = get_usage_collection()
        await collection.update_one(
            {"user_id": user_id, "day": day.isoformat(), "count": {"$gt": 0}},
            {"$inc": {"count": -1}},
        )
        logger.info(f"Released diagnosis slot for user {user_id} on {day}")

    async def used_on_day(self, user_id: str, day: date) -> int:
        collection = get_usage_collection()
        doc = await collection.find_one({"user_id": user_id, "day": day.isoformat()})
        return doc["count"] if doc else 0


class InMemoryDiagnosisStore(DiagnosisStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self):
        self._records: Dict[str, DiagnosisRecord] = {}
        self._usage: Dict[Tuple[str, date], int] = {}
        self._usage_locks: Dict[str, asyncio.Lock] = {}

    async def add(self, record: DiagnosisRecord) -> str:
        self._records[record.id] = record
        logger.info(f"Stored diagnosis {record.id} for user {record.user_id} (memory)")
        return record.id

    async def get(self, user_id: str, record_id: str) -> Optional[DiagnosisRecord]:
        record = self._records.get(record_id)
        if record and record.user_id == user_id:
            return record
        return None

    async def list_for_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
        include_media: bool = True,
    ) -> List[DiagnosisRecord]:
        # Insertion order breaks timestamp ties, newest insert first
        owned = [r for r in self._records.values() if r.user_id == user_id]
        owned.reverse()
        owned.sort(key=lambda r: r.timestamp, reverse=True)
        end = None if limit is None else offset + limit
        page = owned[offset:end]

        if not include_media:
            page = [r.model_copy(update=dict.fromkeys(MEDIA_FIELDS)) for r in page]
        return page

    async def count_for_user(self, user_id: str) -> int:
        return sum(1 for r in self._records.values() if r.user_id == user_id)

    async def delete(self, user_id: str, record_id: str) -> bool:
        if await self.get(user_id, record_id) is None:
            return False
        del self._records[record_id]
        return True

    async def clear(self, user_id: str) -> int:
        owned = [k for k, r in self._records.items() if r.user_id == user_id]
        for key in owned:
            del self._records[key]
        logger.info(f"Cleared {len(owned)} diagnoses for user {user_id} (memory)")
        return len(owned)

    async def reserve_daily_slot(self, user_id: str, day: date, limit: int) -> bool:
        lock = self._usage_locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            used = self._usage.get((user_id, day), 0)
            if used >= limit:
                logger.info(f"No diagnosis slots left for user {user_id} on {day}")
                return False
            self._usage[(user_id, day)] = used + 1
            return True

    async def release_daily_slot(self, user_id: str, day: date) -> None:
        lock = self._usage_locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            used = self._usage.get((user_id, day), 0)
            if used > 0:
                self._usage[(user_id, day)] = used - 1

    async def used_on_day(self, user_id: str, day: date) -> int:
        return self._usage.get((user_id, day), 0)


# Global store instance
_diagnosis_store: Optional[DiagnosisStore] = None


def get_diagnosis_store() -> DiagnosisStore:
    """Get or create the store selected by ``record_store_backend``."""
    global _diagnosis_store
    if _diagnosis_store is None:
        if settings.record_store_backend == "memory":
            _diagnosis_store = InMemoryDiagnosisStore()
        else:
            _diagnosis_store = MongoDiagnosisStore()
        logger.info(f"Using {settings.record_store_backend} diagnosis store")
    return _diagnosis_store
