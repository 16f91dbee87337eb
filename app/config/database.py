"""MongoDB database connection and management."""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from app.config.settings import settings
import logging

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    database: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB and make sure the diagnosis indexes exist."""
        try:
            cls.client = AsyncIOMotorClient(settings.mongodb_uri)
            cls.database = cls.client[settings.mongodb_database]

            await cls.client.admin.command("ping")
            await cls.database[settings.mongodb_collection_diagnoses].create_index(
                [("user_id", 1), ("timestamp", -1)]
            )
            # One usage counter per user per day; reservations rely on it
            await cls.database[settings.mongodb_collection_usage].create_index(
                [("user_id", 1), ("day", 1)], unique=True
            )
            logger.info(f"Connected to MongoDB: {settings.mongodb_database}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.database = None
            logger.info("Closed MongoDB connection")

    @classmethod
    def get_database(cls) -> AsyncIOMotorDatabase:
        """Get database instance."""
        if cls.database is None:
            raise RuntimeError("Database not initialized. Call connect_db() first.")
        return cls.database

    @classmethod
    def get_collection(cls, collection_name: str):
        """Get a collection from the database."""
        db = cls.get_database()
        return db[collection_name]


def get_diagnoses_collection():
    """Get the diagnoses collection."""
    return Database.get_collection(settings.mongodb_collection_diagnoses)


def get_usage_collection():
    """Get the per-user daily usage counter collection."""
    return Database.get_collection(settings.mongodb_collection_usage)
