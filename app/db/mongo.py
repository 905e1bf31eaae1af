from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorDatabase,
)
from app.core.config import settings

logger = structlog.get_logger(__name__)

class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=True)
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    await create_indexes(mongodb.db)
    logger.info("mongo_connected", database=settings.DATABASE_NAME)

async def disconnect_from_mongo():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("mongo_disconnected")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    # User email unique index
    await db["users"].create_index("email", unique=True)

    # Obligations are always read per owner, ordered by due date
    await db["obligations"].create_index([("owner_id", 1), ("due_date", 1)])

    # Payment ledger indexes
    await db["payments"].create_index([("obligation_id", 1), ("paid_at", 1)])
    await db["payments"].create_index("owner_id")

    # Attachment indexes
    await db["attachments"].create_index("owner_id")

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db

@asynccontextmanager
async def start_transaction(
    db: AsyncIOMotorDatabase
) -> AsyncIterator[AsyncIOMotorClientSession]:
    """
    Run a block inside a MongoDB transaction.

    Commits when the block exits normally, aborts on any exception
    (cancellation included). Requires a replica set.
    """
    async with await db.client.start_session() as session:
        async with session.start_transaction():
            yield session
