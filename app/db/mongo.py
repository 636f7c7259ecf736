import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URL)
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    await create_indexes()
    logger.info("mongo.connected", extra={"fields": {"database": settings.DATABASE_NAME}})

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("mongo.disconnected")

async def create_indexes():
    """Create database indexes."""
    # Goal lookups: active goals per user in priority order
    await mongodb.db["user_charities"].create_index(
        [("user_id", 1), ("is_completed", 1), ("priority", 1)]
    )
    await mongodb.db["user_charities"].create_index(
        [("user_id", 1), ("charity_id", 1)], unique=True
    )

    # Purchase indexes
    await mongodb.db["transactions"].create_index("external_transaction_id", unique=True)
    await mongodb.db["transactions"].create_index(
        [("user_id", 1), ("processed_for_donation", 1), ("is_pending", 1)]
    )

    # Linked account indexes
    await mongodb.db["linked_accounts"].create_index("item_id", unique=True)
    await mongodb.db["linked_accounts"].create_index("user_id")

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
