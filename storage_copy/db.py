"""
Database initialization for Beanie (MongoDB ODM).
"""

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from storage_copy.config import settings
from storage_copy.models.mongo_models import MONGO_MODELS

client: AsyncIOMotorClient = None


async def init_db():
    """Initialize Beanie with MongoDB connection"""
    global client
    client = AsyncIOMotorClient(settings.MONGO_URI)

    await init_beanie(
        database=client[settings.MONGO_DB_NAME],
        document_models=MONGO_MODELS
    )


async def close_db():
    """Close MongoDB connection"""
    global client
    if client:
        client.close()
        client = None
