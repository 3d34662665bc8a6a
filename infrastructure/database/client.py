# infrastructure/database/client.py
import logging

from pymongo import MongoClient
from pymongo.database import Database

from app.config.settings import Settings

logger = logging.getLogger(__name__)


def create_mongo_client(settings: Settings) -> MongoClient:
    """Create the MongoDB client owned by the process; the caller closes it on shutdown."""
    try:
        client = MongoClient(settings.MONGO_URI, serverSelectionTimeoutMS=5000, tz_aware=True)
        logger.info("MongoDB client created")
        return client
    except Exception as e:
        logger.error(f"Failed to create MongoDB client: {str(e)}", exc_info=True)
        raise


def get_db(client: MongoClient, settings: Settings) -> Database:
    """Get the configured MongoDB database from a client."""
    db = client[settings.MONGO_DB]
    logger.info(f"Using MongoDB database: {settings.MONGO_DB}")
    return db
