# infrastructure/database/indexes.py
import logging

from pymongo import ASCENDING
from pymongo.database import Database

logger = logging.getLogger(__name__)


def create_indexes(db: Database):
    """Create indexes for MongoDB collections."""
    try:
        # Media collection
        db.media.create_index([("vehicle_id", ASCENDING), ("order", ASCENDING)])
        db.media.create_index([("created_at", ASCENDING)])
        db.media.create_index([("storage_key", ASCENDING)], sparse=True)

        logger.info("MongoDB indexes created successfully")
    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise
