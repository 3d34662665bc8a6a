# infrastructure/database/media_repository.py
import logging
from typing import List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from core.errors import InternalServerError
from core.utils.validation import validate_object_id
from domain.entities.media import Media

logger = logging.getLogger(__name__)


def _to_document(media: Media) -> dict:
    document = media.model_dump(exclude={"id"})
    document["type"] = media.type.value
    return document


def _from_document(document: dict) -> Media:
    data = dict(document)
    data["id"] = str(data.pop("_id"))
    return Media(**data)


class MediaRepository:
    """Relational-style store for media records, kept in the MongoDB ``media`` collection."""

    def __init__(self, db: Database):
        self.collection = db.media

    def insert(self, media: Media) -> Media:
        """Insert a media record and return it with its generated ID.

        Args:
            media (Media): Record to insert; an ``id`` that is not an ObjectId is replaced by a generated one.

        Returns:
            Media: The stored record.

        Raises:
            InternalServerError: If the insert fails due to database issues.
        """
        try:
            object_id = ObjectId(media.id) if ObjectId.is_valid(media.id) else ObjectId()
            document = _to_document(media)
            document["_id"] = object_id
            self.collection.insert_one(document)
            stored = media.model_copy(update={"id": str(object_id)})
            logger.info(f"Inserted media {stored.id} (vehicle_id={stored.vehicle_id})")
            return stored
        except PyMongoError as e:
            logger.error(f"Database operation failed inserting media: {str(e)}", exc_info=True)
            raise InternalServerError("Failed to save media")

    def find_one(self, media_id: str) -> Optional[Media]:
        """Find a media record by ID.

        Raises:
            ValidationError: If media_id is not a valid ObjectId.
            InternalServerError: If the lookup fails due to database issues.
        """
        validate_object_id(media_id, "media_id")
        try:
            document = self.collection.find_one({"_id": ObjectId(media_id)})
        except PyMongoError as e:
            logger.error(f"Database operation failed finding media {media_id}: {str(e)}", exc_info=True)
            raise InternalServerError("Failed to load media")
        if document is None:
            logger.debug(f"No media found for ID: {media_id}")
            return None
        return _from_document(document)

    def delete_one(self, media_id: str) -> bool:
        """Delete a media record by ID, returning False when nothing matched."""
        validate_object_id(media_id, "media_id")
        try:
            result = self.collection.delete_one({"_id": ObjectId(media_id)})
        except PyMongoError as e:
            logger.error(f"Database operation failed deleting media {media_id}: {str(e)}", exc_info=True)
            raise InternalServerError("Failed to delete media")
        if result.deleted_count == 0:
            logger.debug(f"No media deleted for ID: {media_id}")
            return False
        logger.info(f"Deleted media record: {media_id}")
        return True

    def list_all(self) -> List[Media]:
        """List every media record ordered by creation time."""
        try:
            documents = self.collection.find().sort("created_at", ASCENDING)
            return [_from_document(document) for document in documents]
        except PyMongoError as e:
            logger.error(f"Database operation failed listing media: {str(e)}", exc_info=True)
            raise InternalServerError("Failed to list media")

    def next_order(self, vehicle_id: Optional[str]) -> int:
        """Return the display order that appends a new item after the existing ones."""
        try:
            document = self.collection.find_one(
                {"vehicle_id": vehicle_id},
                sort=[("order", DESCENDING)],
                projection={"order": 1},
            )
        except PyMongoError as e:
            logger.error(f"Database operation failed computing media order: {str(e)}", exc_info=True)
            raise InternalServerError("Failed to compute media order")
        if document is None:
            return 0
        return int(document.get("order", 0)) + 1


