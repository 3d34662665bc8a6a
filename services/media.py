# services/media.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from bson import ObjectId

from core.errors import (
    NotFoundError, ValidationError, StoreUnavailableError, NotImplementedFeatureError, InternalServerError
)
from core.utils.validation import require_text, validate_upload
from domain.entities.media import Media, MediaType
from infrastructure.cache import keys
from infrastructure.cache.store import CacheStore
from infrastructure.database.media_repository import MediaRepository
from infrastructure.external.file_storage import FileStorage
from services.inventory import utc_now

logger = logging.getLogger(__name__)

ALLOWED_MEDIA_PREFIXES = ("image/", "video/")
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _manual_sort_key(media: Media):
    return media.order, media.created_at or EPOCH


class MediaService:
    """Manual (unattached) media: records in MongoDB, mirrored in the cache store for reads.

    The cache holds one ``media:{id}`` record per item plus the ``media:unattached`` id list.
    When the list is missing it is rebuilt from MongoDB on the next read.
    """

    def __init__(self, cache: CacheStore, repository: MediaRepository, blob_storage: FileStorage,
                 max_upload_size: int = 25 * 1024 * 1024):
        self.cache = cache
        self.repository = repository
        self.blob_storage = blob_storage
        self.max_upload_size = max_upload_size

    async def get_unattached_media(self) -> List[Media]:
        """Return the unattached media pool ordered by display order, then creation time.

        Raises:
            StoreUnavailableError: If the cache store cannot be read.
        """
        media_ids = await self.cache.get(keys.UNATTACHED_MEDIA_INDEX)
        if media_ids is None:
            return await self._rebuild_unattached_index()
        records = await asyncio.gather(*[self.cache.get(keys.media_key(media_id)) for media_id in media_ids])
        media = []
        for media_id, record in zip(media_ids, records):
            if record is None:
                logger.warning(f"Media {media_id} is indexed but missing from the cache, skipping")
                continue
            media.append(Media.model_validate(record))
        return sorted(media, key=_manual_sort_key)

    async def _rebuild_unattached_index(self) -> List[Media]:
        manual = sorted([item for item in self.repository.list_all() if item.is_manual], key=_manual_sort_key)
        await asyncio.gather(*[
            self.cache.set(keys.media_key(item.id), item.model_dump(mode="json", by_alias=True)) for item in manual
        ])
        await self.cache.set(keys.UNATTACHED_MEDIA_INDEX, [item.id for item in manual])
        logger.info(f"Rebuilt unattached media index from the database: {len(manual)} items")
        return manual

    async def get_media(self, media_id: str) -> Media:
        """Return one manual media item, reading through to MongoDB on a cache miss.

        Raises:
            ValidationError: If media_id is blank or not an ObjectId.
            NotFoundError: If no such media exists.
        """
        media_id = require_text(media_id, "media_id")
        record = await self.cache.get(keys.media_key(media_id))
        if record is not None:
            return Media.model_validate(record)
        media = self.repository.find_one(media_id)
        if media is None:
            raise NotFoundError(f"Media {media_id} not found")
        return media

    async def create_media(self, url: Optional[str], media_type: Optional[MediaType], order: Optional[int] = None,
                           storage_key: Optional[str] = None) -> Media:
        """Create an unattached media record and publish it to the cache.

        Args:
            url (Optional[str]): Public URL of the media.
            media_type (Optional[MediaType]): IMAGE or VIDEO.
            order (Optional[int]): Display order; appended after existing items when omitted.
            storage_key (Optional[str]): Blob key when the bytes live in our blob store.

        Returns:
            Media: The stored record.

        Raises:
            ValidationError: If url or type is missing.
            StoreUnavailableError: If the cache store rejects the write; the record is rolled back.
        """
        if not url or not url.strip():
            raise ValidationError("Media url is required")
        if media_type is None:
            raise ValidationError("Media type is required")
        logger.debug(f"Creating manual {media_type.value} media: {url}")
        if order is None:
            order = self.repository.next_order(None)
        media = self.repository.insert(Media(
            id=str(ObjectId()),
            url=url.strip(),
            type=media_type,
            order=order,
            storage_key=storage_key,
            created_at=utc_now(),
        ))
        try:
            await self.cache.set(keys.media_key(media.id), media.model_dump(mode="json", by_alias=True))
            media_ids = await self.cache.get(keys.UNATTACHED_MEDIA_INDEX)
            if media_ids is None:
                await self._rebuild_unattached_index()
            else:
                await self.cache.set(keys.UNATTACHED_MEDIA_INDEX, media_ids + [media.id])
        except StoreUnavailableError:
            logger.error(f"Rolling back media {media.id} after cache write failure")
            self.repository.delete_one(media.id)
            raise
        logger.info(f"Manual media created: {media.id}")
        return media

    async def upload_media(self, data: bytes, filename: Optional[str], content_type: Optional[str],
                           order: Optional[int] = None) -> Media:
        """Store an uploaded file in the blob store and create its manual media record.

        Raises:
            ValidationError: If the file is empty.
            UnsupportedMediaError: If the file is neither an image nor a video.
            PayloadTooLargeError: If the file exceeds the upload size limit.
        """
        validate_upload(content_type, len(data) if data else 0, ALLOWED_MEDIA_PREFIXES, self.max_upload_size)
        media_type = MediaType.VIDEO if content_type.lower().startswith("video/") else MediaType.IMAGE
        key = self.blob_storage.new_key("media/manual", FileStorage.extension_for(filename, content_type))
        url = self.blob_storage.put(key, data)
        try:
            return await self.create_media(url, media_type, order=order, storage_key=key)
        except (StoreUnavailableError, InternalServerError):
            self._delete_blob(key)
            raise

    def _delete_blob(self, storage_key: str) -> bool:
        try:
            self.blob_storage.delete(storage_key)
            return True
        except Exception as e:
            logger.warning(f"Failed to delete blob {storage_key}: {str(e)}")
            return False

    async def delete_media(self, media_id: str) -> Optional[bool]:
        """Delete a manual media item, its backing blob and its cache entries.

        A blob that cannot be deleted is logged and does not stop the record deletion.

        Returns:
            Optional[bool]: Whether the blob was deleted, None when the media has no blob.

        Raises:
            ValidationError: If media_id is not a valid ObjectId.
            NotFoundError: If no such media exists.
            StoreUnavailableError: If the cache store fails.
        """
        media = await self.get_media(media_id)
        blob_deleted = None
        if media.storage_key:
            blob_deleted = self._delete_blob(media.storage_key)
        self.repository.delete_one(media.id)
        await self.cache.delete(keys.media_key(media.id))
        media_ids = await self.cache.get(keys.UNATTACHED_MEDIA_INDEX)
        if media_ids is not None and media.id in media_ids:
            await self.cache.set(keys.UNATTACHED_MEDIA_INDEX, [item for item in media_ids if item != media.id])
        logger.info(f"Media deleted: {media.id} (blob_deleted={blob_deleted})")
        return blob_deleted

    async def reorder_media(self, payload: Any) -> None:
        """Reordering media is not supported; nothing is changed."""
        logger.debug(f"Rejected media reorder request: {payload!r:.200}")
        raise NotImplementedFeatureError("Media reordering is not implemented")
