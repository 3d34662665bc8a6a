# services/web_companion.py
import asyncio
import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from core.errors import NotFoundError, StoreUnavailableError, ValidationError
from core.utils.validation import require_text, validate_upload
from domain.entities.web_companion import UploadStatus, WebCompanionUpload
from domain.schemas.web_companion import UploadCompletion
from infrastructure.cache import keys
from infrastructure.cache.store import CacheStore
from infrastructure.external.file_storage import FileStorage
from services.inventory import utc_now

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_PREFIXES = ("image/",)


def apply_completion(upload: WebCompanionUpload, patch: UploadCompletion, now: datetime) -> WebCompanionUpload:
    """Merge a completion callback into an upload record.

    A pending upload takes the reported status (processed when omitted); a processed or
    failed upload keeps its status, since terminal states have no way out. ``processed_url``
    and ``image_index`` keep their previous values unless supplied; ``error`` is replaced by the
    supplied value or cleared; ``processed_at`` is set to ``now``. Applying the same patch
    twice gives the same record apart from ``processed_at``.
    """
    next_status = patch.status or UploadStatus.PROCESSED
    if upload.status.is_terminal:
        next_status = upload.status
    return upload.model_copy(update={
        "status": next_status,
        "processed_url": patch.processed_url if patch.processed_url is not None else upload.processed_url,
        "image_index": patch.image_index if patch.image_index is not None else upload.image_index,
        "error": patch.error,
        "processed_at": now,
    })


class WebCompanionService:
    """Uploads captured by the companion app and their background-processing lifecycle.

    Every upload starts ``pending`` and is moved to ``processed`` or ``failed`` by the
    external worker's callbacks. Records and per-stock indexes live in the cache store.
    """

    def __init__(self, cache: CacheStore, blob_storage: FileStorage, max_upload_size: int = 25 * 1024 * 1024,
                 clock: Callable[[], datetime] = utc_now):
        self.cache = cache
        self.blob_storage = blob_storage
        self.max_upload_size = max_upload_size
        self.clock = clock

    async def _load(self, upload_id: str) -> Optional[WebCompanionUpload]:
        record = await self.cache.get(keys.upload_key(upload_id))
        if record is None:
            return None
        return WebCompanionUpload.model_validate(record)

    async def _save(self, upload: WebCompanionUpload) -> None:
        await self.cache.set(keys.upload_key(upload.id), upload.model_dump(mode="json", by_alias=True))

    async def _index_upload(self, stock_number: str, upload_id: str) -> None:
        await self.cache.add_member(keys.stock_uploads_key(stock_number), upload_id)
        await self.cache.add_member(keys.UPLOAD_STOCKS_INDEX, stock_number)

    async def _next_image_index(self, stock_number: str) -> int:
        return await self.cache.incr(keys.stock_sequence_key(stock_number)) - 1

    def _delete_blob(self, storage_key: str) -> None:
        try:
            self.blob_storage.delete(storage_key)
        except Exception as e:
            logger.warning(f"Failed to delete blob {storage_key}: {str(e)}")

    async def register_upload(self, stock_number: Optional[str], data: bytes, filename: Optional[str] = None,
                              content_type: Optional[str] = None) -> WebCompanionUpload:
        """Store an original image and register a pending upload for it.

        Args:
            stock_number (Optional[str]): Stock number of the photographed vehicle.
            data (bytes): Image bytes.
            filename (Optional[str]): Filename sent by the app.
            content_type (Optional[str]): MIME type sent by the app.

        Returns:
            WebCompanionUpload: The new pending upload.

        Raises:
            ValidationError: If stock number or file is missing.
            UnsupportedMediaError: If the file is not an image.
            PayloadTooLargeError: If the file exceeds the upload size limit.
            StoreUnavailableError: If the cache store fails.
        """
        stock_number = require_text(stock_number, "stockNumber")
        validate_upload(content_type, len(data) if data else 0, ALLOWED_IMAGE_PREFIXES, self.max_upload_size)
        logger.debug(f"Registering upload for stock {stock_number}: {filename} ({len(data)} bytes)")

        key = self.blob_storage.new_key(f"web-companion/{stock_number}/original",
                                        FileStorage.extension_for(filename, content_type))
        url = self.blob_storage.put(key, data)
        try:
            upload = WebCompanionUpload(
                id=str(uuid.uuid4()),
                stock_number=stock_number,
                original_url=url,
                storage_key=key,
                status=UploadStatus.PENDING,
                created_at=self.clock(),
                original_filename=filename,
                size=len(data),
                image_index=await self._next_image_index(stock_number),
            )
            await self._save(upload)
            await self._index_upload(stock_number, upload.id)
        except StoreUnavailableError:
            logger.error(f"Removing original image {key} after cache write failure")
            self._delete_blob(key)
            raise
        logger.info(f"Upload {upload.id} registered for stock {stock_number} (index {upload.image_index})")
        return upload

    async def complete_upload(self, upload_id: Optional[str], patch: UploadCompletion) -> WebCompanionUpload:
        """Apply a completion callback to an existing upload.

        Raises:
            ValidationError: If upload_id is missing.
            NotFoundError: If the upload is unknown; no record is created.
            StoreUnavailableError: If the cache store fails.
        """
        upload_id = require_text(upload_id, "uploadId")
        upload = await self._load(upload_id)
        if upload is None:
            raise NotFoundError("Upload not found")
        updated = apply_completion(upload, patch, self.clock())
        if upload.status.is_terminal and patch.status not in (None, upload.status):
            logger.warning(f"Upload {upload_id} is already {upload.status.value}, "
                           f"ignoring reported status {patch.status.value}")
        await self._save(updated)
        logger.info(f"Upload {upload_id} completed: {upload.status.value} -> {updated.status.value}")
        return updated

    async def save_processed_upload(self, upload_id: Optional[str], stock_number: Optional[str], data: bytes,
                                    content_type: Optional[str] = None, original_url: Optional[str] = None,
                                    image_index: Optional[int] = None) -> WebCompanionUpload:
        """Store a processed image delivered by the worker and mark its upload processed.

        Raises:
            ValidationError: If upload id, stock number or image is missing.
            NotFoundError: If the upload is unknown.
            StoreUnavailableError: If the cache store fails.
        """
        upload_id = require_text(upload_id, "uploadId")
        stock_number = require_text(stock_number, "stockNumber")
        if not data:
            raise ValidationError("image is required")

        upload = await self._load(upload_id)
        if upload is None:
            raise NotFoundError("Upload not found")
        key = self.blob_storage.new_key(f"web-companion/{stock_number}/processed",
                                        FileStorage.extension_for(None, content_type or "image/png"))
        processed_url = self.blob_storage.put(key, data)

        updated = apply_completion(upload, UploadCompletion(
            processed_url=processed_url,
            status=UploadStatus.PROCESSED,
            image_index=image_index,
        ), self.clock())
        if original_url and original_url.strip():
            updated = updated.model_copy(update={"original_url": original_url.strip()})
        await self._save(updated)
        await self._index_upload(stock_number, upload_id)
        logger.info(f"Processed image saved for upload {upload_id}: {processed_url}")
        return updated

    async def mark_failed(self, upload_id: str, error: str) -> WebCompanionUpload:
        """Record a processing failure reported by the worker."""
        return await self.complete_upload(upload_id, UploadCompletion(status=UploadStatus.FAILED, error=error))

    async def get_upload(self, upload_id: Optional[str]) -> WebCompanionUpload:
        """Return one upload.

        Raises:
            ValidationError: If upload_id is missing.
            NotFoundError: If the upload is unknown.
        """
        upload_id = require_text(upload_id, "uploadId")
        upload = await self._load(upload_id)
        if upload is None:
            raise NotFoundError("Upload not found")
        return upload

    async def _uploads_for_stock(self, stock_number: str) -> List[WebCompanionUpload]:
        upload_ids = await self.cache.members(keys.stock_uploads_key(stock_number))
        records = await asyncio.gather(*[self.cache.get(keys.upload_key(upload_id)) for upload_id in upload_ids])
        uploads = []
        for upload_id, record in zip(upload_ids, records):
            if record is None:
                logger.warning(f"Upload {upload_id} is indexed under stock {stock_number} but missing")
                continue
            uploads.append(WebCompanionUpload.model_validate(record))
        return uploads

    async def list_uploads(self, stock_number: Optional[str],
                           status: Optional[UploadStatus] = None) -> List[WebCompanionUpload]:
        """List the uploads of a stock number, oldest first, optionally filtered by status.

        Raises:
            ValidationError: If stock_number is missing.
        """
        stock_number = require_text(stock_number, "stockNumber")
        uploads = await self._uploads_for_stock(stock_number)
        if status is not None:
            uploads = [upload for upload in uploads if upload.status == status]
        return sorted(uploads, key=lambda upload: upload.created_at)

    async def _all_uploads(self) -> List[WebCompanionUpload]:
        stocks = await self.cache.members(keys.UPLOAD_STOCKS_INDEX)
        per_stock = await asyncio.gather(*[self._uploads_for_stock(stock) for stock in stocks])
        return [upload for uploads in per_stock for upload in uploads]

    async def list_pending(self, limit: Optional[int] = None) -> List[WebCompanionUpload]:
        """Worker queue: pending uploads across every stock, oldest first."""
        pending = sorted([upload for upload in await self._all_uploads() if upload.status == UploadStatus.PENDING],
                         key=lambda upload: upload.created_at)
        if limit is not None and limit > 0:
            pending = pending[:limit]
        logger.debug(f"Pending uploads: {len(pending)}")
        return pending

    async def list_gallery(self, stock_number: Optional[str] = None) -> List[WebCompanionUpload]:
        """Processed uploads with a processed image, most recently processed first."""
        if stock_number and stock_number.strip():
            uploads = await self._uploads_for_stock(stock_number.strip())
        else:
            uploads = await self._all_uploads()
        processed = [upload for upload in uploads if upload.status == UploadStatus.PROCESSED and upload.processed_url]
        return sorted(processed, key=lambda upload: upload.processed_at.timestamp() if upload.processed_at else 0,
                      reverse=True)
