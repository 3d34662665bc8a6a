# routes/v1/media.py
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, UploadFile

from app.dependencies import get_media_service
from core.errors import (
    NotFoundError, ValidationError, StoreUnavailableError, NotImplementedFeatureError,
    PayloadTooLargeError, UnsupportedMediaError
)
from domain.entities.media import Media
from domain.schemas.media import MediaCreate, MediaDeleteResponse
from services.media import MediaService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/general", response_model=List[Media], summary="List unattached media")
async def get_general_media_route(media_service: MediaService = Depends(get_media_service)):
    try:
        return await media_service.get_unattached_media()
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to list unattached media: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/general", response_model=Media, status_code=201, summary="Create unattached media")
async def create_general_media_route(media_data: MediaCreate, media_service: MediaService = Depends(get_media_service)):
    try:
        media = await media_service.create_media(media_data.url, media_data.type, order=media_data.order)
        logger.info(f"Manual media created: {media.id}")
        return media
    except ValidationError as ve:
        logger.error(f"Validation error: {ve.detail}")
        raise HTTPException(status_code=400, detail=ve.detail)
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to create media: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/upload", response_model=Media, status_code=201, summary="Upload unattached media")
async def upload_media_route(
    file: Optional[UploadFile] = File(None),
    order: Optional[int] = Form(None),
    media_service: MediaService = Depends(get_media_service)
):
    try:
        if file is None:
            raise ValidationError("file is required")
        data = await file.read()
        media = await media_service.upload_media(data, file.filename, file.content_type, order=order)
        logger.info(f"Media uploaded: {media.id} ({file.filename})")
        return media
    except ValidationError as ve:
        logger.error(f"Validation error: {ve.detail}")
        raise HTTPException(status_code=400, detail=ve.detail)
    except PayloadTooLargeError as pe:
        logger.error(f"Payload too large: {pe.detail}")
        raise HTTPException(status_code=413, detail=pe.detail)
    except UnsupportedMediaError as ume:
        logger.error(f"Unsupported media: {ume.detail}")
        raise HTTPException(status_code=415, detail=ume.detail)
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to upload media: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/reorder", summary="Reorder media")
async def reorder_media_route(payload: Any = Body(None), media_service: MediaService = Depends(get_media_service)):
    try:
        await media_service.reorder_media(payload)
    except NotImplementedFeatureError as nie:
        raise HTTPException(status_code=501, detail=nie.detail)


@router.delete("/{media_id}", response_model=MediaDeleteResponse, summary="Delete media")
async def delete_media_route(media_id: str, media_service: MediaService = Depends(get_media_service)):
    try:
        blob_deleted = await media_service.delete_media(media_id)
        return MediaDeleteResponse(id=media_id, blob_deleted=blob_deleted)
    except ValidationError as ve:
        logger.error(f"Validation error: {ve.detail}")
        raise HTTPException(status_code=400, detail=ve.detail)
    except NotFoundError as ne:
        logger.error(f"Not found error: {ne.detail}")
        raise HTTPException(status_code=404, detail=ne.detail)
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to delete media {media_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
