# routes/v1/web_companion.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from app.dependencies import get_web_companion_service
from core.errors import (
    NotFoundError, ValidationError, StoreUnavailableError, PayloadTooLargeError, UnsupportedMediaError
)
from domain.entities.web_companion import UploadStatus
from domain.schemas.web_companion import CompleteUploadRequest, UploadResponse, UploadListResponse
from services.web_companion import WebCompanionService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/uploads", response_model=UploadResponse, summary="Register a companion upload")
async def register_upload_route(
    file: Optional[UploadFile] = File(None),
    stock_number: Optional[str] = Form(None, alias="stockNumber"),
    web_companion_service: WebCompanionService = Depends(get_web_companion_service)
):
    try:
        if file is None:
            raise ValidationError("file is required")
        data = await file.read()
        upload = await web_companion_service.register_upload(stock_number, data, file.filename, file.content_type)
        return UploadResponse(upload=upload)
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
        logger.error(f"Failed to register upload: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/uploads", response_model=UploadListResponse, summary="List uploads of a stock number")
async def list_uploads_route(
    stock_number: Optional[str] = Query(None, alias="stockNumber"),
    status: Optional[UploadStatus] = Query(None),
    web_companion_service: WebCompanionService = Depends(get_web_companion_service)
):
    try:
        uploads = await web_companion_service.list_uploads(stock_number, status)
        return UploadListResponse(uploads=uploads, total=len(uploads))
    except ValidationError as ve:
        logger.error(f"Validation error: {ve.detail}")
        raise HTTPException(status_code=400, detail=ve.detail)
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to list uploads: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/uploads/pending", response_model=UploadListResponse, summary="Pending uploads for the worker")
async def list_pending_uploads_route(
    limit: Optional[int] = Query(None, ge=1),
    web_companion_service: WebCompanionService = Depends(get_web_companion_service)
):
    try:
        uploads = await web_companion_service.list_pending(limit)
        return UploadListResponse(uploads=uploads, total=len(uploads))
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to list pending uploads: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/uploads/complete", response_model=UploadResponse, summary="Completion callback")
async def complete_upload_route(
    completion: CompleteUploadRequest,
    web_companion_service: WebCompanionService = Depends(get_web_companion_service)
):
    try:
        upload = await web_companion_service.complete_upload(completion.upload_id, completion.to_patch())
        return UploadResponse(upload=upload)
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
        logger.error(f"Failed to complete upload: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/uploads/processed", response_model=UploadResponse, summary="Processed image callback")
async def save_processed_upload_route(
    image: Optional[UploadFile] = File(None),
    upload_id: Optional[str] = Form(None, alias="uploadId"),
    stock_number: Optional[str] = Form(None, alias="stockNumber"),
    original_url: Optional[str] = Form(None, alias="originalUrl"),
    image_index: Optional[int] = Form(None, alias="imageIndex"),
    web_companion_service: WebCompanionService = Depends(get_web_companion_service)
):
    try:
        data = await image.read() if image is not None else b""
        upload = await web_companion_service.save_processed_upload(
            upload_id, stock_number, data,
            content_type=image.content_type if image is not None else None,
            original_url=original_url,
            image_index=image_index,
        )
        return UploadResponse(upload=upload)
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
        logger.error(f"Failed to save processed upload: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/uploads/{upload_id}", response_model=UploadResponse, summary="Get one upload")
async def get_upload_route(
    upload_id: str,
    web_companion_service: WebCompanionService = Depends(get_web_companion_service)
):
    try:
        return UploadResponse(upload=await web_companion_service.get_upload(upload_id))
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
        logger.error(f"Failed to get upload {upload_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/gallery", response_model=UploadListResponse, summary="Processed image gallery")
async def get_gallery_route(
    stock_number: Optional[str] = Query(None, alias="stockNumber"),
    web_companion_service: WebCompanionService = Depends(get_web_companion_service)
):
    try:
        uploads = await web_companion_service.list_gallery(stock_number)
        return UploadListResponse(uploads=uploads, total=len(uploads))
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to load gallery: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
