# routes/v1/vehicles.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_showroom_service
from core.errors import NotFoundError, ValidationError, StoreUnavailableError, NotImplementedFeatureError
from domain.entities.media import Media
from domain.schemas.inventory import VehicleView
from domain.schemas.media import MediaCreate
from services.showroom import ShowroomService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=List[VehicleView], summary="List vehicles")
async def list_vehicles_route(showroom_service: ShowroomService = Depends(get_showroom_service)):
    try:
        vehicles = await showroom_service.get_vehicles()
        logger.info(f"Listed {len(vehicles)} vehicles")
        return vehicles
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to list vehicles: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{vehicle_id}", response_model=VehicleView, summary="Get vehicle by ID or stock number")
async def get_vehicle_route(vehicle_id: str, showroom_service: ShowroomService = Depends(get_showroom_service)):
    try:
        return await showroom_service.get_vehicle(vehicle_id)
    except NotFoundError as ne:
        logger.error(f"Not found error: {ne.detail}")
        raise HTTPException(status_code=404, detail=ne.detail)
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to get vehicle {vehicle_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{vehicle_id}/media", response_model=List[Media], summary="List media attached to a vehicle")
async def get_vehicle_media_route(vehicle_id: str, showroom_service: ShowroomService = Depends(get_showroom_service)):
    try:
        return await showroom_service.get_vehicle_media(vehicle_id)
    except NotFoundError as ne:
        logger.error(f"Not found error: {ne.detail}")
        raise HTTPException(status_code=404, detail=ne.detail)
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to get media of vehicle {vehicle_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/{vehicle_id}/media", status_code=201, summary="Attach media to a vehicle")
async def attach_vehicle_media_route(
    vehicle_id: str,
    media_data: MediaCreate,
    showroom_service: ShowroomService = Depends(get_showroom_service)
):
    try:
        await showroom_service.validate_attachment(vehicle_id, media_data.url, media_data.type)
    except ValidationError as ve:
        logger.error(f"Validation error: {ve.detail}")
        raise HTTPException(status_code=400, detail=ve.detail)
    except NotFoundError as ne:
        logger.error(f"Not found error: {ne.detail}")
        raise HTTPException(status_code=404, detail=ne.detail)
    except NotImplementedFeatureError as nie:
        raise HTTPException(status_code=501, detail=nie.detail)
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to attach media to vehicle {vehicle_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
