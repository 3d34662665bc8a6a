# routes/v1/inventory.py
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_inventory_service, get_showroom_service
from core.errors import StoreUnavailableError, UpstreamUnavailableError
from domain.schemas.inventory import ShowroomData, RefreshResult, SyncStatus
from services.inventory import InventorySyncService
from services.showroom import ShowroomService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=ShowroomData, summary="Get showroom data")
async def get_showroom_data_route(showroom_service: ShowroomService = Depends(get_showroom_service)):
    """Vehicles and custom media; failures are reported in the payload, never as an error status."""
    return await showroom_service.get_showroom_data()


@router.post("/refresh", response_model=RefreshResult, summary="Force an inventory refresh")
async def refresh_inventory_route(inventory_service: InventorySyncService = Depends(get_inventory_service)):
    try:
        outcome = await inventory_service.refresh()
        logger.info(f"Manual inventory refresh: changed={outcome.changed}, vehicles={len(outcome.vehicles)}")
        return RefreshResult(changed=outcome.changed, vehicle_count=len(outcome.vehicles), synced_at=outcome.synced_at)
    except UpstreamUnavailableError as ue:
        logger.error(f"Upstream error: {ue.detail}")
        raise HTTPException(status_code=502, detail=ue.detail)
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to refresh inventory: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/status", response_model=SyncStatus, summary="Inventory sync status")
async def get_sync_status_route(inventory_service: InventorySyncService = Depends(get_inventory_service)):
    try:
        return await inventory_service.status()
    except StoreUnavailableError as se:
        logger.error(f"Store error: {se.reason}")
        raise HTTPException(status_code=500, detail=se.detail)
    except Exception as e:
        logger.error(f"Failed to get sync status: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
