# services/showroom.py
import logging
from typing import List, Optional

from core.errors import StoreUnavailableError, InternalServerError, ValidationError, NotImplementedFeatureError
from domain.entities.media import Media, MediaType
from domain.schemas.inventory import ShowroomData, VehicleView
from services.inventory import InventorySyncService
from services.media import MediaService
from services.media_resolution import resolve_vehicle_media, order_media

logger = logging.getLogger(__name__)


class ShowroomService:
    """Read side of the showroom: inventory plus media, shaped for end users."""

    def __init__(self, inventory: InventorySyncService, media: MediaService):
        self.inventory = inventory
        self.media = media

    async def get_showroom_data(self) -> ShowroomData:
        """Return every vehicle with filtered imagery and the unattached media pool.

        Never raises: upstream and store failures are reported in ``error`` next to the
        best data available.
        """
        logger.debug("Assembling showroom data")
        result = await self.inventory.read_inventory()
        error = result.error
        try:
            custom_media = await self.media.get_unattached_media()
        except (StoreUnavailableError, InternalServerError) as e:
            logger.warning(f"Showroom served without custom media: {e.detail}")
            custom_media = []
            error = error or e.detail
        except Exception as e:
            logger.error(f"Unexpected error loading custom media: {str(e)}", exc_info=True)
            custom_media = []
            error = error or "Failed to load custom media"

        vehicles = [resolve_vehicle_media(vehicle) for vehicle in result.vehicles]
        logger.info(f"Showroom data: {len(vehicles)} vehicles, {len(custom_media)} custom media "
                    f"(from_cache={result.from_cache}, error={error})")
        return ShowroomData(vehicles=vehicles, custom_media=custom_media, from_cache=result.from_cache, error=error)

    async def get_vehicles(self) -> List[VehicleView]:
        """Return every vehicle with stock imagery filtered out."""
        return [resolve_vehicle_media(vehicle) for vehicle in await self.inventory.get_vehicles()]

    async def get_vehicle(self, vehicle_id: str) -> VehicleView:
        """Return one vehicle with its own imagery filtered and the manual media appended.

        Raises:
            NotFoundError: If no cached vehicle matches the ID or stock number.
            StoreUnavailableError: If the cache store cannot be read.
        """
        vehicle = await self.inventory.get_vehicle(vehicle_id)
        manual = await self.media.get_unattached_media()
        return resolve_vehicle_media(vehicle, manual)

    async def get_vehicle_media(self, vehicle_id: str) -> List[Media]:
        """Return every media item attached to a vehicle, in display order."""
        vehicle = await self.inventory.get_vehicle(vehicle_id)
        return order_media(vehicle.media)

    async def validate_attachment(self, vehicle_id: str, url: Optional[str], media_type: Optional[MediaType]) -> None:
        """Check an attach request; attaching media to a vehicle is not supported.

        Raises:
            ValidationError: If url or type is missing.
            NotFoundError: If the vehicle does not exist.
            NotImplementedFeatureError: Always, once the request is valid.
        """
        if not url:
            raise ValidationError("Media url is required")
        if media_type is None:
            raise ValidationError("Media type is required")
        vehicle = await self.inventory.get_vehicle(vehicle_id)
        logger.debug(f"Rejected media attachment for vehicle {vehicle.id}")
        raise NotImplementedFeatureError("Attaching media to a vehicle is not implemented")
