# services/media_resolution.py
"""Assemble the image list shown for a vehicle.

A vehicle's own imagery (feed image URLs, then attached media) goes through the stock-photo
filter; manual media is appended afterwards untouched, since operators curate it by hand.
Order matters: the first image is the primary listing photo.
"""
import logging
from typing import Iterable, List, Sequence

from domain.entities.media import Media, MediaType
from domain.entities.vehicle import Vehicle
from domain.schemas.inventory import VehicleView

logger = logging.getLogger(__name__)

STOCK_PHOTO_MARKERS = ("rtt", "chrome", "default")


def is_stock_photo(url: str) -> bool:
    """Return True when the URL looks like manufacturer stock or placeholder imagery."""
    lowered = url.lower()
    return any(marker in lowered for marker in STOCK_PHOTO_MARKERS)


def order_media(media: Iterable[Media]) -> List[Media]:
    """Sort media by display order, keeping the original position for ties."""
    return [item for _, item in sorted(enumerate(media), key=lambda pair: (pair[1].order, pair[0]))]


def _dedupe(urls: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            result.append(url)
    return result


def filter_vehicle_media(vehicle: Vehicle) -> List[Media]:
    """Attached media of a vehicle, in display order, without stock photos."""
    return [item for item in order_media(vehicle.media) if not is_stock_photo(item.url)]


def vehicle_image_urls(vehicle: Vehicle) -> List[str]:
    """The vehicle's own image URLs, in display order, without stock photos."""
    attached = [item.url for item in order_media(vehicle.media) if item.type == MediaType.IMAGE]
    urls = _dedupe(list(vehicle.images) + attached)
    kept = [url for url in urls if not is_stock_photo(url)]
    if len(kept) != len(urls):
        logger.debug(f"Filtered {len(urls) - len(kept)} stock images from vehicle {vehicle.id}")
    return kept


def resolve_vehicle_media(vehicle: Vehicle, manual_media: Sequence[Media] = ()) -> VehicleView:
    """Build the end-user view of a vehicle.

    Args:
        vehicle (Vehicle): Vehicle as stored by the inventory sync.
        manual_media (Sequence[Media]): Unattached media in stored order, appended as-is.

    Returns:
        VehicleView: Vehicle with filtered ``images``/``media`` and the ``manual_media`` pool.
    """
    manual = list(manual_media)
    manual_urls = [item.url for item in manual if item.type == MediaType.IMAGE]
    images = vehicle_image_urls(vehicle) + manual_urls
    data = vehicle.model_dump(exclude={"images", "media"})
    return VehicleView(
        **data,
        images=images,
        media=filter_vehicle_media(vehicle),
        manual_media=manual,
    )
