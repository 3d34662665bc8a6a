# infrastructure/external/inventory_feed.py
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.config.settings import Settings
from core.errors import UpstreamUnavailableError
from domain.schemas.inventory import InventorySnapshot

logger = logging.getLogger(__name__)


class InventoryFeed(ABC):
    """Read-only source of truth for the dealership inventory."""

    @abstractmethod
    async def fetch_snapshot(self) -> InventorySnapshot:
        """Fetch the full current vehicle snapshot.

        Raises:
            UpstreamUnavailableError: If the feed cannot be fetched or parsed.
        """

    async def close(self) -> None:
        return None


def parse_snapshot(payload, source: str) -> InventorySnapshot:
    try:
        snapshot = InventorySnapshot.model_validate(payload)
    except PydanticValidationError as ve:
        logger.error(f"Invalid inventory snapshot from {source}: {str(ve)}")
        raise UpstreamUnavailableError(f"Inventory feed returned an invalid snapshot ({ve.error_count()} errors)")
    logger.info(f"Fetched inventory snapshot from {source}: {len(snapshot.vehicles)} vehicles")
    return snapshot


class HttpInventoryFeed(InventoryFeed):
    """Feed fetched as JSON over HTTP."""

    def __init__(self, url: str, timeout_seconds: float = 15.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True)

    async def fetch_snapshot(self) -> InventorySnapshot:
        logger.debug(f"Fetching inventory snapshot from {self.url}")
        try:
            response = await self.client.get(self.url, headers={"Accept": "application/json"})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Inventory feed answered {e.response.status_code}: {self.url}")
            raise UpstreamUnavailableError(f"Inventory feed answered HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"Inventory feed request failed: {str(e)}", exc_info=True)
            raise UpstreamUnavailableError("Inventory feed request failed")
        except ValueError as e:
            logger.error(f"Inventory feed returned invalid JSON: {str(e)}")
            raise UpstreamUnavailableError("Inventory feed returned invalid JSON")
        return parse_snapshot(payload, self.url)

    async def close(self) -> None:
        await self.client.aclose()


class FileInventoryFeed(InventoryFeed):
    """Feed read from a JSON snapshot file written by an external scraper."""

    def __init__(self, path: str):
        self.path = path

    async def fetch_snapshot(self) -> InventorySnapshot:
        logger.debug(f"Reading inventory snapshot from {self.path}")
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError:
            logger.error(f"Inventory snapshot file not found: {self.path}")
            raise UpstreamUnavailableError("Inventory snapshot file not found")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read inventory snapshot file {self.path}: {str(e)}", exc_info=True)
            raise UpstreamUnavailableError("Inventory snapshot file could not be read")
        return parse_snapshot(payload, self.path)


class UnconfiguredInventoryFeed(InventoryFeed):
    """Feed used when no upstream is configured; every fetch fails so cached data is served."""

    async def fetch_snapshot(self) -> InventorySnapshot:
        raise UpstreamUnavailableError("No inventory feed configured")


def build_inventory_feed(settings: Settings) -> InventoryFeed:
    """Pick the feed implementation from settings, URL first."""
    if settings.INVENTORY_FEED_URL:
        logger.info(f"Using HTTP inventory feed: {settings.INVENTORY_FEED_URL}")
        return HttpInventoryFeed(settings.INVENTORY_FEED_URL, settings.INVENTORY_FEED_TIMEOUT_SECONDS)
    if settings.INVENTORY_FEED_FILE:
        logger.info(f"Using file inventory feed: {settings.INVENTORY_FEED_FILE}")
        return FileInventoryFeed(settings.INVENTORY_FEED_FILE)
    logger.warning("No inventory feed configured; serving cached inventory only")
    return UnconfiguredInventoryFeed()
