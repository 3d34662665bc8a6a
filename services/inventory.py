# services/inventory.py
import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from core.errors import NotFoundError, StoreUnavailableError, UpstreamUnavailableError, InternalServerError
from core.utils.single_flight import SingleFlight
from domain.entities.vehicle import Vehicle
from domain.schemas.inventory import InventorySnapshot, SnapshotMetadata, SyncStatus
from infrastructure.cache import keys
from infrastructure.cache.store import CacheStore
from infrastructure.external.file_storage import FileStorage
from infrastructure.external.inventory_feed import InventoryFeed

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Freshness(str, Enum):
    FRESH = "fresh"
    CACHED = "cached"


@dataclass
class SyncOutcome:
    changed: bool
    vehicles: List[Vehicle]
    synced_at: Optional[datetime]


@dataclass
class InventoryRead:
    """Tagged inventory read: data is always present, even when ``error`` is set."""
    vehicles: List[Vehicle] = field(default_factory=list)
    freshness: Freshness = Freshness.CACHED
    error: Optional[str] = None

    @property
    def from_cache(self) -> bool:
        return self.freshness is not Freshness.FRESH


def normalize_snapshot(snapshot: InventorySnapshot) -> List[Vehicle]:
    """Make a feed snapshot safe to cache.

    Vehicle IDs are made unique (the last occurrence wins) and every attached media item
    is pointed at the vehicle that carries it, so no media references a missing vehicle.
    """
    by_id: Dict[str, Vehicle] = {}
    for vehicle in snapshot.vehicles:
        if vehicle.id in by_id:
            logger.warning(f"Duplicate vehicle {vehicle.id} in inventory feed, keeping the last one")
            del by_id[vehicle.id]
        media = []
        for item in vehicle.media:
            if item.vehicle_id != vehicle.id:
                if item.vehicle_id is not None:
                    logger.warning(f"Media {item.id} listed under vehicle {vehicle.id} referenced "
                                   f"{item.vehicle_id}; re-pointing it")
                item = item.model_copy(update={"vehicle_id": vehicle.id})
            media.append(item)
        by_id[vehicle.id] = vehicle.model_copy(update={"media": media})
    return list(by_id.values())


def serialize_vehicle(vehicle: Vehicle) -> dict:
    return vehicle.model_dump(mode="json", by_alias=True)


def snapshot_fingerprint(vehicles: List[Vehicle]) -> str:
    """Stable hash of a normalized snapshot; equal feeds give equal fingerprints."""
    canonical = json.dumps([serialize_vehicle(vehicle) for vehicle in vehicles], sort_keys=True,
                           separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class InventorySyncService:
    """Keeps the cached inventory in step with the upstream feed.

    The cache store is the system of record for reads. A refresh writes every vehicle
    record, then the vehicle index, then the snapshot metadata, so a reader never sees an
    index pointing at vehicles that were not written yet. Concurrent refreshes share one
    upstream fetch.
    """

    SINGLE_FLIGHT_KEY = keys.SNAPSHOT_METADATA

    def __init__(
        self,
        cache: CacheStore,
        feed: InventoryFeed,
        blob_storage: Optional[FileStorage] = None,
        stale_after_seconds: int = 3600,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.cache = cache
        self.feed = feed
        self.blob_storage = blob_storage
        self.stale_after_seconds = stale_after_seconds
        self.clock = clock
        self._single_flight = SingleFlight()
        self._last_good: Optional[List[Vehicle]] = None
        self.last_error: Optional[str] = None

    async def refresh(self) -> SyncOutcome:
        """Fetch the upstream snapshot and persist it, sharing the work between concurrent callers.

        Returns:
            SyncOutcome: Whether the cache changed and the vehicles now cached.

        Raises:
            UpstreamUnavailableError: If the feed cannot be fetched.
            StoreUnavailableError: If the cache store fails while writing.
        """
        return await self._single_flight.do(self.SINGLE_FLIGHT_KEY, self._refresh)

    async def _refresh(self) -> SyncOutcome:
        logger.debug("Refreshing inventory from upstream feed")
        try:
            snapshot = await self.feed.fetch_snapshot()
        except UpstreamUnavailableError as ue:
            self.last_error = ue.detail
            logger.warning(f"Inventory refresh failed, keeping cached data: {ue.detail}")
            raise
        vehicles = normalize_snapshot(snapshot)
        fingerprint = snapshot_fingerprint(vehicles)
        now = self.clock()

        try:
            metadata = await self._load_metadata()
            if metadata is not None and metadata.fingerprint == fingerprint:
                await self.cache.set(keys.SNAPSHOT_CHECKED, now.isoformat())
                self._last_good = vehicles
                self.last_error = None
                logger.info(f"Inventory unchanged ({len(vehicles)} vehicles, fingerprint {fingerprint[:12]})")
                return SyncOutcome(changed=False, vehicles=vehicles, synced_at=metadata.synced_at)

            previous_ids = await self.cache.get(keys.VEHICLES_INDEX) or []
            await asyncio.gather(*[
                self.cache.set(keys.vehicle_key(vehicle.id), serialize_vehicle(vehicle)) for vehicle in vehicles
            ])
            current_ids = [vehicle.id for vehicle in vehicles]
            await self.cache.set(keys.VEHICLES_INDEX, current_ids)
            kept_ids = set(current_ids)
            removed = [vehicle_id for vehicle_id in previous_ids if vehicle_id not in kept_ids]
            for vehicle_id in removed:
                await self._remove_vehicle(vehicle_id)

            metadata = SnapshotMetadata(fingerprint=fingerprint, synced_at=now, vehicle_count=len(vehicles))
            await self.cache.set(keys.SNAPSHOT_METADATA, metadata.model_dump(mode="json", by_alias=True))
            await self.cache.set(keys.SNAPSHOT_CHECKED, now.isoformat())
        except StoreUnavailableError as se:
            self.last_error = se.detail
            logger.error(f"Inventory refresh could not write to the cache store: {se.reason}")
            raise

        self._last_good = vehicles
        self.last_error = None
        logger.info(f"Inventory synced: {len(vehicles)} vehicles, {len(removed)} removed, "
                    f"fingerprint {fingerprint[:12]}")
        return SyncOutcome(changed=True, vehicles=vehicles, synced_at=now)

    async def _remove_vehicle(self, vehicle_id: str) -> None:
        record = await self.cache.get(keys.vehicle_key(vehicle_id))
        await self.cache.delete(keys.vehicle_key(vehicle_id))
        logger.info(f"Vehicle {vehicle_id} left the feed, removed from cache")
        if record is None or self.blob_storage is None:
            return
        for item in record.get("media", []):
            storage_key = item.get("storageKey")
            if not storage_key:
                continue
            try:
                self.blob_storage.delete(storage_key)
            except Exception as e:
                logger.warning(f"Failed to delete blob {storage_key} of removed vehicle {vehicle_id}: {str(e)}")

    async def _load_metadata(self) -> Optional[SnapshotMetadata]:
        raw = await self.cache.get(keys.SNAPSHOT_METADATA)
        if raw is None:
            return None
        try:
            return SnapshotMetadata.model_validate(raw)
        except PydanticValidationError:
            logger.warning("Ignoring unreadable inventory snapshot metadata")
            return None

    async def _load_checked_at(self) -> Optional[datetime]:
        raw = await self.cache.get(keys.SNAPSHOT_CHECKED)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring unreadable inventory check marker: {raw}")
            return None

    async def is_stale(self) -> bool:
        checked_at = await self._load_checked_at()
        if checked_at is None:
            return True
        return (self.clock() - checked_at).total_seconds() >= self.stale_after_seconds

    async def load_cached_vehicles(self) -> Optional[List[Vehicle]]:
        """Read every cached vehicle in index order; None when the cache holds no inventory yet."""
        vehicle_ids = await self.cache.get(keys.VEHICLES_INDEX)
        if vehicle_ids is None:
            return None
        records = await asyncio.gather(*[self.cache.get(keys.vehicle_key(vehicle_id)) for vehicle_id in vehicle_ids])
        vehicles = []
        for vehicle_id, record in zip(vehicle_ids, records):
            if record is None:
                logger.warning(f"Vehicle {vehicle_id} is indexed but missing from the cache")
                continue
            vehicles.append(Vehicle.model_validate(record))
        self._last_good = vehicles
        return vehicles

    async def read_inventory(self) -> InventoryRead:
        """Return the best inventory available, refreshing first when the cache is stale.

        Never raises: upstream and store failures are reported in ``error`` while the last
        known-good vehicles are still returned.
        """
        error = None
        try:
            if await self.is_stale():
                outcome = await self.refresh()
                return InventoryRead(vehicles=outcome.vehicles, freshness=Freshness.FRESH)
        except (UpstreamUnavailableError, StoreUnavailableError) as e:
            error = e.detail
        except Exception as e:
            logger.error(f"Unexpected error refreshing inventory: {str(e)}", exc_info=True)
            error = "Inventory refresh failed"
            self.last_error = error

        try:
            vehicles = await self.load_cached_vehicles()
        except StoreUnavailableError as se:
            error = error or se.detail
            vehicles = None
        except Exception as e:
            logger.error(f"Unexpected error reading cached inventory: {str(e)}", exc_info=True)
            error = error or "Failed to read cached inventory"
            vehicles = None

        if vehicles is None:
            vehicles = list(self._last_good or [])
            if error is None and not vehicles:
                error = "Inventory has not been synced yet"
            logger.warning(f"Serving {len(vehicles)} vehicles from the in-process copy (error={error})")
        return InventoryRead(vehicles=vehicles, freshness=Freshness.CACHED, error=error)

    async def get_vehicles(self) -> List[Vehicle]:
        """Return the cached vehicle list, refreshing first when stale.

        Raises:
            StoreUnavailableError: If the cache store cannot be read.
        """
        if await self.is_stale():
            try:
                return (await self.refresh()).vehicles
            except UpstreamUnavailableError as ue:
                logger.warning(f"Serving cached vehicles after failed refresh: {ue.detail}")
        return await self.load_cached_vehicles() or []

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        """Return one cached vehicle by ID or stock number.

        Raises:
            NotFoundError: If no cached vehicle matches.
            StoreUnavailableError: If the cache store cannot be read.
        """
        if not vehicle_id or not vehicle_id.strip():
            raise NotFoundError("Vehicle not found")
        vehicle_id = vehicle_id.strip()
        record = await self.cache.get(keys.vehicle_key(vehicle_id))
        if record is not None:
            return Vehicle.model_validate(record)
        for vehicle in await self.load_cached_vehicles() or []:
            if vehicle.stock_number == vehicle_id:
                return vehicle
        raise NotFoundError(f"Vehicle {vehicle_id} not found")

    async def status(self) -> SyncStatus:
        """Describe how fresh the cached inventory is."""
        metadata = await self._load_metadata()
        checked_at = await self._load_checked_at()
        return SyncStatus(
            vehicle_count=metadata.vehicle_count if metadata else 0,
            fingerprint=metadata.fingerprint if metadata else None,
            synced_at=metadata.synced_at if metadata else None,
            checked_at=checked_at,
            stale=await self.is_stale(),
            last_error=self.last_error,
        )

    async def scheduled_refresh(self) -> None:
        """Scheduler entry point; failures are logged and never raised."""
        try:
            outcome = await self.refresh()
            logger.info(f"Scheduled inventory refresh done (changed={outcome.changed})")
        except (UpstreamUnavailableError, StoreUnavailableError) as e:
            logger.warning(f"Scheduled inventory refresh failed: {e.detail}")
        except InternalServerError as ie:
            logger.error(f"Scheduled inventory refresh failed: {ie.detail}")
        except Exception as e:
            logger.error(f"Unexpected error in scheduled inventory refresh: {str(e)}", exc_info=True)
