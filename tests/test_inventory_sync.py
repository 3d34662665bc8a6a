import asyncio

import pytest

from conftest import FakeInventoryFeed, make_vehicle
from core.errors import NotFoundError, StoreUnavailableError, UpstreamUnavailableError
from domain.schemas.inventory import InventorySnapshot
from infrastructure.cache import keys
from infrastructure.cache.store import InMemoryCacheStore
from services.inventory import Freshness, InventorySyncService, normalize_snapshot, snapshot_fingerprint


class RecordingCacheStore(InMemoryCacheStore):
    def __init__(self):
        super().__init__()
        self.writes = []

    async def set(self, key, value):
        self.writes.append(key)
        await super().set(key, value)


class BrokenCacheStore(InMemoryCacheStore):
    """Store that starts failing every call once ``broken`` is set."""

    def __init__(self):
        super().__init__()
        self.broken = False

    async def get(self, key):
        if self.broken:
            raise StoreUnavailableError("connection refused")
        return await super().get(key)

    async def set(self, key, value):
        if self.broken:
            raise StoreUnavailableError("connection refused")
        await super().set(key, value)


@pytest.fixture
def service(cache, feed, blob_storage, clock):
    return InventorySyncService(cache, feed, blob_storage=blob_storage, stale_after_seconds=600, clock=clock)


@pytest.mark.asyncio
async def test_refresh_writes_vehicles_before_index_and_metadata_last(feed, clock):
    cache = RecordingCacheStore()
    service = InventorySyncService(cache, feed, clock=clock)

    outcome = await service.refresh()

    assert outcome.changed is True
    assert [vehicle.id for vehicle in outcome.vehicles] == ["v1", "v2"]
    assert cache.writes[-2:] == [keys.SNAPSHOT_METADATA, keys.SNAPSHOT_CHECKED]
    index_position = cache.writes.index(keys.VEHICLES_INDEX)
    assert cache.writes.index("vehicle:v1") < index_position
    assert cache.writes.index("vehicle:v2") < index_position
    assert await cache.get(keys.VEHICLES_INDEX) == ["v1", "v2"]


@pytest.mark.asyncio
async def test_unchanged_snapshot_only_touches_check_marker(feed, clock):
    cache = RecordingCacheStore()
    service = InventorySyncService(cache, feed, clock=clock)
    await service.refresh()
    metadata_before = await cache.get(keys.SNAPSHOT_METADATA)
    cache.writes.clear()

    clock.advance(60)
    outcome = await service.refresh()

    assert outcome.changed is False
    assert cache.writes == [keys.SNAPSHOT_CHECKED]
    assert await cache.get(keys.SNAPSHOT_METADATA) == metadata_before


@pytest.mark.asyncio
async def test_concurrent_refreshes_share_one_upstream_fetch(cache, feed, clock):
    feed.gate = asyncio.Event()
    service = InventorySyncService(cache, feed, clock=clock)

    callers = [asyncio.ensure_future(service.refresh()) for _ in range(5)]
    await asyncio.sleep(0)
    feed.gate.set()
    outcomes = await asyncio.gather(*callers)

    assert feed.calls == 1
    assert all(outcome is outcomes[0] for outcome in outcomes)


@pytest.mark.asyncio
async def test_refresh_failure_propagates_to_every_waiter(cache, clock):
    feed = FakeInventoryFeed()
    feed.fail_with = "feed down"
    service = InventorySyncService(cache, feed, clock=clock)

    results = await asyncio.gather(service.refresh(), service.refresh(), return_exceptions=True)

    assert all(isinstance(result, UpstreamUnavailableError) for result in results)
    assert service.last_error == "feed down"


@pytest.mark.asyncio
async def test_read_inventory_is_fresh_after_refresh(service):
    result = await service.read_inventory()

    assert result.freshness is Freshness.FRESH
    assert result.from_cache is False
    assert result.error is None
    assert len(result.vehicles) == 2


@pytest.mark.asyncio
async def test_read_inventory_serves_cache_while_not_stale(service, feed):
    await service.refresh()

    result = await service.read_inventory()

    assert feed.calls == 1
    assert result.from_cache is True
    assert result.error is None
    assert [vehicle.id for vehicle in result.vehicles] == ["v1", "v2"]


@pytest.mark.asyncio
async def test_read_inventory_serves_stale_data_when_upstream_fails(service, feed, clock):
    await service.refresh()
    before = [vehicle.model_dump() for vehicle in (await service.read_inventory()).vehicles]
    clock.advance(601)
    feed.fail_with = "Inventory feed answered HTTP 503"

    result = await service.read_inventory()

    assert result.from_cache is True
    assert result.error == "Inventory feed answered HTTP 503"
    assert [vehicle.model_dump() for vehicle in result.vehicles] == before


@pytest.mark.asyncio
async def test_read_inventory_survives_unexpected_feed_error(service, feed, clock):
    await service.refresh()
    clock.advance(601)
    feed.crash_with = RuntimeError("feed parser bug")

    result = await service.read_inventory()

    assert result.from_cache is True
    assert result.error == "Inventory refresh failed"
    assert [vehicle.id for vehicle in result.vehicles] == ["v1", "v2"]
    assert service.last_error == "Inventory refresh failed"


@pytest.mark.asyncio
async def test_read_inventory_falls_back_to_last_good_copy_when_store_fails(feed, clock):
    cache = BrokenCacheStore()
    service = InventorySyncService(cache, feed, stale_after_seconds=600, clock=clock)
    await service.refresh()
    cache.broken = True

    result = await service.read_inventory()

    assert result.from_cache is True
    assert result.error == "Cache store unavailable"
    assert [vehicle.id for vehicle in result.vehicles] == ["v1", "v2"]


@pytest.mark.asyncio
async def test_read_inventory_without_any_data_reports_error(cache, clock):
    feed = FakeInventoryFeed()
    feed.fail_with = "No inventory feed configured"
    service = InventorySyncService(cache, feed, clock=clock)

    result = await service.read_inventory()

    assert result.vehicles == []
    assert result.from_cache is True
    assert result.error == "No inventory feed configured"


@pytest.mark.asyncio
async def test_vehicle_leaving_feed_is_removed_with_its_blobs(cache, blob_storage, clock):
    blob_url = blob_storage.put("vehicles/v2/photo.jpg", b"jpeg")
    feed = FakeInventoryFeed([
        make_vehicle("v1", "S100"),
        make_vehicle("v2", "S200", media=[{
            "id": "m1", "url": blob_url, "type": "IMAGE", "storageKey": "vehicles/v2/photo.jpg",
        }]),
    ])
    service = InventorySyncService(cache, feed, blob_storage=blob_storage, clock=clock)
    await service.refresh()

    feed.vehicles = [make_vehicle("v1", "S100")]
    outcome = await service.refresh()

    assert outcome.changed is True
    assert await cache.get("vehicle:v2") is None
    assert await cache.get(keys.VEHICLES_INDEX) == ["v1"]
    with pytest.raises(NotFoundError):
        blob_storage.get("vehicles/v2/photo.jpg")


@pytest.mark.asyncio
async def test_get_vehicle_by_id_or_stock_number(service):
    await service.refresh()

    assert (await service.get_vehicle("v2")).stock_number == "S200"
    assert (await service.get_vehicle("S100")).id == "v1"
    with pytest.raises(NotFoundError):
        await service.get_vehicle("nope")


@pytest.mark.asyncio
async def test_get_vehicles_falls_back_to_cache_when_refresh_fails(service, feed, clock):
    await service.refresh()
    clock.advance(601)
    feed.fail_with = "feed down"

    vehicles = await service.get_vehicles()

    assert [vehicle.id for vehicle in vehicles] == ["v1", "v2"]


@pytest.mark.asyncio
async def test_status_reports_freshness(service, clock):
    status = await service.status()
    assert status.stale is True
    assert status.vehicle_count == 0

    await service.refresh()
    status = await service.status()

    assert status.stale is False
    assert status.vehicle_count == 2
    assert status.synced_at == clock.now
    assert status.fingerprint


def test_normalize_snapshot_dedupes_vehicles_and_repoints_media():
    snapshot = InventorySnapshot.model_validate([
        make_vehicle("v1", "S100", model="Corolla"),
        make_vehicle("v1", "S100", model="Camry", media=[
            {"id": "m1", "url": "https://x/a.jpg", "vehicleId": "v9"},
            {"id": "m2", "url": "https://x/b.jpg"},
        ]),
    ])

    vehicles = normalize_snapshot(snapshot)

    assert len(vehicles) == 1
    assert vehicles[0].model == "Camry"
    assert [item.vehicle_id for item in vehicles[0].media] == ["v1", "v1"]


def test_fingerprint_is_stable_for_equal_snapshots():
    first = normalize_snapshot(InventorySnapshot.model_validate([make_vehicle("v1", "S100")]))
    second = normalize_snapshot(InventorySnapshot.model_validate({"vehicles": [make_vehicle("v1", "S100")]}))
    changed = normalize_snapshot(InventorySnapshot.model_validate([make_vehicle("v1", "S100", price=1)]))

    assert snapshot_fingerprint(first) == snapshot_fingerprint(second)
    assert snapshot_fingerprint(first) != snapshot_fingerprint(changed)


@pytest.mark.asyncio
async def test_scheduled_refresh_never_raises(cache, clock):
    feed = FakeInventoryFeed()
    feed.fail_with = "feed down"
    service = InventorySyncService(cache, feed, clock=clock)

    await service.scheduled_refresh()

    assert service.last_error == "feed down"
