"""
Shared pytest fixtures for the showroom test suite.

Provides fixtures for:
- In-memory cache store (plus a switchable failing one) and media repository
- A scriptable inventory feed and a controllable clock
- Blob storage in a temporary directory
- A TestClient over an application wired with the fakes
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from app.config.settings import Settings
from app.main import create_app
from core.errors import StoreUnavailableError, UpstreamUnavailableError
from core.utils.validation import validate_object_id
from domain.entities.media import Media
from infrastructure.cache.store import InMemoryCacheStore
from infrastructure.external.file_storage import FileStorage
from infrastructure.external.inventory_feed import InventoryFeed, parse_snapshot
from services.media import EPOCH
from domain.schemas.inventory import InventorySnapshot


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeInventoryFeed(InventoryFeed):
    """Feed returning a configurable payload; can fail or block until released."""

    def __init__(self, vehicles: Optional[List[Dict[str, Any]]] = None):
        self.vehicles = vehicles or []
        self.fail_with: Optional[str] = None
        self.crash_with: Optional[Exception] = None
        self.calls = 0
        self.gate: Optional[asyncio.Event] = None

    async def fetch_snapshot(self) -> InventorySnapshot:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.crash_with is not None:
            raise self.crash_with
        if self.fail_with:
            raise UpstreamUnavailableError(self.fail_with)
        return parse_snapshot({"vehicles": self.vehicles}, "fake")


class FailingCacheStore(InMemoryCacheStore):
    """In-memory store whose reads or writes can be switched to fail like an unreachable Redis."""

    def __init__(self):
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False

    def _check(self, failing: bool) -> None:
        if failing:
            raise StoreUnavailableError("connection refused")

    async def get(self, key):
        self._check(self.fail_reads)
        return await super().get(key)

    async def members(self, key):
        self._check(self.fail_reads)
        return await super().members(key)

    async def set(self, key, value):
        self._check(self.fail_writes)
        await super().set(key, value)

    async def delete(self, key):
        self._check(self.fail_writes)
        await super().delete(key)

    async def incr(self, key):
        self._check(self.fail_writes)
        return await super().incr(key)

    async def add_member(self, key, member):
        self._check(self.fail_writes)
        await super().add_member(key, member)


class InMemoryMediaRepository:
    """Stand-in for MediaRepository with the same contract, kept in a dict."""

    def __init__(self):
        self.records: Dict[str, Media] = {}

    def insert(self, media: Media) -> Media:
        media_id = media.id if ObjectId.is_valid(media.id) else str(ObjectId())
        stored = media.model_copy(update={"id": media_id})
        self.records[media_id] = stored
        return stored

    def find_one(self, media_id: str) -> Optional[Media]:
        validate_object_id(media_id, "media_id")
        return self.records.get(media_id)

    def delete_one(self, media_id: str) -> bool:
        validate_object_id(media_id, "media_id")
        return self.records.pop(media_id, None) is not None

    def list_all(self) -> List[Media]:
        return sorted(self.records.values(), key=lambda media: media.created_at or EPOCH)

    def next_order(self, vehicle_id: Optional[str]) -> int:
        orders = [media.order for media in self.records.values() if media.vehicle_id == vehicle_id]
        return max(orders) + 1 if orders else 0


def make_vehicle(vehicle_id: str, stock_number: str, images: Optional[List[str]] = None,
                 media: Optional[List[Dict[str, Any]]] = None, **extra) -> Dict[str, Any]:
    """Vehicle as the upstream feed sends it (camelCase JSON)."""
    vehicle = {
        "id": vehicle_id,
        "stockNumber": stock_number,
        "make": "Toyota",
        "model": "Camry",
        "year": 2021,
        "price": 24999,
        "mileage": 31000,
        "images": images or [],
        "media": media or [],
    }
    vehicle.update(extra)
    return vehicle


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache():
    return InMemoryCacheStore()


@pytest.fixture
def media_repository():
    return InMemoryMediaRepository()


@pytest.fixture
def blob_storage(tmp_path):
    return FileStorage(str(tmp_path / "blobs"), "/uploads")


@pytest.fixture
def feed():
    return FakeInventoryFeed([
        make_vehicle("v1", "S100", images=["https://x/rtt1.jpg", "https://x/chrome.png", "https://x/real.jpg"]),
        make_vehicle("v2", "S200", images=["https://x/front.jpg"]),
    ])


@pytest.fixture
def settings(tmp_path):
    return Settings(
        CACHE_BACKEND="memory",
        LOG_FILE=str(tmp_path / "test.log"),
        MEDIA_STORAGE_DIR=str(tmp_path / "blobs"),
        INVENTORY_REFRESH_INTERVAL_MINUTES=0,
        MAX_UPLOAD_SIZE_BYTES=1024,
    )


@pytest.fixture
def failing_cache():
    return FailingCacheStore()


def _build_client(settings, cache, media_repository, blob_storage, feed):
    app = create_app(
        settings=settings,
        cache_store=cache,
        media_repository=media_repository,
        blob_storage=blob_storage,
        inventory_feed=feed,
    )
    return TestClient(app)


@pytest.fixture
def client(settings, cache, media_repository, blob_storage, feed):
    with _build_client(settings, cache, media_repository, blob_storage, feed) as test_client:
        yield test_client


@pytest.fixture
def failing_client(settings, failing_cache, media_repository, blob_storage, feed):
    """Client over a cache store the test can switch to failing."""
    with _build_client(settings, failing_cache, media_repository, blob_storage, feed) as test_client:
        yield test_client
