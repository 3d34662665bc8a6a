import json

import httpx
import pytest

from app.config.settings import Settings
from core.errors import NotFoundError, UpstreamUnavailableError, ValidationError
from infrastructure.external.file_storage import FileStorage
from infrastructure.external.inventory_feed import (
    FileInventoryFeed, HttpInventoryFeed, UnconfiguredInventoryFeed, build_inventory_feed
)

VEHICLES = [{"id": 101, "stockNumber": "S100", "make": "Ford", "model": "F-150", "year": 2019}]


def _http_feed(handler) -> HttpInventoryFeed:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpInventoryFeed("https://feed.example/inventory.json", client=client)


@pytest.mark.asyncio
async def test_http_feed_accepts_bare_list():
    feed = _http_feed(lambda request: httpx.Response(200, json=VEHICLES))

    snapshot = await feed.fetch_snapshot()
    await feed.close()

    assert snapshot.vehicles[0].id == "101"
    assert snapshot.vehicles[0].stock_number == "S100"


@pytest.mark.asyncio
async def test_http_feed_errors_are_upstream_unavailable():
    failing = _http_feed(lambda request: httpx.Response(503))
    invalid = _http_feed(lambda request: httpx.Response(200, json={"vehicles": [{"id": "v1"}]}))
    garbage = _http_feed(lambda request: httpx.Response(200, content=b"<html>"))

    for feed in (failing, invalid, garbage):
        with pytest.raises(UpstreamUnavailableError):
            await feed.fetch_snapshot()
        await feed.close()


@pytest.mark.asyncio
async def test_file_feed(tmp_path):
    path = tmp_path / "inventory.json"
    path.write_text(json.dumps({"vehicles": VEHICLES}))

    snapshot = await FileInventoryFeed(str(path)).fetch_snapshot()

    assert len(snapshot.vehicles) == 1
    with pytest.raises(UpstreamUnavailableError):
        await FileInventoryFeed(str(tmp_path / "missing.json")).fetch_snapshot()


@pytest.mark.asyncio
async def test_unconfigured_feed_always_fails():
    feed = build_inventory_feed(Settings(CACHE_BACKEND="memory", INVENTORY_FEED_URL=None, INVENTORY_FEED_FILE=None))

    assert isinstance(feed, UnconfiguredInventoryFeed)
    with pytest.raises(UpstreamUnavailableError):
        await feed.fetch_snapshot()


def test_file_storage_put_get_delete(tmp_path):
    storage = FileStorage(str(tmp_path / "blobs"), "https://cdn.example/media/")

    url = storage.put("media/manual/a.jpg", b"jpeg")

    assert url == "https://cdn.example/media/media/manual/a.jpg"
    assert storage.get("media/manual/a.jpg") == b"jpeg"
    storage.delete("media/manual/a.jpg")
    storage.delete("media/manual/a.jpg")
    with pytest.raises(NotFoundError):
        storage.get("media/manual/a.jpg")


def test_file_storage_rejects_escaping_keys(tmp_path):
    storage = FileStorage(str(tmp_path / "blobs"))

    with pytest.raises(ValidationError):
        storage.put("../outside.jpg", b"x")


def test_new_keys_are_unique_and_prefixed():
    first = FileStorage.new_key("web-companion/S100/original", "jpg")
    second = FileStorage.new_key("web-companion/S100/original", "jpg")

    assert first != second
    assert first.startswith("web-companion/S100/original/")
    assert first.endswith(".jpg")
    assert FileStorage.extension_for(None, "image/png") == "png"
    assert FileStorage.extension_for("IMG_1.JPG") == "jpg"


def test_settings_validation():
    assert Settings(CACHE_BACKEND=" Memory ", LOG_LEVEL="debug").CACHE_BACKEND == "memory"
    with pytest.raises(ValueError):
        Settings(CACHE_BACKEND="memcached")
    with pytest.raises(ValueError):
        Settings(LOG_LEVEL="LOUD")
