# sync_inventory.py
import argparse
import asyncio
import logging

from app.config.settings import get_settings
from app.main import build_cache_store
from core.errors import StoreUnavailableError, UpstreamUnavailableError
from infrastructure.external.file_storage import FileStorage
from infrastructure.external.inventory_feed import FileInventoryFeed, build_inventory_feed
from services.inventory import InventorySyncService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def sync_inventory(feed_file=None) -> int:
    settings = get_settings()
    cache_store = build_cache_store(settings)
    feed = FileInventoryFeed(feed_file) if feed_file else build_inventory_feed(settings)
    service = InventorySyncService(
        cache_store,
        feed,
        blob_storage=FileStorage(settings.MEDIA_STORAGE_DIR, settings.MEDIA_BASE_URL),
        stale_after_seconds=settings.INVENTORY_STALE_AFTER_SECONDS,
    )
    try:
        outcome = await service.refresh()
        print(f"changed={outcome.changed} vehicles={len(outcome.vehicles)} synced_at={outcome.synced_at}")
        return 0
    except (UpstreamUnavailableError, StoreUnavailableError) as e:
        logger.error(f"Inventory sync failed: {e.detail}")
        return 1
    finally:
        await feed.close()
        await cache_store.close()


def main():
    parser = argparse.ArgumentParser(description="Refresh the cached showroom inventory once.")
    parser.add_argument("--feed-file", help="Read the snapshot from this JSON file instead of the configured feed")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(sync_inventory(args.feed_file)))


if __name__ == "__main__":
    main()
