# app/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.errors import PyMongoError

from app.config.settings import Settings, get_settings
from core.logging.setup import setup_logging
from infrastructure.cache.store import CacheStore, InMemoryCacheStore, RedisCacheStore
from infrastructure.database.client import create_mongo_client, get_db
from infrastructure.database.indexes import create_indexes
from infrastructure.database.media_repository import MediaRepository
from infrastructure.external.file_storage import FileStorage
from infrastructure.external.inventory_feed import InventoryFeed, build_inventory_feed
from routes.v1 import inventory, vehicles, media, web_companion
from services.inventory import InventorySyncService
from services.media import MediaService
from services.showroom import ShowroomService
from services.web_companion import WebCompanionService

logger = logging.getLogger(__name__)


def build_cache_store(settings: Settings) -> CacheStore:
    """Build the cache store selected by CACHE_BACKEND."""
    if settings.CACHE_BACKEND == "memory":
        logger.warning("Using in-memory cache store; data is lost on restart")
        return InMemoryCacheStore()
    return RedisCacheStore.from_url(settings.REDIS_URL, settings.CACHE_TIMEOUT_SECONDS)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(part) for part in error.get('loc', ()) if part != 'body')}: {error.get('msg')}"
        for error in exc.errors()
    ]
    logger.warning(f"Invalid request {request.method} {request.url.path}: {errors}")
    return JSONResponse(status_code=400, content={"detail": "; ".join(errors) or "Invalid input"})


def create_app(
    settings: Optional[Settings] = None,
    cache_store: Optional[CacheStore] = None,
    media_repository: Optional[MediaRepository] = None,
    blob_storage: Optional[FileStorage] = None,
    inventory_feed: Optional[InventoryFeed] = None,
) -> FastAPI:
    """Build the application and every collaborator it owns.

    Collaborators passed in are used as-is and never closed by the application; the
    ones built here are closed on shutdown.
    """
    settings = settings or get_settings()

    owned_cache = cache_store is None
    cache_store = cache_store or build_cache_store(settings)
    owned_feed = inventory_feed is None
    inventory_feed = inventory_feed or build_inventory_feed(settings)
    blob_storage = blob_storage or FileStorage(settings.MEDIA_STORAGE_DIR, settings.MEDIA_BASE_URL)
    mongo_client = None
    if media_repository is None:
        mongo_client = create_mongo_client(settings)
        media_repository = MediaRepository(get_db(mongo_client, settings))

    inventory_service = InventorySyncService(
        cache_store,
        inventory_feed,
        blob_storage=blob_storage,
        stale_after_seconds=settings.INVENTORY_STALE_AFTER_SECONDS,
    )
    media_service = MediaService(cache_store, media_repository, blob_storage, settings.MAX_UPLOAD_SIZE_BYTES)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if mongo_client is not None:
            try:
                create_indexes(get_db(mongo_client, settings))
            except PyMongoError as e:
                logger.error(f"Failed to create database indexes, continuing without them: {str(e)}")
        if settings.INVENTORY_REFRESH_INTERVAL_MINUTES > 0:
            scheduler = AsyncIOScheduler()
            scheduler.add_job(inventory_service.scheduled_refresh, "interval",
                              minutes=settings.INVENTORY_REFRESH_INTERVAL_MINUTES, max_instances=1)
            scheduler.start()
            logger.info(f"Scheduler started: inventory refresh every "
                        f"{settings.INVENTORY_REFRESH_INTERVAL_MINUTES} minutes")
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
                logger.info("Scheduler stopped")
            if owned_feed:
                await inventory_feed.close()
            if owned_cache:
                await cache_store.close()
            if mongo_client is not None:
                mongo_client.close()
                logger.info("MongoDB client closed")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Showroom inventory cache, media and web companion upload API",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.inventory_service = inventory_service
    app.state.media_service = media_service
    app.state.showroom_service = ShowroomService(inventory_service, media_service)
    app.state.web_companion_service = WebCompanionService(
        cache_store, blob_storage, settings.MAX_UPLOAD_SIZE_BYTES
    )

    setup_logging(app, settings)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    @app.get("/", summary="Root endpoint", description="Returns a welcome message")
    async def root():
        return {"message": f"Welcome to {settings.APP_NAME}"}

    @app.get("/health", summary="Liveness probe")
    async def health():
        return {"status": "ok"}

    app.include_router(inventory.router, prefix="/v1/inventory", tags=["Inventory"])
    app.include_router(vehicles.router, prefix="/v1/vehicles", tags=["Vehicles"])
    app.include_router(media.router, prefix="/v1/media", tags=["Media"])
    app.include_router(web_companion.router, prefix="/v1/web-companion", tags=["Web Companion"])

    if blob_storage.base_url.startswith("/") and len(blob_storage.base_url) > 1:
        app.mount(blob_storage.base_url, StaticFiles(directory=blob_storage.upload_dir, check_dir=False),
                  name="media-files")

    logger.info(f"Application created (env={settings.ENV}, cache={settings.CACHE_BACKEND})")
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
