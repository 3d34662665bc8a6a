# app/dependencies.py
from fastapi import Request

from services.inventory import InventorySyncService
from services.media import MediaService
from services.showroom import ShowroomService
from services.web_companion import WebCompanionService


def get_inventory_service(request: Request) -> InventorySyncService:
    return request.app.state.inventory_service


def get_media_service(request: Request) -> MediaService:
    return request.app.state.media_service


def get_showroom_service(request: Request) -> ShowroomService:
    return request.app.state.showroom_service


def get_web_companion_service(request: Request) -> WebCompanionService:
    return request.app.state.web_companion_service
