# infrastructure/cache/keys.py
"""Key builders for every entity kept in the cache store.

Each entity type owns a distinct prefix so keys of different types can never collide.
"""
from core.errors import ValidationError

VEHICLES_INDEX = "vehicles:all"
UNATTACHED_MEDIA_INDEX = "media:unattached"
SNAPSHOT_METADATA = "inventory:snapshot"
SNAPSHOT_CHECKED = "inventory:checked"
UPLOAD_STOCKS_INDEX = "web-companion:stocks"


def _require(value: str, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def vehicle_key(vehicle_id: str) -> str:
    return f"vehicle:{_require(vehicle_id, 'vehicle_id')}"


def media_key(media_id: str) -> str:
    return f"media:{_require(media_id, 'media_id')}"


def upload_key(upload_id: str) -> str:
    return f"web-companion:upload:{_require(upload_id, 'upload_id')}"


def stock_uploads_key(stock_number: str) -> str:
    return f"web-companion:stock:{_require(stock_number, 'stock_number')}:uploads"


def stock_sequence_key(stock_number: str) -> str:
    return f"web-companion:stock:{_require(stock_number, 'stock_number')}:seq"
