"""Backend reachability snapshot; diagnostic only."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from filegate.api.deps import get_settings, get_storage
from filegate.config import Settings
from filegate.services.object_storage import ObjectStorageError
from filegate.services.storage import StorageManager

router = APIRouter(prefix="/api", tags=["status"])

_NOT_CONFIGURED = "Not configured"


def _telegram_status(settings: Settings, storage: StorageManager) -> dict[str, Any]:
    if not (settings.tg_bot_token and settings.tg_chat_id) or storage.legacy is None:
        return {"connected": False, "message": _NOT_CONFIGURED}
    try:
        data = storage.legacy.bot_info()
    except ObjectStorageError as exc:
        return {"connected": False, "message": f"Connection error: {exc}"}
    result = data.get("result") if isinstance(data, dict) else None
    if not isinstance(result, dict) or not data.get("ok"):
        description = data.get("description") if isinstance(data, dict) else None
        return {"connected": False, "message": f"Connection failed: {description}"}
    return {
        "connected": True,
        "message": f"Connected - @{result.get('username')}",
        "botName": result.get("first_name"),
        "botUsername": result.get("username"),
    }


def _kv_status(storage: StorageManager) -> dict[str, Any]:
    if storage.index is None:
        return {"connected": False, "message": _NOT_CONFIGURED}
    try:
        page = storage.index.list(limit=1)
    except ObjectStorageError as exc:
        return {"connected": False, "message": f"Connection error: {exc}"}
    return {"connected": True, "message": "Connected", "hasData": bool(page.keys)}


def _r2_status(storage: StorageManager) -> dict[str, Any]:
    if storage.blob is None:
        return {"connected": False, "enabled": False, "message": _NOT_CONFIGURED}
    try:
        page = storage.blob.list(limit=1, include_metadata=False)
    except ObjectStorageError as exc:
        return {"connected": False, "enabled": False, "message": f"Connection error: {exc}"}
    return {"connected": True, "enabled": True, "message": "Enabled", "hasData": bool(page.keys)}


@router.get("/status")
def status(
    settings: Settings = Depends(get_settings),
    storage: StorageManager = Depends(get_storage),
):
    snapshot = {
        "telegram": _telegram_status(settings, storage),
        "kv": _kv_status(storage),
        "r2": _r2_status(storage),
        "auth": (
            {"enabled": True, "message": "Password authentication enabled"}
            if settings.auth_required
            else {"enabled": False, "message": "Disabled"}
        ),
    }
    return JSONResponse(content=snapshot, headers={"Cache-Control": "no-cache"})
