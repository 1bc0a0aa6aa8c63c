"""Operator global settings endpoints.

GET  /api/settings/global  -> {"settings": {...}}
POST /api/settings/global  <- {"settings": {...}} (whole document replaced)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from clinic.api.deps import get_settings_store
from clinic.common.exceptions import InvalidSettingsError
from clinic.common.logging import get_logger
from clinic.common.schemas import GlobalSettingsUpdate
from clinic.settings.store import GlobalSettingsStore

logger = get_logger("API")

router = APIRouter()


@router.get("/global")
async def get_global_settings(
    store: GlobalSettingsStore = Depends(get_settings_store),
) -> dict:
    """Return the stored settings document ({} when none was saved)."""
    return {"settings": await store.load()}


@router.post("/global")
async def save_global_settings(
    body: GlobalSettingsUpdate,
    store: GlobalSettingsStore = Depends(get_settings_store),
) -> dict:
    """Replace the settings document.

    Raises:
        InvalidSettingsError: ``settings`` is missing or not an object (400).
    """
    if not isinstance(body.settings, dict):
        raise InvalidSettingsError("settings must be an object")

    await store.save(body.settings)
    logger.info(
        "Global settings updated",
        extra={"data": {"push_global_enabled": bool(body.settings.get("push_global_enabled"))}},
    )
    return {"ok": True, "settings": body.settings}
