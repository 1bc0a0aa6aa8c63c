"""Server-side storage for the operator's global settings document."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.common.exceptions import StoreError
from clinic.common.logging import get_logger
from clinic.common.models import AppSettingsRow

logger = get_logger("SETTINGS")

GLOBAL_SETTINGS_ID = "global"


class GlobalSettingsStore:
    """Reads and replaces the single ``app_settings`` row with id "global"."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def load(self) -> dict:
        try:
            row = await self._session.get(AppSettingsRow, GLOBAL_SETTINGS_ID)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to read global settings", context={"error": str(exc)}) from exc
        return dict(row.data) if row is not None and row.data else {}

    async def save(self, data: dict) -> None:
        try:
            row = await self._session.get(AppSettingsRow, GLOBAL_SETTINGS_ID)
            if row is None:
                self._session.add(AppSettingsRow(id=GLOBAL_SETTINGS_ID, data=data))
            else:
                row.data = data
                row.updated_at = datetime.now(UTC)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise StoreError("Failed to save global settings", context={"error": str(exc)}) from exc

        logger.info("Global settings saved", extra={"data": {"keys": sorted(data)}})
