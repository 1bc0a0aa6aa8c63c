"""Subscription Store: push endpoints and their key material.

Upsert is keyed on ``endpoint`` and executed as a single
``INSERT ... ON CONFLICT (endpoint) DO UPDATE`` statement, so concurrent
re-subscriptions of the same endpoint never create duplicates. Every write
commits immediately; the store is the transactional boundary.

Usage:
    store = SubscriptionStore(db)
    await store.upsert(endpoint, p256dh, auth, owner_user_id="u1")
    records = await store.list_all()
    await store.delete_by_endpoints({"https://push.example/gone"})
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.common.exceptions import StoreError
from clinic.common.logging import get_logger, short_endpoint
from clinic.common.models import PushSubscription
from clinic.common.schemas import SubscriptionRecord

logger = get_logger("STORE")

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SubscriptionStore:
    """Async repository over the push_subscriptions table.

    Args:
        session: The request- or task-scoped async session.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(
        self,
        endpoint: str,
        p256dh: str | None,
        auth: str | None,
        owner_user_id: str | None = None,
        platform: str | None = None,
        user_agent: str | None = None,
        updated_at: datetime | None = None,
    ) -> None:
        """Insert a subscription, or overwrite the one with the same endpoint."""
        values = {
            "endpoint": endpoint,
            "p256dh": p256dh,
            "auth": auth,
            "user_id": owner_user_id,
            "platform": platform,
            "user_agent": user_agent,
            "updated_at": updated_at or datetime.now(UTC),
        }
        dialect = self._session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise StoreError(
                "Upsert is not supported on this database",
                context={"dialect": dialect},
            )

        stmt = insert(PushSubscription).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[PushSubscription.endpoint],
            set_={k: stmt.excluded[k] for k in values if k != "endpoint"},
        )
        await self._write(stmt, "upsert", endpoint=endpoint)
        logger.info(
            "Subscription upserted",
            extra={"data": {"endpoint": short_endpoint(endpoint), "user_id": owner_user_id}},
        )

    async def delete_by_endpoint(self, endpoint: str) -> int:
        """Remove one subscription. Returns the number of rows deleted (0 or 1)."""
        stmt = delete(PushSubscription).where(PushSubscription.endpoint == endpoint)
        deleted = await self._write(stmt, "delete", endpoint=endpoint)
        logger.info(
            "Subscription deleted",
            extra={"data": {"endpoint": short_endpoint(endpoint), "deleted": deleted}},
        )
        return deleted

    async def delete_by_endpoints(self, endpoints: Iterable[str]) -> int:
        """Remove every listed subscription in one statement."""
        targets = set(endpoints)
        if not targets:
            return 0
        stmt = delete(PushSubscription).where(PushSubscription.endpoint.in_(targets))
        deleted = await self._write(stmt, "delete_many", count=len(targets))
        logger.info(
            "Subscriptions deleted",
            extra={"data": {"requested": len(targets), "deleted": deleted}},
        )
        return deleted

    async def list_all(self) -> list[SubscriptionRecord]:
        """Return every stored endpoint with its keys."""
        try:
            result = await self._session.execute(
                select(
                    PushSubscription.endpoint,
                    PushSubscription.p256dh,
                    PushSubscription.auth,
                ).order_by(PushSubscription.id)
            )
        except SQLAlchemyError as exc:
            raise StoreError("Failed to list subscriptions", context={"error": str(exc)}) from exc
        return [SubscriptionRecord.model_validate(row) for row in result.all()]

    async def get(self, endpoint: str) -> PushSubscription | None:
        """Fetch the full row for an endpoint, if stored."""
        try:
            result = await self._session.execute(
                select(PushSubscription).where(PushSubscription.endpoint == endpoint)
            )
        except SQLAlchemyError as exc:
            raise StoreError("Failed to read subscription", context={"error": str(exc)}) from exc
        return result.scalar_one_or_none()

    async def _write(self, stmt, operation: str, **context) -> int:  # noqa: ANN001
        """Execute and commit a write, mapping database errors to StoreError."""
        try:
            result = await self._session.execute(stmt)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            if "endpoint" in context:
                context["endpoint"] = short_endpoint(context["endpoint"])
            raise StoreError(
                f"Subscription {operation} failed",
                context={**context, "error": str(exc)},
            ) from exc
        return result.rowcount or 0
