"""Visitor repository: key/value store for visitor records with TTL."""

import time
from typing import Callable, Optional

import aiosqlite
import structlog
from pydantic import ValidationError as PydanticValidationError

from src.core.exceptions import StoreError, StoreUnavailableError
from src.domain.models.visitor import VisitorData

log = structlog.get_logger(__name__)

KEY_PREFIX = "visitor:"


def visitor_key(anonymous_id: str) -> str:
    return f"{KEY_PREFIX}{anonymous_id}"


class VisitorRepository:
    """Get/put visitor records keyed by anonymous ID, with a refreshed TTL.

    Expired rows read as absent. The engine never deletes live visitors;
    purge_expired() only clears rows whose TTL has already lapsed.
    """

    def __init__(
        self,
        db_path: str,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = db_path
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    async def get(self, anonymous_id: str) -> Optional[VisitorData]:
        """
        Fetch a visitor record.

        Returns:
            VisitorData, or None if absent, expired or undecodable

        Raises:
            StoreError: If the database cannot be read
        """
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    "SELECT value FROM visitor_kv WHERE key = ? AND expires_at > ?",
                    (visitor_key(anonymous_id), self.clock()),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to read visitor {anonymous_id}: {e}") from e

        if row is None:
            return None

        try:
            return VisitorData.model_validate_json(row[0])
        except PydanticValidationError as e:
            log.warning(
                "visitor_record_undecodable",
                visitor_id=anonymous_id,
                error_count=e.error_count(),
            )
            return None

    async def put(self, visitor: VisitorData) -> None:
        """
        Write a visitor record, refreshing its TTL.

        Raises:
            StoreUnavailableError: If the write fails
        """
        expires_at = self.clock() + self.ttl_seconds
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    "INSERT INTO visitor_kv (key, value, expires_at, updated_at) "
                    "VALUES (?, ?, ?, datetime('now')) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "expires_at = excluded.expires_at, updated_at = excluded.updated_at",
                    (visitor_key(visitor.anonymous_id), visitor.model_dump_json(), expires_at),
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(
                f"Failed to write visitor {visitor.anonymous_id}: {e}"
            ) from e

    async def purge_expired(self) -> int:
        """Delete rows whose TTL has lapsed. Returns the number removed."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "DELETE FROM visitor_kv WHERE expires_at <= ?", (self.clock(),)
            )
            await db.commit()
            removed = cursor.rowcount

        if removed:
            log.info("expired_visitors_purged", count=removed)
        return removed
