"""
SQLite database connection management.

Provides async database initialization and health checks for the visitor
store. Uses aiosqlite for async SQLite access.

Schema is defined in schema.sql.
"""

import aiosqlite
from pathlib import Path
import structlog

from src.core.config import settings

log = structlog.get_logger(__name__)

SCHEMA_FILE = Path(__file__).parent / "schema.sql"


async def init_database(db_path: Path | None = None) -> None:
    """
    Initialize database from schema.sql.

    Args:
        db_path: Optional path to database file. Uses settings.database_path if not provided.

    Creates the database file if it doesn't exist. Existing databases are left
    intact (CREATE TABLE IF NOT EXISTS).
    """
    db_path = Path(db_path or settings.database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    log.info("initializing_database", path=str(db_path))

    if not SCHEMA_FILE.exists():
        log.error("schema_file_not_found", path=str(SCHEMA_FILE))
        raise FileNotFoundError(f"Schema file not found: {SCHEMA_FILE}")

    async with aiosqlite.connect(db_path) as db:
        # WAL mode for concurrent readers alongside the writer
        await db.execute("PRAGMA journal_mode = WAL")
        await db.executescript(SCHEMA_FILE.read_text())
        await db.commit()

    log.info("database_initialized", path=str(db_path))


async def check_database_health(db_path: Path | None = None) -> dict:
    """
    Check database health for the readiness endpoint.

    Returns:
        Dict with health status and the number of stored visitor records.
    """
    db_path = db_path or settings.database_path
    try:
        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM visitor_kv")
            row = await cursor.fetchone()

            return {
                "status": "healthy",
                "visitor_count": row[0] if row else 0,
                "path": str(db_path),
            }
    except Exception as e:
        log.error("database_health_check_failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
