import aiosqlite
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import List, Optional

logger = logging.getLogger(__name__)


class KeyValueStore:
    """
    Durable string key -> string value store on SQLite.

    Supports:
    - WAL mode for better concurrency
    - Simple schema migrations
    - Upsert per key (each write is atomic for its key)

    Values are opaque strings; callers own the serialization.
    """

    def __init__(self, db_path: str = "combineti.sqlite"):
        self.db_path = db_path
        self.initialized = False

    async def initialize(self):
        """Initialize database, enable WAL, and run migrations."""
        if self.initialized:
            return

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute("PRAGMA synchronous=NORMAL;")

            await db.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            await self._run_migrations(db)

        self.initialized = True
        logger.info(f"✅ Store initialized at {self.db_path}")

    def connect(self):
        """Get an aiosqlite connection context manager."""
        return aiosqlite.connect(self.db_path, timeout=30.0)

    async def _run_migrations(self, db: aiosqlite.Connection):
        """Run pending schema migrations."""
        async with db.execute("SELECT MAX(version) FROM schema_version") as cursor:
            row = await cursor.fetchone()
            current_version = row[0] if row and row[0] is not None else 0

        migrations = [
            # Version 1: key/value table
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at_utc TEXT NOT NULL
            );
            """,
        ]

        for i, sql in enumerate(migrations):
            version = i + 1
            if version > current_version:
                logger.info(f"Applying migration version {version}...")
                try:
                    await db.executescript(sql)
                    await db.execute(
                        "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                        (version, _utc_now())
                    )
                    await db.commit()
                    logger.info(f"✅ Applied migration version {version}")
                except Exception as e:
                    logger.error(f"❌ Failed to apply migration version {version}: {e}")
                    raise

    async def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        await self.initialize()
        async with self.connect() as db:
            async with db.execute("SELECT value FROM kv_store WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else None

    async def set_item(self, key: str, value: str) -> None:
        await self.initialize()
        async with self.connect() as db:
            await db.execute("""
                INSERT INTO kv_store (key, value, updated_at_utc)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at_utc = excluded.updated_at_utc
            """, (key, value, _utc_now()))
            await db.commit()

    async def remove_item(self, key: str) -> None:
        await self.initialize()
        async with self.connect() as db:
            await db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await db.commit()

    async def clear(self) -> None:
        """Delete every key."""
        await self.initialize()
        async with self.connect() as db:
            await db.execute("DELETE FROM kv_store")
            await db.commit()
        logger.info("Store cleared")

    async def keys(self, prefix: str = "") -> List[str]:
        await self.initialize()
        async with self.connect() as db:
            async with db.execute(
                "SELECT key FROM kv_store WHERE substr(key, 1, length(?)) = ? ORDER BY key",
                (prefix, prefix),
            ) as cursor:
                rows = await cursor.fetchall()
                return [row[0] for row in rows]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
