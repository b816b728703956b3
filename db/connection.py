import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import aiosqlite
import config

logger = logging.getLogger(__name__)

_db_pool: aiosqlite.Connection | None = None
_write_lock: asyncio.Lock | None = None


async def get_db() -> aiosqlite.Connection:
    global _db_pool, _write_lock
    if _db_pool is None:
        # Autocommit for reads; every write goes through transaction() so it
        # cannot land inside another request's open transaction.
        _db_pool = await aiosqlite.connect(config.DB_PATH, isolation_level=None)
        _db_pool.row_factory = aiosqlite.Row
        await _db_pool.execute("PRAGMA journal_mode=WAL")
        await _db_pool.execute("PRAGMA foreign_keys=ON")
        _write_lock = asyncio.Lock()
    return _db_pool


async def close_db() -> None:
    global _db_pool, _write_lock
    if _db_pool is not None:
        await _db_pool.close()
        _db_pool = None
        _write_lock = None


@asynccontextmanager
async def transaction() -> AsyncIterator[aiosqlite.Connection]:
    """Run a group of writes as one all-or-nothing unit.

    Writers are serialized on the shared connection; the database write lock
    is taken up front with BEGIN IMMEDIATE so a second process gets
    SQLITE_BUSY instead of a lost update.
    """
    db = await get_db()
    async with _write_lock:
        await db.execute("BEGIN IMMEDIATE")
        try:
            yield db
        except BaseException:
            await db.rollback()
            raise
        else:
            await db.commit()


async def init_db() -> None:
    from db.migrations.manager import init_schema_version, run_migrations

    db = await get_db()
    await init_schema_version(db)
    await run_migrations(db)
    logger.info(f"Database initialized at {config.DB_PATH}")
