import logging
import time
import aiosqlite
from db.connection import get_db, transaction

logger = logging.getLogger(__name__)


async def is_reserved_word(word: str, db: aiosqlite.Connection | None = None) -> bool:
    db = db or await get_db()
    cursor = await db.execute("SELECT 1 FROM reserved_words WHERE word = ?", (word,))
    return (await cursor.fetchone()) is not None


async def get_reserved_words(category: str | None = None) -> list[dict]:
    db = await get_db()
    if category:
        cursor = await db.execute(
            "SELECT * FROM reserved_words WHERE category = ? ORDER BY word", (category,)
        )
    else:
        cursor = await db.execute("SELECT * FROM reserved_words ORDER BY category, word")
    rows = await cursor.fetchall()
    return [
        {
            "word": row["word"],
            "category": row["category"],
            "reason": row["reason"],
            "created_at": row["created_at"],
        }
        for row in rows
    ]


async def add_reserved_word(word: str, category: str, reason: str | None) -> None:
    try:
        async with transaction() as db:
            await db.execute(
                "INSERT INTO reserved_words (word, category, reason, created_at) VALUES (?, ?, ?, ?)",
                (word, category, reason, int(time.time())),
            )
    except aiosqlite.IntegrityError:
        logger.warning(f"Duplicate reserved word: {word}")
        raise ValueError(f"Reserved word {word} already exists")
    logger.info(f"Reserved word added: {word} ({category})")


async def delete_reserved_word(word: str) -> bool:
    async with transaction() as db:
        cursor = await db.execute("DELETE FROM reserved_words WHERE word = ?", (word,))
    if cursor.rowcount > 0:
        logger.info(f"Reserved word removed: {word}")
        return True
    return False
