import logging
import aiosqlite
from db.connection import get_db

logger = logging.getLogger(__name__)


def _row_to_reservation(row: aiosqlite.Row) -> dict:
    return {
        "id": row["id"],
        "token": row["token"],
        "canonical": row["canonical"],
        "email": row["email"],
        "created_at": row["created_at"],
        "confirmed_at": row["confirmed_at"],
        "expires_at": row["expires_at"],
    }


async def insert_reservation_token(
    db: aiosqlite.Connection,
    token: str,
    canonical: str,
    email: str,
    expires_at: int,
    now: int,
) -> None:
    await db.execute(
        """INSERT INTO reservation_tokens (token, canonical, email, created_at, expires_at)
           VALUES (?, ?, ?, ?, ?)""",
        (token, canonical, email, now, expires_at),
    )


async def get_reservation_by_token(token: str, db: aiosqlite.Connection | None = None) -> dict | None:
    db = db or await get_db()
    cursor = await db.execute("SELECT * FROM reservation_tokens WHERE token = ?", (token,))
    row = await cursor.fetchone()
    return _row_to_reservation(row) if row else None


async def mark_confirmed(db: aiosqlite.Connection, token: str, now: int) -> bool:
    cursor = await db.execute(
        "UPDATE reservation_tokens SET confirmed_at = ? WHERE token = ? AND confirmed_at IS NULL",
        (now, token),
    )
    return cursor.rowcount > 0

