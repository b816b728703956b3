import logging
import secrets
import time
import aiosqlite
from db.connection import get_db, transaction

logger = logging.getLogger(__name__)


async def find_spent_secrets(db: aiosqlite.Connection, proof_secrets: list[str]) -> list[str]:
    if not proof_secrets:
        return []
    placeholders = ",".join("?" for _ in proof_secrets)
    cursor = await db.execute(
        f"SELECT secret FROM spent_proofs WHERE secret IN ({placeholders})", proof_secrets
    )
    return [row["secret"] for row in await cursor.fetchall()]


async def insert_spent_proofs(
    db: aiosqlite.Connection,
    proofs: list[tuple[str, int]],
    token_hash: str,
    canonical: str,
    now: int,
) -> None:
    await db.executemany(
        """INSERT INTO spent_proofs (secret, token_hash, canonical, amount, created_at)
           VALUES (?, ?, ?, ?, ?)""",
        [(secret, token_hash, canonical, amount, now) for secret, amount in proofs],
    )


async def get_invite_code(code: str, db: aiosqlite.Connection | None = None) -> dict | None:
    db = db or await get_db()
    cursor = await db.execute("SELECT * FROM invite_codes WHERE code = ?", (code,))
    row = await cursor.fetchone()
    if not row:
        return None
    return {
        "code": row["code"],
        "created_at": row["created_at"],
        "used_at": row["used_at"],
        "used_for": row["used_for"],
    }


async def redeem_invite_code(db: aiosqlite.Connection, code: str, canonical: str, now: int) -> bool:
    cursor = await db.execute(
        "UPDATE invite_codes SET used_at = ?, used_for = ? WHERE code = ? AND used_at IS NULL",
        (now, canonical, code),
    )
    return cursor.rowcount > 0


async def create_invite_codes(count: int = 1, codes: list[str] | None = None) -> list[str]:
    new_codes = list(codes) if codes else [secrets.token_urlsafe(9) for _ in range(count)]
    now = int(time.time())
    created = []
    async with transaction() as db:
        for code in new_codes:
            try:
                await db.execute(
                    "INSERT INTO invite_codes (code, created_at) VALUES (?, ?)", (code, now)
                )
                created.append(code)
            except aiosqlite.IntegrityError:
                logger.warning(f"Duplicate invite code skipped: {code[:4]}…")
    logger.info(f"Created {len(created)} invite codes")
    return created


async def get_invite_codes(unused_only: bool = False) -> list[dict]:
    db = await get_db()
    query = "SELECT * FROM invite_codes"
    if unused_only:
        query += " WHERE used_at IS NULL"
    cursor = await db.execute(query + " ORDER BY created_at DESC, code")
    return [
        {
            "code": row["code"],
            "created_at": row["created_at"],
            "used_at": row["used_at"],
            "used_for": row["used_for"],
        }
        for row in await cursor.fetchall()
    ]
