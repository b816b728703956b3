import json
import logging
import time
import aiosqlite
from db.connection import get_db, transaction

logger = logging.getLogger(__name__)

STATUSES = ("reserved", "active", "revoked", "burned")


def _parse_relays(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    try:
        relays = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring unparseable relays column")
        return None
    return relays if isinstance(relays, list) else None


def row_to_name(row: aiosqlite.Row) -> dict:
    return {
        "id": row["id"],
        "canonical": row["canonical"],
        "display": row["display"],
        "pubkey": row["pubkey"],
        "relays": _parse_relays(row["relays"]),
        "status": row["status"],
        "recyclable": bool(row["recyclable"]),
        "reserved_reason": row["reserved_reason"],
        "admin_notes": row["admin_notes"],
        "reservation_email": row["reservation_email"],
        "confirmation_token": row["confirmation_token"],
        "reservation_expires_at": row["reservation_expires_at"],
        "subscription_expires_at": row["subscription_expires_at"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
        "claimed_at": row["claimed_at"],
        "revoked_at": row["revoked_at"],
    }


async def get_name(canonical: str, db: aiosqlite.Connection | None = None) -> dict | None:
    db = db or await get_db()
    cursor = await db.execute("SELECT * FROM names WHERE canonical = ?", (canonical,))
    row = await cursor.fetchone()
    return row_to_name(row) if row else None


async def get_active_name_by_pubkey(pubkey: str, db: aiosqlite.Connection | None = None) -> dict | None:
    db = db or await get_db()
    cursor = await db.execute(
        "SELECT * FROM names WHERE pubkey = ? AND status = 'active'", (pubkey,)
    )
    row = await cursor.fetchone()
    return row_to_name(row) if row else None


async def get_all_active_names() -> list[dict]:
    db = await get_db()
    cursor = await db.execute(
        "SELECT * FROM names WHERE status = 'active' AND pubkey IS NOT NULL ORDER BY canonical"
    )
    return [row_to_name(row) for row in await cursor.fetchall()]


async def revoke_active_for_pubkey(
    db: aiosqlite.Connection, pubkey: str, keep_canonical: str, now: int
) -> list[str]:
    """Release every other active name held by ``pubkey`` as recyclable."""
    cursor = await db.execute(
        "SELECT canonical FROM names WHERE pubkey = ? AND status = 'active' AND canonical != ?",
        (pubkey, keep_canonical),
    )
    released = [row["canonical"] for row in await cursor.fetchall()]
    if released:
        await db.execute(
            """UPDATE names
               SET status = 'revoked', recyclable = 1, revoked_at = ?, updated_at = ?
               WHERE pubkey = ? AND status = 'active' AND canonical != ?""",
            (now, now, pubkey, keep_canonical),
        )
        logger.info(f"Auto-revoked {released} for pubkey={pubkey[:12]}…")
    return released


async def upsert_active(
    db: aiosqlite.Connection,
    canonical: str,
    display: str,
    pubkey: str,
    relays: list[str] | None,
    now: int,
) -> None:
    relays_json = json.dumps(relays) if relays else None
    await db.execute(
        """INSERT INTO names (canonical, display, pubkey, relays, status, recyclable,
                              created_at, updated_at, claimed_at)
           VALUES (?, ?, ?, ?, 'active', 1, ?, ?, ?)
           ON CONFLICT(canonical) DO UPDATE SET
               display = excluded.display,
               pubkey = excluded.pubkey,
               relays = excluded.relays,
               status = 'active',
               recyclable = 1,
               reservation_email = NULL,
               confirmation_token = NULL,
               reservation_expires_at = NULL,
               subscription_expires_at = NULL,
               reserved_reason = NULL,
               updated_at = excluded.updated_at,
               claimed_at = excluded.claimed_at""",
        (canonical, display, pubkey, relays_json, now, now, now),
    )


async def upsert_reserved(
    db: aiosqlite.Connection,
    canonical: str,
    display: str,
    reason: str | None,
    now: int,
) -> None:
    await db.execute(
        """INSERT INTO names (canonical, display, status, reserved_reason, created_at, updated_at)
           VALUES (?, ?, 'reserved', ?, ?, ?)
           ON CONFLICT(canonical) DO UPDATE SET
               status = 'reserved',
               reserved_reason = excluded.reserved_reason,
               confirmation_token = NULL,
               reservation_expires_at = NULL,
               reservation_email = NULL,
               subscription_expires_at = NULL,
               updated_at = excluded.updated_at""",
        (canonical, display, reason, now, now),
    )


async def upsert_pending_hold(
    db: aiosqlite.Connection,
    canonical: str,
    display: str,
    email: str,
    token: str,
    expires_at: int,
    now: int,
) -> None:
    await db.execute(
        """INSERT INTO names (canonical, display, status, reserved_reason, reservation_email,
                              confirmation_token, reservation_expires_at, created_at, updated_at)
           VALUES (?, ?, 'reserved', 'Pending email confirmation', ?, ?, ?, ?, ?)
           ON CONFLICT(canonical) DO UPDATE SET
               display = excluded.display,
               pubkey = NULL,
               relays = NULL,
               status = 'reserved',
               reserved_reason = excluded.reserved_reason,
               reservation_email = excluded.reservation_email,
               confirmation_token = excluded.confirmation_token,
               reservation_expires_at = excluded.reservation_expires_at,
               subscription_expires_at = NULL,
               updated_at = excluded.updated_at""",
        (canonical, display, email, token, expires_at, now, now),
    )


async def confirm_hold(
    db: aiosqlite.Connection,
    canonical: str,
    email: str,
    subscription_expires_at: int,
    now: int,
) -> None:
    await db.execute(
        """UPDATE names
           SET status = 'reserved',
               reserved_reason = 'Reserved by subscription',
               reservation_email = ?,
               confirmation_token = NULL,
               reservation_expires_at = NULL,
               subscription_expires_at = ?,
               updated_at = ?
           WHERE canonical = ?""",
        (email, subscription_expires_at, now, canonical),
    )


async def set_revoked(db: aiosqlite.Connection, canonical: str, burn: bool, now: int) -> None:
    await db.execute(
        """UPDATE names
           SET status = ?, recyclable = ?, revoked_at = ?, updated_at = ?
           WHERE canonical = ?""",
        ("burned" if burn else "revoked", 0 if burn else 1, now, now, canonical),
    )


async def update_admin_notes(canonical: str, notes: str | None) -> bool:
    async with transaction() as db:
        cursor = await db.execute(
            "UPDATE names SET admin_notes = ?, updated_at = ? WHERE canonical = ?",
            (notes, int(time.time()), canonical),
        )
    return cursor.rowcount > 0


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def search_names(
    query: str = "",
    status: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    db = await get_db()
    pattern = f"%{_escape_like(query)}%"
    where = (
        "(canonical LIKE ? ESCAPE '\\' OR display LIKE ? ESCAPE '\\' "
        "OR pubkey LIKE ? ESCAPE '\\' OR reservation_email LIKE ? ESCAPE '\\')"
    )
    params: list = [pattern, pattern, pattern, pattern]
    if status:
        where += " AND status = ?"
        params.append(status)

    count_cursor = await db.execute(f"SELECT COUNT(*) AS total FROM names WHERE {where}", params)
    total = (await count_cursor.fetchone())["total"]

    cursor = await db.execute(
        f"SELECT * FROM names WHERE {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
        (*params, limit, (page - 1) * limit),
    )
    rows = await cursor.fetchall()
    return {
        "results": [row_to_name(row) for row in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }
