import aiosqlite


async def upgrade(db: aiosqlite.Connection) -> None:
    from db.migrations.manager import column_exists, table_exists

    for column in (
        "reservation_email TEXT",
        "confirmation_token TEXT",
        "reservation_expires_at INTEGER",
        "subscription_expires_at INTEGER",
    ):
        name = column.split()[0]
        if not await column_exists(db, "names", name):
            await db.execute(f"ALTER TABLE names ADD COLUMN {column}")

    await db.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_names_confirmation_token
            ON names(confirmation_token)
            WHERE confirmation_token IS NOT NULL
    """)
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_names_reservation_email ON names(reservation_email)"
    )

    if not await table_exists(db, "reservation_tokens"):
        await db.execute("""
            CREATE TABLE reservation_tokens (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                token TEXT NOT NULL UNIQUE,
                canonical TEXT NOT NULL,
                email TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                confirmed_at INTEGER,
                expires_at INTEGER NOT NULL
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_reservation_tokens_email ON reservation_tokens(email)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_reservation_tokens_canonical ON reservation_tokens(canonical)"
        )
