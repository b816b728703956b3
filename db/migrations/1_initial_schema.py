import aiosqlite


async def upgrade(db: aiosqlite.Connection) -> None:
    from db.migrations.manager import table_exists

    if not await table_exists(db, "names"):
        await db.execute("""
            CREATE TABLE names (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                canonical TEXT NOT NULL UNIQUE,
                display TEXT NOT NULL,
                pubkey TEXT,
                relays TEXT,
                status TEXT NOT NULL DEFAULT 'active'
                    CHECK (status IN ('reserved', 'active', 'revoked', 'burned')),
                recyclable INTEGER NOT NULL DEFAULT 1,
                reserved_reason TEXT,
                admin_notes TEXT,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                claimed_at INTEGER,
                revoked_at INTEGER
            )
        """)
        # A key holds at most one active name
        await db.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_names_pubkey_active
                ON names(pubkey)
                WHERE status = 'active' AND pubkey IS NOT NULL
        """)
        await db.execute("CREATE INDEX IF NOT EXISTS idx_names_status ON names(status)")

    if not await table_exists(db, "reserved_words"):
        await db.execute("""
            CREATE TABLE reserved_words (
                word TEXT PRIMARY KEY,
                category TEXT NOT NULL,
                reason TEXT,
                created_at INTEGER NOT NULL
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_reserved_words_category ON reserved_words(category)"
        )
