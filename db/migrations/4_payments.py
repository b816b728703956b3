import aiosqlite


async def upgrade(db: aiosqlite.Connection) -> None:
    from db.migrations.manager import table_exists

    if not await table_exists(db, "spent_proofs"):
        await db.execute("""
            CREATE TABLE spent_proofs (
                secret TEXT PRIMARY KEY,
                token_hash TEXT NOT NULL,
                canonical TEXT NOT NULL,
                amount INTEGER NOT NULL,
                created_at INTEGER NOT NULL
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_spent_proofs_token_hash ON spent_proofs(token_hash)"
        )

    if not await table_exists(db, "invite_codes"):
        await db.execute("""
            CREATE TABLE invite_codes (
                code TEXT PRIMARY KEY,
                created_at INTEGER NOT NULL,
                used_at INTEGER,
                used_for TEXT
            )
        """)
