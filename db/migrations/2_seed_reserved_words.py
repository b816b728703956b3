import time
import aiosqlite

SEED_WORDS = [
    # system routes
    ("api", "system", "API endpoint root"),
    ("www", "system", "WWW subdomain"),
    ("admin", "system", "Admin interface"),
    ("support", "system", "Support pages"),
    ("help", "system", "Help documentation"),
    ("status", "system", "Status page"),
    ("health", "system", "Health check"),
    ("docs", "system", "Documentation"),
    ("blog", "system", "Blog"),
    ("confirm", "system", "Reservation confirmation"),
    # common subdomains
    ("mail", "subdomain", "Email server"),
    ("email", "subdomain", "Email service"),
    ("ftp", "subdomain", "FTP server"),
    ("smtp", "subdomain", "SMTP server"),
    ("imap", "subdomain", "IMAP server"),
    ("cdn", "subdomain", "CDN"),
    ("static", "subdomain", "Static assets"),
    ("assets", "subdomain", "Asset server"),
    # application routes
    ("profile", "app", "Profile pages"),
    ("user", "app", "User pages"),
    ("users", "app", "Users directory"),
    ("settings", "app", "Settings page"),
    ("account", "app", "Account management"),
    ("dashboard", "app", "Dashboard"),
    ("upload", "app", "Upload endpoint"),
    ("video", "app", "Video pages"),
    ("videos", "app", "Videos directory"),
    # nostr protocol
    ("relay", "protocol", "Nostr relay"),
    ("relays", "protocol", "Relay directory"),
    ("nostr", "protocol", "Nostr protocol"),
    ("nip", "protocol", "Nostr protocol spec"),
    ("nips", "protocol", "Nostr protocol specs"),
    ("wellknown", "protocol", "Well-known directory"),
]


async def upgrade(db: aiosqlite.Connection) -> None:
    now = int(time.time())
    await db.executemany(
        "INSERT OR IGNORE INTO reserved_words (word, category, reason, created_at) VALUES (?, ?, ?, ?)",
        [(word, category, reason, now) for word, category, reason in SEED_WORDS],
    )
