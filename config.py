import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent
TEMPLATES_DIR = BASE_DIR / "templates"
DB_PATH = Path(os.getenv("DATABASE_PATH", str(BASE_DIR / "base.sqlite")))

DOMAIN = os.getenv("DOMAIN", "example.com")
# Scheme and host clients sign in the NIP-98 "u" tag, e.g. https://names.example.com
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")

# Set by the access proxy in front of /api/admin
OPERATOR_HEADER = os.getenv("OPERATOR_HEADER", "Cf-Access-Authenticated-User-Email")
OPERATOR_EMAILS = [
    e.strip().lower() for e in os.getenv("OPERATOR_EMAILS", "").split(",") if e.strip()
]

RESERVATION_TTL = int(os.getenv("RESERVATION_TTL", str(24 * 60 * 60)))
SUBSCRIPTION_TTL = 365 * 24 * 60 * 60

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM = os.getenv("SMTP_FROM", "noreply@example.com")

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS:
    origins = [f"https://{DOMAIN}"] if DOMAIN != "example.com" else []
    origins.append("http://localhost")
    origins.append("http://localhost:8000")
    origins.append("http://127.0.0.1")
    origins.append("http://127.0.0.1:8000")
    ALLOWED_ORIGINS = origins


def _parse_mints(raw: str) -> tuple[str, ...]:
    mints = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if not entry.startswith(("http://", "https://")):
            raise ValueError(f"Invalid mint URL in ALLOWED_MINTS: {entry!r}")
        mints.append(entry)
    return tuple(mints)


@dataclass(frozen=True)
class PaymentSettings:
    """Operator-tunable payment policy, read fresh for every request."""

    allowed_mints: tuple[str, ...] = ()
    name_price_json: str | None = None
    renewal_price_json: str | None = None

    @classmethod
    def from_env(cls) -> "PaymentSettings":
        return cls(
            allowed_mints=_parse_mints(os.getenv("ALLOWED_MINTS", "")),
            name_price_json=os.getenv("NAME_PRICE_JSON") or None,
            renewal_price_json=os.getenv("RENEWAL_PRICE_JSON") or None,
        )


def get_payment_settings() -> PaymentSettings:
    return PaymentSettings.from_env()
