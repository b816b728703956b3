import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from slowapi import Limiter
from slowapi.util import get_remote_address

import config
from core.canonical import canonicalize
from core.errors import NameServiceError, ValidationFailed
from db.connection import get_db
from db.names import get_all_active_names, get_name
from services.reservations import confirm_reservation

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, enabled=config.RATE_LIMIT_ENABLED)

templates = Jinja2Templates(directory=str(config.TEMPLATES_DIR))

router = APIRouter()

# Hosts under DOMAIN that serve the site itself rather than a user profile
SERVICE_SUBDOMAINS = {"names", "www"}
NOSTR_JSON_CACHE = "public, max-age=60"

CONFIRM_STATUS = {
    "missing_token": 400,
    "invalid": 404,
    "already_used": 409,
    "expired": 410,
    "unavailable": 409,
}


def get_subdomain(host: str) -> str | None:
    host = host.split(":")[0].lower().rstrip(".")
    suffix = f".{config.DOMAIN.lower()}"
    if not host.endswith(suffix):
        return None
    label = host[: -len(suffix)]
    if not label or "." in label or label in SERVICE_SUBDOMAINS:
        return None
    return label


def _nostr_json(names: dict, relays: dict) -> JSONResponse:
    content = {"names": names}
    if relays:
        content["relays"] = relays
    return JSONResponse(content=content, headers={"Cache-Control": NOSTR_JSON_CACHE})


@router.get("/")
async def index():
    return {
        "service": "name registry",
        "domain": config.DOMAIN,
        "endpoints": {
            "nip05": "/.well-known/nostr.json",
            "claim": "POST /api/username/claim",
            "reserve": "POST /api/username/reserve",
            "check": "GET /api/username/check/{name}",
            "by_pubkey": "GET /api/username/by-pubkey/{pubkey}",
            "confirm": "GET /confirm?token=",
        },
    }


@router.get("/health")
async def health():
    health_status = {"status": "healthy", "domain": config.DOMAIN}
    try:
        db = await get_db()
        cursor = await db.execute("SELECT COUNT(*) AS total FROM names WHERE status = 'active'")
        health_status["active_names"] = (await cursor.fetchone())["total"]
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        health_status["status"] = "degraded"
        health_status["database"] = "error"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


@router.get("/.well-known/nostr.json")
@limiter.limit("120/minute")
async def get_nostr_json(request: Request, name: str | None = None):
    subdomain = get_subdomain(request.headers.get("host", ""))
    if subdomain:
        entry = await get_name(subdomain)
        if not entry or entry["status"] != "active" or not entry["pubkey"]:
            return _nostr_json({}, {})
        relays = {entry["pubkey"]: entry["relays"]} if entry["relays"] else {}
        return _nostr_json({"_": entry["pubkey"]}, relays)

    if name is not None:
        try:
            canonical = canonicalize(name).canonical
        except ValidationFailed:
            return _nostr_json({}, {})
        entry = await get_name(canonical)
        if not entry or entry["status"] != "active" or not entry["pubkey"]:
            return _nostr_json({}, {})
        entries = [entry]
    else:
        entries = await get_all_active_names()

    names = {}
    relays = {}
    for entry in entries:
        names[entry["canonical"]] = entry["pubkey"]
        if entry["relays"]:
            relays[entry["pubkey"]] = entry["relays"]
    return _nostr_json(names, relays)


@router.get("/confirm", response_class=HTMLResponse)
@limiter.limit("20/minute")
async def confirm(request: Request, token: str = ""):
    context = {"domain": config.DOMAIN}
    try:
        result = await confirm_reservation(token)
    except NameServiceError as e:
        outcome = e.code if e.code in CONFIRM_STATUS else "invalid"
        context.update(outcome=outcome, message=e.message)
        return templates.TemplateResponse(
            request, "confirm_result.html", context, status_code=CONFIRM_STATUS[outcome]
        )

    expires = datetime.fromtimestamp(result["subscription_expires_at"], tz=timezone.utc)
    context.update(
        outcome="success",
        name=result["canonical"],
        display=result["name"],
        expires=expires.strftime("%B %d, %Y"),
    )
    return templates.TemplateResponse(request, "confirm_result.html", context)
