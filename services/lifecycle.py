"""Username lifecycle: Available -> Reserved / Active -> Revoked / Burned.

Every transition that touches more than one row runs inside
``db.connection.transaction()``. The unique indexes on ``names`` back the
one-active-name-per-key and one-row-per-name rules; a constraint failure that
slips past the checks below surfaces as ``Conflict``.
"""

import logging
import re
import time
import aiosqlite

import config
from config import PaymentSettings
from core.canonical import canonicalize, normalize_pubkey, validate_relays
from core.errors import Conflict, Forbidden, NameServiceError, NotFound, ValidationFailed
from core.nostr import convert_hex_to_npub
from core.pricing import get_registration_price, get_renewal_price, is_premium_name
from db.connection import transaction
from db.names import (
    get_active_name_by_pubkey,
    get_name,
    revoke_active_for_pubkey,
    set_revoked,
    upsert_active,
    upsert_reserved,
)
from db.reserved_words import is_reserved_word

logger = logging.getLogger(__name__)

MAX_BULK_NAMES = 1000
DEFAULT_RESERVE_REASON = "Reserved by admin"

_BULK_SEPARATORS = re.compile(r"[\s,]+")


def public_identity(canonical: str) -> dict:
    return {
        "profile_url": f"https://{canonical}.{config.DOMAIN}/",
        "nip05": {
            "main_domain": f"{canonical}@{config.DOMAIN}",
            "underscore_subdomain": f"_@{canonical}.{config.DOMAIN}",
            "host_style": f"@{canonical}.{config.DOMAIN}",
        },
    }


def is_lapsed_hold(name: dict, now: int) -> bool:
    """A public reservation whose email hold or paid subscription has run out.

    Operator reservations carry neither expiry and never lapse.
    """
    if name["status"] != "reserved":
        return False
    hold_expires = name["reservation_expires_at"]
    if name["confirmation_token"] and hold_expires is not None and hold_expires < now:
        return True
    subscription_expires = name["subscription_expires_at"]
    return subscription_expires is not None and subscription_expires < now


def _ensure_claimable(existing: dict, pubkey: str, now: int) -> None:
    status = existing["status"]
    if status == "burned":
        raise Forbidden("Username is permanently unavailable", code="burned")
    if status == "active" and existing["pubkey"] != pubkey:
        raise Conflict("That username is already taken", code="taken")
    if status == "reserved" and not is_lapsed_hold(existing, now):
        raise Forbidden("Username is reserved", code="reserved")
    if status == "revoked" and not existing["recyclable"]:
        raise Forbidden("Username is not available for reuse", code="not_recyclable")


async def claim(raw_name: str, pubkey: str, relays: list | None = None, now: int | None = None) -> dict:
    """Bind a name to the authenticated key, releasing the key's previous name."""
    name = canonicalize(raw_name)
    relays = validate_relays(relays)
    pubkey = normalize_pubkey(pubkey)
    now = now or int(time.time())

    if await is_reserved_word(name.canonical):
        raise Forbidden("Username is reserved", code="reserved_word")

    try:
        async with transaction() as db:
            existing = await get_name(name.canonical, db)
            if existing:
                _ensure_claimable(existing, pubkey, now)
            released = await revoke_active_for_pubkey(db, pubkey, name.canonical, now)
            await upsert_active(db, name.canonical, name.display, pubkey, relays, now)
    except aiosqlite.IntegrityError:
        logger.warning(f"Claim of {name.canonical} lost a race")
        raise Conflict("That username is already taken", code="taken") from None

    logger.info(f"Claimed {name.canonical} for pubkey={pubkey[:12]}…")
    return {
        "name": name.display,
        "canonical": name.canonical,
        "pubkey": pubkey,
        "released": released,
        **public_identity(name.canonical),
    }


async def assign(raw_name: str, pubkey: str, now: int | None = None) -> dict:
    """Operator binding: ignores reserved words and the current holder."""
    name = canonicalize(raw_name)
    pubkey = normalize_pubkey(pubkey)
    now = now or int(time.time())

    try:
        async with transaction() as db:
            existing = await get_name(name.canonical, db)
            relays = None
            if existing:
                if existing["status"] == "burned":
                    raise Forbidden("Username is permanently unavailable", code="burned")
                if existing["pubkey"] == pubkey:
                    relays = existing["relays"]
            released = await revoke_active_for_pubkey(db, pubkey, name.canonical, now)
            await upsert_active(db, name.canonical, name.display, pubkey, relays, now)
    except aiosqlite.IntegrityError:
        logger.warning(f"Assign of {name.canonical} lost a race")
        raise Conflict("Pubkey already holds another active username", code="taken") from None

    logger.info(f"Assigned {name.canonical} to pubkey={pubkey[:12]}…")
    return {
        "name": name.display,
        "canonical": name.canonical,
        "pubkey": pubkey,
        "status": "active",
        "released": released,
    }


async def reserve(
    raw_name: str,
    reason: str | None = None,
    operator: bool = True,
    now: int | None = None,
) -> dict:
    name = canonicalize(raw_name)
    reason = reason or DEFAULT_RESERVE_REASON
    now = now or int(time.time())

    if not operator and await is_reserved_word(name.canonical):
        raise Forbidden("Username is reserved", code="reserved_word")

    async with transaction() as db:
        existing = await get_name(name.canonical, db)
        if existing and existing["status"] == "burned":
            raise Forbidden("Username is permanently unavailable", code="burned")
        await upsert_reserved(db, name.canonical, name.display, reason, now)

    logger.info(f"Reserved {name.canonical}: {reason}")
    return {"name": name.display, "canonical": name.canonical, "status": "reserved", "reason": reason}


async def revoke(raw_name: str, burn: bool = False, now: int | None = None) -> dict:
    name = canonicalize(raw_name)
    now = now or int(time.time())

    async with transaction() as db:
        existing = await get_name(name.canonical, db)
        if not existing:
            raise NotFound("Username not found")
        status = existing["status"]
        if status == "burned":
            raise Forbidden("Username is already burned", code="burned")
        if status == "revoked" and not burn:
            raise Conflict("Username is already revoked", code="already_revoked")
        await set_revoked(db, name.canonical, burn, now)

    new_status = "burned" if burn else "revoked"
    logger.info(f"{new_status.capitalize()} {name.canonical} (was {status})")
    return {
        "name": existing["display"],
        "canonical": name.canonical,
        "status": new_status,
        "recyclable": not burn,
    }


def parse_bulk_names(names: str | list) -> list[str]:
    """Split a pasted list on commas and whitespace, drop ``@`` prefixes and repeats."""
    if isinstance(names, str):
        items = _BULK_SEPARATORS.split(names)
    elif isinstance(names, list):
        items = names
    else:
        raise ValidationFailed("Names must be a string or an array", code="names")

    seen = set()
    parsed = []
    for item in items:
        if not isinstance(item, str):
            raise ValidationFailed("Each name must be a string", code="names")
        item = item.strip().lstrip("@").strip()
        if item and item not in seen:
            seen.add(item)
            parsed.append(item)

    if not parsed:
        raise ValidationFailed("No names provided", code="names")
    if len(parsed) > MAX_BULK_NAMES:
        raise ValidationFailed(f"Maximum {MAX_BULK_NAMES} names per request", code="too_many")
    return parsed


async def bulk_reserve(names: str | list, reason: str | None = None, now: int | None = None) -> dict:
    """Reserve each name on its own; one bad entry never fails the batch."""
    results = []
    for raw in parse_bulk_names(names):
        try:
            reserved = await reserve(raw, reason, operator=True, now=now)
        except NameServiceError as e:
            results.append({"name": raw, "ok": False, "error": e.message, "kind": e.kind.value})
            continue
        results.append(
            {"name": raw, "ok": True, "canonical": reserved["canonical"], "status": "reserved"}
        )

    succeeded = sum(1 for r in results if r["ok"])
    logger.info(f"Bulk reserve: {succeeded}/{len(results)} reserved")
    return {
        "total": len(results),
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
        "results": results,
    }


async def get_name_details(raw_name: str) -> dict:
    name = canonicalize(raw_name)
    existing = await get_name(name.canonical)
    if not existing:
        raise NotFound("Username not found")
    details = dict(existing)
    details["npub"] = convert_hex_to_npub(existing["pubkey"]) if existing["pubkey"] else None
    return details


async def get_name_for_pubkey(raw_pubkey: str) -> dict | None:
    pubkey = normalize_pubkey(raw_pubkey)
    existing = await get_active_name_by_pubkey(pubkey)
    if not existing:
        return None
    return {
        "name": existing["display"],
        "canonical": existing["canonical"],
        "pubkey": existing["pubkey"],
        **public_identity(existing["canonical"]),
    }


def _unavailable_reason(existing: dict) -> str:
    return {
        "active": "Username is already taken",
        "reserved": "Username is reserved",
        "burned": "Username is permanently unavailable",
    }.get(existing["status"], "Username is unavailable")


async def check_availability(raw_name: str, settings: PaymentSettings, now: int | None = None) -> dict:
    """Answer whether a name could be claimed or reserved right now, with its price.

    Invalid names are reported as unavailable with the validation message
    rather than as an error.
    """
    try:
        name = canonicalize(raw_name)
    except ValidationFailed as e:
        return {"available": False, "name": raw_name, "reason": e.message}

    now = now or int(time.time())
    result = {
        "name": name.display,
        "canonical": name.canonical,
        "premium": is_premium_name(name.canonical),
        "price": get_registration_price(name.canonical, settings.name_price_json),
        "renewal_price": get_renewal_price(name.canonical, settings.renewal_price_json),
    }

    if await is_reserved_word(name.canonical):
        return {**result, "available": False, "reason": "Username is reserved"}

    existing = await get_name(name.canonical)
    if not existing:
        return {**result, "available": True}

    result["status"] = existing["status"]
    if (existing["status"] == "revoked" and existing["recyclable"]) or is_lapsed_hold(existing, now):
        return {**result, "available": True}
    return {**result, "available": False, "reason": _unavailable_reason(existing)}
