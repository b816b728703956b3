"""Public self-service reservation: pay, hold the name, confirm by email."""

import logging
import secrets
import time

import config
from config import PaymentSettings
from core.canonical import canonicalize, validate_email
from core.email import build_confirmation_email, send_email
from core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from core.pricing import get_registration_price
from db.connection import transaction
from db.names import confirm_hold, get_name, upsert_pending_hold
from db.reservations import get_reservation_by_token, insert_reservation_token, mark_confirmed
from db.reserved_words import is_reserved_word
from services.lifecycle import is_lapsed_hold
from services.payments import redeem_payment

logger = logging.getLogger(__name__)


def confirmation_url(token: str) -> str:
    base = config.PUBLIC_BASE_URL or f"https://{config.DOMAIN}"
    return f"{base}/confirm?token={token}"


def _ensure_reservable(existing: dict, now: int) -> None:
    status = existing["status"]
    if status == "burned":
        raise Forbidden("Username is permanently unavailable", code="burned")
    if status == "active":
        raise Conflict("That username is already taken", code="taken")
    if status == "reserved" and not is_lapsed_hold(existing, now):
        raise Conflict("Username is already reserved", code="reserved")


async def request_reservation(
    raw_name: str,
    email: str,
    settings: PaymentSettings,
    invite_code: str | None = None,
    cashu_token: str | None = None,
    now: int | None = None,
) -> dict:
    """Take payment and place a pending hold on a name.

    The hold lasts ``RESERVATION_TTL`` seconds. Payment and hold are written
    together; the confirmation email goes out only after they commit.
    """
    name = canonicalize(raw_name)
    email = validate_email(email)
    now = now or int(time.time())

    if await is_reserved_word(name.canonical):
        raise Forbidden("Username is reserved", code="reserved_word")

    price = get_registration_price(name.canonical, settings.name_price_json)
    token = secrets.token_urlsafe(32)
    expires_at = now + config.RESERVATION_TTL

    async with transaction() as db:
        existing = await get_name(name.canonical, db)
        if existing:
            _ensure_reservable(existing, now)
        payment = await redeem_payment(
            db,
            name.canonical,
            price,
            settings,
            now,
            invite_code=invite_code,
            cashu_token=cashu_token,
        )
        await upsert_pending_hold(db, name.canonical, name.display, email, token, expires_at, now)
        await insert_reservation_token(db, token, name.canonical, email, expires_at, now)

    logger.info(f"Pending hold on {name.canonical} for {email} via {payment['method']}")

    subject, body = build_confirmation_email(
        name.display, name.canonical, confirmation_url(token), config.RESERVATION_TTL // 3600
    )
    email_sent = send_email(email, subject, body)
    if not email_sent:
        logger.warning(f"Confirmation email for {name.canonical} was not sent")

    return {
        "name": name.display,
        "canonical": name.canonical,
        "status": "pending_confirmation",
        "price": price,
        "payment_method": payment["method"],
        "expires_at": expires_at,
        "email_sent": email_sent,
    }


async def confirm_reservation(token: str, now: int | None = None) -> dict:
    if not token:
        raise ValidationFailed("Missing confirmation token", code="missing_token")
    now = now or int(time.time())

    reservation = await get_reservation_by_token(token)
    if not reservation:
        raise NotFound("Invalid confirmation link", code="invalid")
    if reservation["confirmed_at"] is not None:
        raise Conflict("This confirmation link has already been used", code="already_used")
    if reservation["expires_at"] < now:
        raise Forbidden("This confirmation link has expired", code="expired")

    canonical = reservation["canonical"]
    subscription_expires_at = now + config.SUBSCRIPTION_TTL

    async with transaction() as db:
        name = await get_name(canonical, db)
        if name and name["status"] == "burned":
            raise Forbidden("This name is no longer available", code="unavailable")
        if not name or name["status"] != "reserved" or name["confirmation_token"] != token:
            raise Conflict("This name is no longer available", code="unavailable")
        if not await mark_confirmed(db, token, now):
            raise Conflict("This confirmation link has already been used", code="already_used")
        await confirm_hold(db, canonical, reservation["email"], subscription_expires_at, now)

    logger.info(f"Reservation of {canonical} confirmed until {subscription_expires_at}")
    return {
        "name": name["display"],
        "canonical": canonical,
        "subscription_expires_at": subscription_expires_at,
    }
