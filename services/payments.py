"""Payment checks gating the public reservation path.

Both methods run on the caller's open transaction so that redeeming the
payment and writing the reservation commit or roll back together: a Cashu
proof or invite code can never pay for two names.
"""

import logging
import aiosqlite

from config import PaymentSettings
from core.cashu import hash_cashu_token, parse_cashu_token, validate_mint_allowlist
from core.errors import PaymentInsufficientOrInvalid
from db.payments import find_spent_secrets, get_invite_code, insert_spent_proofs, redeem_invite_code

logger = logging.getLogger(__name__)

SUPPORTED_UNITS = (None, "sat")


async def redeem_cashu_token(
    db: aiosqlite.Connection,
    token_str: str,
    canonical: str,
    price: int,
    settings: PaymentSettings,
    now: int,
) -> dict:
    token = parse_cashu_token(token_str)
    if token.unit not in SUPPORTED_UNITS:
        raise PaymentInsufficientOrInvalid(
            f"Unsupported Cashu unit: {token.unit}", code="token_invalid"
        )

    validate_mint_allowlist(token, settings.allowed_mints)

    if token.amount < price:
        raise PaymentInsufficientOrInvalid(
            f"Insufficient payment: {token.amount} sats provided, {price} sats required",
            code="insufficient",
        )

    proof_secrets = token.secrets
    if len(set(proof_secrets)) != len(proof_secrets):
        raise PaymentInsufficientOrInvalid("Cashu token contains duplicate proofs", code="double_spend")

    if await find_spent_secrets(db, proof_secrets):
        logger.warning(f"Double-spend attempt for {canonical}")
        raise PaymentInsufficientOrInvalid("Cashu token has already been spent", code="double_spend")

    token_hash = hash_cashu_token(token_str)
    await insert_spent_proofs(
        db,
        [(proof.secret, proof.amount) for entry in token.entries for proof in entry.proofs],
        token_hash,
        canonical,
        now,
    )
    logger.info(f"Cashu payment of {token.amount} sats recorded for {canonical} token={token_hash[:12]}…")
    return {"method": "cashu", "amount": token.amount}


async def redeem_invite(db: aiosqlite.Connection, code: str, canonical: str, now: int) -> dict:
    code = code.strip()
    invite = await get_invite_code(code, db)
    if not invite or invite["used_at"] is not None:
        raise PaymentInsufficientOrInvalid("Invalid or already used invite code", code="invite_invalid")
    if not await redeem_invite_code(db, code, canonical, now):
        raise PaymentInsufficientOrInvalid("Invalid or already used invite code", code="invite_invalid")
    logger.info(f"Invite code {code[:4]}… redeemed for {canonical}")
    return {"method": "invite_code", "amount": 0}


async def redeem_payment(
    db: aiosqlite.Connection,
    canonical: str,
    price: int,
    settings: PaymentSettings,
    now: int,
    invite_code: str | None = None,
    cashu_token: str | None = None,
) -> dict:
    if invite_code:
        return await redeem_invite(db, invite_code, canonical, now)
    if cashu_token:
        return await redeem_cashu_token(db, cashu_token, canonical, price, settings, now)
    raise PaymentInsufficientOrInvalid(
        "Payment required: provide an invite code or a Cashu token", code="payment_required"
    )
