import logging
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import RATE_LIMIT_ENABLED, PaymentSettings, get_payment_settings
from core.errors import ValidationFailed
from core.nip98 import authenticate_request
from schemas import ClaimRequest, ReserveRequest
from services import lifecycle, reservations

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/api/username")


@router.post("/claim")
@limiter.limit("10/minute")
async def claim_username(request: Request):
    # The signed payload tag covers the raw bytes, so read them before parsing.
    body = await request.body()
    pubkey = await authenticate_request(request, body)

    try:
        data = ClaimRequest.model_validate_json(body)
    except ValidationError as e:
        logger.info(f"Rejected claim body: {e.error_count()} errors")
        raise ValidationFailed("Request body must be JSON with a name and optional relays", code="body")

    result = await lifecycle.claim(data.name, pubkey, data.relays)
    return {"ok": True, **result}


@router.post("/reserve")
@limiter.limit("5/minute")
async def reserve_username(
    request: Request,
    data: ReserveRequest,
    settings: PaymentSettings = Depends(get_payment_settings),
):
    result = await reservations.request_reservation(
        data.name,
        data.email,
        settings,
        invite_code=data.invite_code,
        cashu_token=data.token,
    )
    return {"ok": True, **result}


@router.get("/check/{name}")
@limiter.limit("30/minute")
async def check_username(
    request: Request,
    name: str,
    settings: PaymentSettings = Depends(get_payment_settings),
):
    result = await lifecycle.check_availability(name, settings)
    return {"ok": True, **result}


@router.get("/by-pubkey/{pubkey}")
@limiter.limit("30/minute")
async def username_by_pubkey(request: Request, pubkey: str):
    result = await lifecycle.get_name_for_pubkey(pubkey)
    if not result:
        return {"ok": True, "found": False}
    return {"ok": True, "found": True, **result}
