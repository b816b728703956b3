import logging
from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import RATE_LIMIT_ENABLED
from core.canonical import canonicalize
from core.errors import Conflict, NotFound, ValidationFailed
from core.security import ADMIN_PREFIX, require_operator
from db.names import STATUSES, search_names, update_admin_notes
from db.payments import create_invite_codes, get_invite_codes
from db.reserved_words import add_reserved_word, delete_reserved_word, get_reserved_words
from schemas import (
    AdminReserveRequest,
    AssignRequest,
    BulkReserveRequest,
    InviteCodesRequest,
    NotesRequest,
    ReservedWordRequest,
    RevokeRequest,
)
from services import lifecycle

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

router = APIRouter(prefix=ADMIN_PREFIX, dependencies=[Depends(require_operator)])

MAX_SEARCH_LIMIT = 100


# ── Usernames ────────────────────────────────────────────────────────────────

@router.get("/usernames/search")
@limiter.limit("60/minute")
async def admin_search(
    request: Request,
    q: str = "",
    status: str | None = None,
    page: int = 1,
    limit: int = 50,
):
    if len(q) > 100:
        raise ValidationFailed("Query must be at most 100 characters", code="query")
    if status and status not in STATUSES:
        raise ValidationFailed("Invalid status parameter", code="status")
    if page < 1:
        raise ValidationFailed("Page must be a positive integer", code="page")
    if limit < 1:
        raise ValidationFailed("Limit must be a positive integer", code="limit")

    result = await search_names(q.strip(), status, page, min(limit, MAX_SEARCH_LIMIT))
    return {"ok": True, **result}


@router.get("/username/{name}")
@limiter.limit("60/minute")
async def admin_get_username(request: Request, name: str):
    return {"ok": True, "username": await lifecycle.get_name_details(name)}


@router.put("/username/{name}/notes")
@limiter.limit("30/minute")
async def admin_update_notes(request: Request, name: str, data: NotesRequest):
    canonical = canonicalize(name).canonical
    if not await update_admin_notes(canonical, data.notes):
        raise NotFound("Username not found")
    return {"ok": True, "canonical": canonical}


@router.post("/username/reserve")
@limiter.limit("30/minute")
async def admin_reserve(
    request: Request,
    data: AdminReserveRequest,
    operator: str = Depends(require_operator),
):
    result = await lifecycle.reserve(data.name, data.reason, operator=True)
    logger.info(f"{operator} reserved {result['canonical']}")
    return {"ok": True, **result}


@router.post("/username/bulk-reserve")
@limiter.limit("10/minute")
async def admin_bulk_reserve(
    request: Request,
    data: BulkReserveRequest,
    operator: str = Depends(require_operator),
):
    result = await lifecycle.bulk_reserve(data.names, data.reason)
    logger.info(f"{operator} bulk reserved {result['succeeded']} names")
    return {"ok": True, **result}


@router.post("/username/assign")
@limiter.limit("30/minute")
async def admin_assign(
    request: Request,
    data: AssignRequest,
    operator: str = Depends(require_operator),
):
    result = await lifecycle.assign(data.name, data.pubkey)
    logger.info(f"{operator} assigned {result['canonical']}")
    return {"ok": True, **result}


@router.post("/username/revoke")
@limiter.limit("30/minute")
async def admin_revoke(
    request: Request,
    data: RevokeRequest,
    operator: str = Depends(require_operator),
):
    result = await lifecycle.revoke(data.name, data.burn)
    logger.info(f"{operator} set {result['canonical']} to {result['status']}")
    return {"ok": True, **result}


# ── Reserved words ───────────────────────────────────────────────────────────

@router.get("/reserved-words")
@limiter.limit("60/minute")
async def admin_get_reserved_words(request: Request, category: str | None = None):
    return {"ok": True, "words": await get_reserved_words(category)}


@router.post("/reserved-words")
@limiter.limit("30/minute")
async def admin_add_reserved_word(request: Request, data: ReservedWordRequest):
    word = canonicalize(data.word).canonical
    try:
        await add_reserved_word(word, data.category.strip() or "custom", data.reason)
    except ValueError as e:
        raise Conflict(str(e), code="duplicate")
    return {"ok": True, "word": word, "category": data.category}


@router.delete("/reserved-words/{word}")
@limiter.limit("30/minute")
async def admin_delete_reserved_word(request: Request, word: str):
    canonical = canonicalize(word).canonical
    if not await delete_reserved_word(canonical):
        raise NotFound("Reserved word not found")
    return {"ok": True, "word": canonical}


# ── Invite codes ─────────────────────────────────────────────────────────────

@router.get("/invite-codes")
@limiter.limit("30/minute")
async def admin_get_invite_codes(request: Request, unused: bool = False):
    return {"ok": True, "codes": await get_invite_codes(unused_only=unused)}


@router.post("/invite-codes")
@limiter.limit("10/minute")
async def admin_create_invite_codes(request: Request, data: InviteCodesRequest):
    created = await create_invite_codes(data.count, data.codes)
    return {"ok": True, "codes": created}
