"""NIP-98 HTTP authentication.

A client proves authorship of a request by signing a kind 27235 Nostr event
that names the request method and URL (and optionally the body hash) and
sending it base64-encoded in the ``Authorization: Nostr <event>`` header.
Nothing is stored server side: the event is verified and discarded.
"""

import base64
import binascii
import hashlib
import json
import logging
import time
from collections.abc import Mapping

from fastapi import Request

from config import PUBLIC_BASE_URL
from core.errors import AuthenticationFailed
from core.nostr import compute_event_id, is_hex_pubkey, verify_schnorr

logger = logging.getLogger(__name__)

AUTH_SCHEME = "Nostr"
HTTP_AUTH_KIND = 27235
MAX_CLOCK_SKEW = 60


def _find_tag(tags: list, name: str) -> list | None:
    for tag in tags:
        if isinstance(tag, list) and tag and tag[0] == name:
            return tag
    return None


def _decode_event(auth_header: str) -> dict:
    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != AUTH_SCHEME:
        raise AuthenticationFailed("Invalid Authorization scheme, expected: Nostr <base64-event>")

    try:
        event = json.loads(base64.b64decode(parts[1], validate=True))
    except (binascii.Error, ValueError):
        raise AuthenticationFailed("Invalid base64 or JSON in Authorization header") from None

    if not isinstance(event, dict):
        raise AuthenticationFailed("Invalid base64 or JSON in Authorization header")

    if not isinstance(event.get("pubkey"), str) or not is_hex_pubkey(event["pubkey"]):
        raise AuthenticationFailed("Event pubkey must be 64-character hex")
    if not isinstance(event.get("created_at"), int) or isinstance(event["created_at"], bool):
        raise AuthenticationFailed("Event created_at must be an integer timestamp")
    if not isinstance(event.get("tags"), list):
        raise AuthenticationFailed("Event tags must be a list")
    if not isinstance(event.get("id"), str) or not isinstance(event.get("sig"), str):
        raise AuthenticationFailed("Event is missing id or signature")
    return event


def verify_nip98_event(
    headers: Mapping[str, str],
    method: str,
    url: str,
    body: bytes | str | None = None,
    now: int | None = None,
) -> str:
    """Verify a NIP-98 Authorization header and return the signer's pubkey."""
    auth_header = headers.get("Authorization") or headers.get("authorization")
    if not auth_header:
        raise AuthenticationFailed("Missing Authorization header")

    event = _decode_event(auth_header)

    if event.get("kind") != HTTP_AUTH_KIND:
        raise AuthenticationFailed(f"Invalid event kind, expected {HTTP_AUTH_KIND} for NIP-98")

    if event.get("content") != "":
        raise AuthenticationFailed("Event content must be empty for NIP-98")

    if compute_event_id(event) != event["id"]:
        raise AuthenticationFailed("Event ID does not match calculated hash")

    if not verify_schnorr(event["sig"], event["id"], event["pubkey"]):
        raise AuthenticationFailed("Signature verification failed")

    if now is None:
        now = int(time.time())
    if abs(now - event["created_at"]) > MAX_CLOCK_SKEW:
        raise AuthenticationFailed("Event timestamp too old or in future")

    method_tag = _find_tag(event["tags"], "method")
    if not method_tag or len(method_tag) < 2 or method_tag[1] != method:
        raise AuthenticationFailed(f"Method tag mismatch, expected {method}")

    url_tag = _find_tag(event["tags"], "u")
    if not url_tag or len(url_tag) < 2 or url_tag[1] != url:
        raise AuthenticationFailed("URL tag mismatch")

    # The payload tag is optional in NIP-98; body hashing is only enforced when present.
    payload_tag = _find_tag(event["tags"], "payload")
    if payload_tag:
        if not body:
            raise AuthenticationFailed("Payload tag present but no request body provided")
        if isinstance(body, str):
            body = body.encode("utf-8")
        if len(payload_tag) < 2 or payload_tag[1] != hashlib.sha256(body).hexdigest():
            raise AuthenticationFailed("Payload hash mismatch")

    return event["pubkey"].lower()


def request_url(request: Request) -> str:
    """The absolute URL the client is expected to have put in the ``u`` tag."""
    if not PUBLIC_BASE_URL:
        return str(request.url)
    url = f"{PUBLIC_BASE_URL}{request.url.path}"
    if request.url.query:
        url += f"?{request.url.query}"
    return url


async def authenticate_request(request: Request, body: bytes) -> str:
    pubkey = verify_nip98_event(request.headers, request.method, request_url(request), body)
    logger.info(f"NIP-98 auth ok for pubkey={pubkey[:12]}…")
    return pubkey
