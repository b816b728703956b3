import re
import unicodedata
from typing import NamedTuple
from urllib.parse import urlparse

import idna

from core.errors import ValidationFailed
from core.nostr import convert_npub_to_hex

MAX_LABEL_LENGTH = 63
MAX_RELAYS = 50
MAX_RELAY_LENGTH = 200
ACE_PREFIX = "xn--"

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Zero-width joiner, text/emoji variation selectors, combining keycap
_EMOJI_JOINERS = {0x200D, 0xFE0E, 0xFE0F, 0x20E3}


class CanonicalName(NamedTuple):
    display: str
    canonical: str


def _is_emoji(ch: str) -> bool:
    cp = ord(ch)
    if cp in _EMOJI_JOINERS:
        return True
    if 0x1F000 <= cp <= 0x1FAFF or 0x2600 <= cp <= 0x27BF:
        return True
    return unicodedata.category(ch) == "So"


def _is_combining(ch: str) -> bool:
    return unicodedata.category(ch).startswith("M")


def _has_unpaired_mark(candidate: str) -> bool:
    for i, ch in enumerate(candidate):
        if _is_combining(ch) and (i == 0 or candidate[i - 1] == "-"):
            return True
    return False


def _screen_characters(candidate: str) -> None:
    if "_" in candidate:
        raise ValidationFailed("Usernames can't contain underscores", code="underscore")
    if "." in candidate:
        raise ValidationFailed("Usernames can't contain dots", code="dot")
    if any(ch.isspace() for ch in candidate):
        raise ValidationFailed("Usernames can't contain spaces", code="space")
    if any(_is_emoji(ch) for ch in candidate):
        raise ValidationFailed("Usernames can't contain emoji", code="emoji")
    if _has_unpaired_mark(candidate):
        raise ValidationFailed(
            "Usernames can't contain a combining mark without a letter before it",
            code="combining_mark",
        )
    for ch in candidate:
        if ch != "-" and not ch.isalnum() and not _is_combining(ch):
            raise ValidationFailed(
                "Usernames can only contain letters, numbers, and hyphens", code="charset"
            )


def _is_round_trip_ace(label: str) -> bool:
    try:
        ulabel = idna.decode(label)
        return idna.encode(ulabel, uts46=True).decode("ascii") == label
    except UnicodeError:
        return False


def _encode_unicode(candidate: str) -> str:
    normalized = unicodedata.normalize("NFC", candidate)
    try:
        mapped = idna.uts46_remap(normalized, std3_rules=True, transitional=False)
        if not mapped.isascii():
            encoded_len = len(ACE_PREFIX) + len(mapped.encode("punycode"))
            if encoded_len > MAX_LABEL_LENGTH:
                raise ValidationFailed(
                    "Username is too long once encoded (63 characters max)", code="length"
                )
        return idna.encode(mapped).decode("ascii").lower()
    except UnicodeError:
        raise ValidationFailed(
            "Username is not a valid internationalized name", code="idna"
        ) from None


def canonicalize(raw: str) -> CanonicalName:
    """Validate a requested username and compute its storage key.

    Returns the display form (trimmed input, original casing and script) and
    the canonical form: lowercase ASCII for ASCII input, the lowercase ACE
    (``xn--``) encoding for anything else. Canonicalizing a canonical string
    returns it unchanged.
    """
    if not isinstance(raw, str):
        raise ValidationFailed("Username is required", code="required")

    candidate = raw.strip()
    if not candidate:
        raise ValidationFailed("Username is required", code="required")

    if len(candidate) > MAX_LABEL_LENGTH:
        raise ValidationFailed("Usernames must be 1–63 characters", code="length")

    _screen_characters(candidate)

    if candidate.startswith("-") or candidate.endswith("-"):
        raise ValidationFailed("Usernames can't start or end with a hyphen", code="hyphen_edge")

    if candidate.isascii():
        canonical = candidate.lower()
        if canonical[2:4] == "--":
            if not (canonical.startswith(ACE_PREFIX) and _is_round_trip_ace(canonical)):
                raise ValidationFailed(
                    "Usernames can't have hyphens in both the 3rd and 4th positions",
                    code="hyphen_position",
                )
        return CanonicalName(candidate, canonical)

    canonical = _encode_unicode(candidate)
    if len(canonical) > MAX_LABEL_LENGTH:
        raise ValidationFailed(
            "Username is too long once encoded (63 characters max)", code="length"
        )
    return CanonicalName(candidate, canonical)


def validate_relays(relays: list | None) -> list[str] | None:
    if relays is None:
        return None

    if not isinstance(relays, list):
        raise ValidationFailed("Relays must be an array", code="relays")

    if len(relays) > MAX_RELAYS:
        raise ValidationFailed(f"Maximum {MAX_RELAYS} relays allowed", code="relays")

    for relay in relays:
        if not isinstance(relay, str):
            raise ValidationFailed("Relay must be a string", code="relays")
        if len(relay) > MAX_RELAY_LENGTH:
            raise ValidationFailed(
                f"Relay URL too long (max {MAX_RELAY_LENGTH} characters)", code="relays"
            )
        if not relay.startswith("wss://"):
            raise ValidationFailed("Relay must be a wss:// URL", code="relays")
        try:
            parsed = urlparse(relay)
        except ValueError:
            raise ValidationFailed("Invalid relay URL format", code="relays") from None
        if not parsed.netloc:
            raise ValidationFailed("Invalid relay URL format", code="relays")

    return relays


def validate_email(email: str) -> str:
    if not isinstance(email, str):
        raise ValidationFailed("Email is required", code="email")
    email = email.strip().lower()
    if not email:
        raise ValidationFailed("Email is required", code="email")
    if len(email) > 254 or not _EMAIL.match(email):
        raise ValidationFailed("Invalid email address", code="email")
    return email


def normalize_pubkey(value: str) -> str:
    """64-character hex or ``npub1…`` to lowercase hex."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed("Pubkey is required", code="pubkey")
    try:
        return convert_npub_to_hex(value)
    except ValueError as e:
        raise ValidationFailed(str(e), code="pubkey") from None
