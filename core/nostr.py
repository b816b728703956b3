import hashlib
import json
import logging
import re
import bech32
from coincurve import PublicKeyXOnly

logger = logging.getLogger(__name__)

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


def convert_npub_to_hex(npub: str) -> str:
    npub = npub.strip()
    if npub.startswith("npub1"):
        try:
            hrp, data = bech32.bech32_decode(npub)
            if hrp != "npub" or data is None:
                raise ValueError("Invalid npub format")
            converted = bech32.convertbits(data, 5, 8, False)
            if converted is None:
                raise ValueError("Invalid npub conversion")
        except Exception as e:
            raise ValueError(f"Invalid npub format: {e}")
        if len(converted) != 32:
            raise ValueError("Invalid npub length (must decode to 32 bytes)")
        return ''.join(f'{x:02x}' for x in converted)
    elif _HEX_KEY.match(npub):
        return npub.lower()
    else:
        raise ValueError("Pubkey must be 64-character hex or npub1... format")


def convert_hex_to_npub(pubkey_hex: str) -> str:
    data = bech32.convertbits(bytes.fromhex(pubkey_hex), 8, 5, True)
    return bech32.bech32_encode("npub", data)


def is_hex_pubkey(value: str) -> bool:
    return isinstance(value, str) and bool(_HEX_KEY.match(value))


def compute_event_id(event: dict) -> str:
    serial = [
        0,
        event["pubkey"],
        event["created_at"],
        event["kind"],
        event["tags"],
        event["content"],
    ]
    payload = json.dumps(serial, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def verify_schnorr(sig_hex: str, message_hex: str, pubkey_hex: str) -> bool:
    """BIP-340 verification of ``sig_hex`` over a 32-byte message.

    Any malformed input or library error counts as an invalid signature.
    """
    try:
        public_key = PublicKeyXOnly(bytes.fromhex(pubkey_hex))
        return bool(public_key.verify(bytes.fromhex(sig_hex), bytes.fromhex(message_hex)))
    except Exception as e:
        logger.debug(f"Schnorr verification error: {type(e).__name__}")
        return False
