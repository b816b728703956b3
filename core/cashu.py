import base64
import binascii
import hashlib
import json
from dataclasses import dataclass, field

from core.errors import PaymentInsufficientOrInvalid

TOKEN_PREFIX = "cashuA"


@dataclass(frozen=True)
class CashuProof:
    amount: int
    id: str
    secret: str
    C: str


@dataclass(frozen=True)
class CashuTokenEntry:
    mint: str
    proofs: list[CashuProof] = field(default_factory=list)


@dataclass(frozen=True)
class CashuToken:
    entries: list[CashuTokenEntry]
    unit: str | None = None

    @property
    def amount(self) -> int:
        return sum(proof.amount for entry in self.entries for proof in entry.proofs)

    @property
    def secrets(self) -> list[str]:
        return [proof.secret for entry in self.entries for proof in entry.proofs]


def _invalid(reason: str) -> PaymentInsufficientOrInvalid:
    return PaymentInsufficientOrInvalid(f"Invalid Cashu token: {reason}", code="token_invalid")


def _parse_proof(raw) -> CashuProof:
    if not isinstance(raw, dict):
        raise _invalid("proof must be an object")
    amount = raw.get("amount")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise _invalid("proof has invalid amount")
    secret = raw.get("secret")
    if not isinstance(secret, str) or not secret:
        raise _invalid("proof has missing secret")
    c_value = raw.get("C")
    if not isinstance(c_value, str) or not c_value:
        raise _invalid("proof has missing C value")
    keyset_id = raw.get("id", "")
    if not isinstance(keyset_id, str):
        raise _invalid("proof has invalid keyset id")
    return CashuProof(amount=amount, id=keyset_id, secret=secret, C=c_value)


def parse_cashu_token(token_str: str) -> CashuToken:
    """Parse a v3 ``cashuA`` token (prefix + base64url JSON)."""
    if not isinstance(token_str, str) or not token_str.startswith(TOKEN_PREFIX):
        raise _invalid(f'must start with "{TOKEN_PREFIX}"')

    encoded = token_str[len(TOKEN_PREFIX):].strip()
    encoded += "=" * (-len(encoded) % 4)
    try:
        decoded = base64.urlsafe_b64decode(encoded)
    except (binascii.Error, ValueError):
        raise _invalid("base64 decode failed") from None

    try:
        data = json.loads(decoded)
    except ValueError:
        raise _invalid("JSON parse failed") from None

    if not isinstance(data, dict) or not isinstance(data.get("token"), list) or not data["token"]:
        raise _invalid("missing token array")

    entries = []
    for raw_entry in data["token"]:
        if not isinstance(raw_entry, dict):
            raise _invalid("token entry must be an object")
        mint = raw_entry.get("mint")
        if not isinstance(mint, str) or not mint:
            raise _invalid("missing mint URL")
        raw_proofs = raw_entry.get("proofs")
        if not isinstance(raw_proofs, list) or not raw_proofs:
            raise _invalid("missing proofs array")
        entries.append(CashuTokenEntry(mint=mint, proofs=[_parse_proof(p) for p in raw_proofs]))

    unit = data.get("unit")
    return CashuToken(entries=entries, unit=unit if isinstance(unit, str) else None)


def _normalize_mint(url: str) -> str:
    return url.rstrip("/")


def validate_mint_allowlist(token: CashuToken, allowed_mints: tuple[str, ...] | list[str]) -> None:
    if not allowed_mints:
        raise PaymentInsufficientOrInvalid("No allowed mints configured", code="mint_not_allowed")
    allowed = {_normalize_mint(m) for m in allowed_mints}
    for entry in token.entries:
        if _normalize_mint(entry.mint) not in allowed:
            raise PaymentInsufficientOrInvalid(
                f"Mint {entry.mint} is not in the allowed mints list", code="mint_not_allowed"
            )


def hash_cashu_token(token_str: str) -> str:
    return hashlib.sha256(token_str.encode("utf-8")).hexdigest()
