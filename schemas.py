from pydantic import BaseModel, Field, field_validator
from core.nostr import convert_npub_to_hex


class ValidatedPubkeyMixin:
    @field_validator('pubkey')
    @classmethod
    def validate_pubkey(cls, v: str) -> str:
        try:
            return convert_npub_to_hex(v)
        except ValueError as e:
            raise ValueError(str(e))


class ClaimRequest(BaseModel):
    name: str = Field(max_length=256)
    relays: list[str] | None = None


class ReserveRequest(BaseModel):
    name: str = Field(max_length=256)
    email: str = Field(max_length=254)
    invite_code: str | None = Field(default=None, max_length=100)
    token: str | None = Field(default=None, max_length=100_000)


class AdminReserveRequest(BaseModel):
    name: str = Field(max_length=256)
    reason: str | None = Field(default=None, max_length=500)


class BulkReserveRequest(BaseModel):
    names: str | list[str]
    reason: str | None = Field(default=None, max_length=500)


class AssignRequest(ValidatedPubkeyMixin, BaseModel):
    name: str = Field(max_length=256)
    pubkey: str = Field(max_length=200)


class RevokeRequest(BaseModel):
    name: str = Field(max_length=256)
    burn: bool = False


class ReservedWordRequest(BaseModel):
    word: str = Field(max_length=256)
    category: str = Field(default="custom", max_length=50)
    reason: str | None = Field(default=None, max_length=500)


class InviteCodesRequest(BaseModel):
    count: int = Field(default=1, ge=1, le=100)
    codes: list[str] | None = None

    @field_validator('codes')
    @classmethod
    def validate_codes(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        cleaned = [c.strip() for c in v if c.strip()]
        if any(len(c) > 100 for c in cleaned):
            raise ValueError('Invite codes must be at most 100 characters')
        return cleaned or None


class NotesRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)
