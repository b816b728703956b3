import base64
import hashlib
import json
import os
import secrets
import time

import pytest
import pytest_asyncio
from coincurve import PrivateKey
from fastapi.testclient import TestClient

os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DOMAIN"] = "example.com"
os.environ["PUBLIC_BASE_URL"] = ""
os.environ["OPERATOR_EMAILS"] = ""
os.environ["SMTP_HOST"] = ""

import config
from config import PaymentSettings, get_payment_settings
from core.nostr import compute_event_id
from db.connection import close_db, get_db, init_db
from main import app

TEST_MINT = "https://mint.example.com"
OPERATOR_HEADERS = {config.OPERATOR_HEADER: "ops@example.com"}
CLAIM_URL = "http://testserver/api/username/claim"


class NostrSigner:
    """A throwaway keypair that produces NIP-98 Authorization headers."""

    def __init__(self):
        self.private_key = PrivateKey(secrets.token_bytes(32))
        self.pubkey = self.private_key.public_key.format(compressed=True)[1:].hex()

    def sign_event(self, event: dict) -> dict:
        event = dict(event, pubkey=self.pubkey)
        event["id"] = compute_event_id(event)
        event["sig"] = self.private_key.sign_schnorr(bytes.fromhex(event["id"])).hex()
        return event

    def http_auth_event(
        self,
        method: str,
        url: str,
        body: bytes | None = None,
        created_at: int | None = None,
        kind: int = 27235,
        content: str = "",
    ) -> dict:
        tags = [["u", url], ["method", method]]
        if body is not None:
            tags.append(["payload", hashlib.sha256(body).hexdigest()])
        return self.sign_event({
            "created_at": created_at if created_at is not None else int(time.time()),
            "kind": kind,
            "tags": tags,
            "content": content,
        })

    def auth_header(self, method: str, url: str, body: bytes | None = None, **kwargs) -> dict:
        return encode_auth_header(self.http_auth_event(method, url, body, **kwargs))


def encode_auth_header(event: dict) -> dict:
    encoded = base64.b64encode(json.dumps(event).encode()).decode()
    return {"Authorization": f"Nostr {encoded}"}


def build_cashu_token(amounts, mint: str = TEST_MINT, unit: str | None = "sat", secret_prefix: str | None = None) -> str:
    prefix = secret_prefix or secrets.token_hex(8)
    payload = {
        "token": [{
            "mint": mint,
            "proofs": [
                {"amount": amount, "id": "009a1f293253e41e", "secret": f"{prefix}-{i}", "C": "02" + "ab" * 32}
                for i, amount in enumerate(amounts)
            ],
        }],
    }
    if unit is not None:
        payload["unit"] = unit
    return "cashuA" + base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")


@pytest.fixture
def signer():
    return NostrSigner()


@pytest.fixture
def other_signer():
    return NostrSigner()


@pytest.fixture
def payment_settings():
    return PaymentSettings(allowed_mints=(TEST_MINT,))


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "test.sqlite"
    monkeypatch.setattr(config, "DB_PATH", path)
    return path


@pytest_asyncio.fixture
async def db(db_path):
    await init_db()
    yield await get_db()
    await close_db()


@pytest.fixture
def client(db_path, payment_settings):
    app.dependency_overrides[get_payment_settings] = lambda: payment_settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def operator_headers():
    return dict(OPERATOR_HEADERS)


@pytest.fixture
def make_cashu_token():
    return build_cashu_token


@pytest.fixture
def encode_header():
    return encode_auth_header
