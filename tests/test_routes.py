import json

import config

CLAIM_PATH = "/api/username/claim"
CLAIM_URL = "http://testserver" + CLAIM_PATH


def _claim(client, signer, payload, url=CLAIM_URL):
    body = json.dumps(payload).encode()
    headers = signer.auth_header("POST", url, body)
    headers["Content-Type"] = "application/json"
    return client.post(CLAIM_PATH, content=body, headers=headers)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Request-ID" in response.headers


def test_index_describes_service(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["domain"] == "example.com"


def test_claim_over_http(client, signer):
    response = _claim(client, signer, {"name": "Alice", "relays": ["wss://relay.example.com"]})
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["name"] == "Alice"
    assert data["canonical"] == "alice"
    assert data["pubkey"] == signer.pubkey
    assert data["nip05"]["underscore_subdomain"] == "_@alice.example.com"


def test_claim_requires_signature(client):
    response = client.post(CLAIM_PATH, json={"name": "alice"})
    assert response.status_code == 401
    data = response.json()
    assert data["ok"] is False
    assert data["kind"] == "authentication_failed"


def test_claim_signed_for_other_url(client, signer):
    response = _claim(client, signer, {"name": "alice"}, url="https://elsewhere.example.com" + CLAIM_PATH)
    assert response.status_code == 401
    assert response.json()["error"] == "URL tag mismatch"


def test_claim_rejects_tampered_body(client, signer):
    signed = json.dumps({"name": "alice"}).encode()
    headers = signer.auth_header("POST", CLAIM_URL, signed)
    response = client.post(CLAIM_PATH, content=b'{"name": "mallory"}', headers=headers)
    assert response.status_code == 401


def test_claim_bad_body(client, signer):
    body = b"not json"
    response = client.post(CLAIM_PATH, content=body, headers=signer.auth_header("POST", CLAIM_URL, body))
    assert response.status_code == 400
    assert response.json()["code"] == "body"


def test_claim_invalid_name(client, signer):
    response = _claim(client, signer, {"name": "foo_bar"})
    assert response.status_code == 400
    assert response.json() == {
        "ok": False,
        "error": "Usernames can't contain underscores",
        "kind": "validation_failed",
        "code": "underscore",
    }


def test_claim_keeps_at_prefix(client, signer):
    response = _claim(client, signer, {"name": "@alice"})
    assert response.status_code == 400
    assert response.json()["code"] == "charset"


def test_claim_conflicts(client, signer, other_signer):
    assert _claim(client, signer, {"name": "alice"}).status_code == 200
    response = _claim(client, other_signer, {"name": "ALICE"})
    assert response.status_code == 409
    assert response.json()["kind"] == "conflict"

    response = _claim(client, signer, {"name": "admin"})
    assert response.status_code == 403


def test_nostr_json(client, signer, other_signer):
    _claim(client, signer, {"name": "alice", "relays": ["wss://relay.example.com"]})
    _claim(client, other_signer, {"name": "bob"})

    response = client.get("/.well-known/nostr.json")
    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "public, max-age=60"
    data = response.json()
    assert data["names"] == {"alice": signer.pubkey, "bob": other_signer.pubkey}
    assert data["relays"] == {signer.pubkey: ["wss://relay.example.com"]}

    single = client.get("/.well-known/nostr.json", params={"name": "Alice"}).json()
    assert single["names"] == {"alice": signer.pubkey}

    assert client.get("/.well-known/nostr.json", params={"name": "ghost"}).json() == {"names": {}}
    assert client.get("/.well-known/nostr.json", params={"name": "bad_name"}).json() == {"names": {}}


def test_nostr_json_on_profile_subdomain(client, signer):
    _claim(client, signer, {"name": "alice", "relays": ["wss://relay.example.com"]})

    data = client.get("/.well-known/nostr.json", headers={"host": "alice.example.com"}).json()
    assert data == {"names": {"_": signer.pubkey}, "relays": {signer.pubkey: ["wss://relay.example.com"]}}

    assert client.get("/.well-known/nostr.json", headers={"host": "ghost.example.com"}).json() == {"names": {}}

    site = client.get("/.well-known/nostr.json", headers={"host": "www.example.com"}).json()
    assert site["names"] == {"alice": signer.pubkey}


def test_revoked_name_leaves_nostr_json(client, signer, operator_headers):
    _claim(client, signer, {"name": "alice"})
    response = client.post("/api/admin/username/revoke", json={"name": "alice"}, headers=operator_headers)
    assert response.status_code == 200
    assert client.get("/.well-known/nostr.json").json() == {"names": {}}


def test_check_and_by_pubkey(client, signer):
    check = client.get("/api/username/check/alice").json()
    assert check["available"] is True
    assert check["price"] == 2000

    assert client.get(f"/api/username/by-pubkey/{signer.pubkey}").json() == {"ok": True, "found": False}

    _claim(client, signer, {"name": "alice"})
    assert client.get("/api/username/check/Alice").json()["available"] is False

    found = client.get(f"/api/username/by-pubkey/{signer.pubkey.upper()}").json()
    assert found["found"] is True
    assert found["canonical"] == "alice"

    assert client.get("/api/username/by-pubkey/nothex").status_code == 400


def test_admin_requires_operator_header(client):
    for method, path in [
        ("get", "/api/admin/usernames/search"),
        ("post", "/api/admin/username/reserve"),
        ("get", "/api/admin/does-not-exist"),
    ]:
        response = getattr(client, method)(path)
        assert response.status_code == 403
        assert response.json()["kind"] == "forbidden"


def test_admin_operator_allow_list(client, monkeypatch):
    monkeypatch.setattr(config, "OPERATOR_EMAILS", ["boss@example.com"])
    denied = client.get("/api/admin/reserved-words", headers={config.OPERATOR_HEADER: "ops@example.com"})
    assert denied.status_code == 403
    assert denied.json()["code"] == "operator_not_allowed"

    allowed = client.get("/api/admin/reserved-words", headers={config.OPERATOR_HEADER: "Boss@example.com"})
    assert allowed.status_code == 200


def test_admin_lifecycle(client, signer, operator_headers):
    reserve = client.post("/api/admin/username/reserve", json={"name": "VIP", "reason": "Partner"}, headers=operator_headers)
    assert reserve.status_code == 200
    assert reserve.json()["canonical"] == "vip"
    assert _claim(client, signer, {"name": "vip"}).status_code == 403

    assign = client.post(
        "/api/admin/username/assign", json={"name": "vip", "pubkey": signer.pubkey}, headers=operator_headers
    )
    assert assign.status_code == 200
    assert assign.json()["status"] == "active"

    details = client.get("/api/admin/username/VIP", headers=operator_headers).json()["username"]
    assert details["pubkey"] == signer.pubkey
    assert details["npub"].startswith("npub1")

    notes = client.put("/api/admin/username/vip/notes", json={"notes": "Verified"}, headers=operator_headers)
    assert notes.status_code == 200

    burn = client.post("/api/admin/username/revoke", json={"name": "vip", "burn": True}, headers=operator_headers)
    assert burn.json()["status"] == "burned"
    assert _claim(client, signer, {"name": "vip"}).status_code == 403

    again = client.post("/api/admin/username/assign", json={"name": "vip", "pubkey": signer.pubkey}, headers=operator_headers)
    assert again.status_code == 403

    missing = client.post("/api/admin/username/revoke", json={"name": "ghost"}, headers=operator_headers)
    assert missing.status_code == 404


def test_admin_search(client, signer, operator_headers):
    _claim(client, signer, {"name": "alice"})
    client.post("/api/admin/username/reserve", json={"name": "alicia"}, headers=operator_headers)

    data = client.get("/api/admin/usernames/search", params={"q": "ali"}, headers=operator_headers).json()
    assert data["pagination"]["total"] == 2

    active = client.get(
        "/api/admin/usernames/search", params={"q": "ali", "status": "active"}, headers=operator_headers
    ).json()
    assert [r["canonical"] for r in active["results"]] == ["alice"]

    bad = client.get("/api/admin/usernames/search", params={"status": "gone"}, headers=operator_headers)
    assert bad.status_code == 400


def test_admin_bulk_reserve(client, operator_headers):
    response = client.post(
        "/api/admin/username/bulk-reserve",
        json={"names": "one, @two\nthree bad_name", "reason": "Launch"},
        headers=operator_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 4
    assert data["succeeded"] == 3
    assert [r["ok"] for r in data["results"]] == [True, True, True, False]

    too_many = client.post(
        "/api/admin/username/bulk-reserve",
        json={"names": [f"n{i}" for i in range(1001)]},
        headers=operator_headers,
    )
    assert too_many.status_code == 400


def test_admin_reserved_words(client, signer, operator_headers):
    added = client.post(
        "/api/admin/reserved-words", json={"word": "Partner", "category": "brand"}, headers=operator_headers
    )
    assert added.status_code == 200
    assert added.json()["word"] == "partner"

    duplicate = client.post("/api/admin/reserved-words", json={"word": "partner"}, headers=operator_headers)
    assert duplicate.status_code == 409

    words = client.get("/api/admin/reserved-words", params={"category": "brand"}, headers=operator_headers)
    assert [w["word"] for w in words.json()["words"]] == ["partner"]
    assert _claim(client, signer, {"name": "partner"}).status_code == 403

    assert client.delete("/api/admin/reserved-words/partner", headers=operator_headers).status_code == 200
    assert client.delete("/api/admin/reserved-words/partner", headers=operator_headers).status_code == 404
    assert _claim(client, signer, {"name": "partner"}).status_code == 200


def test_reserve_and_confirm_flow(client, operator_headers, monkeypatch):
    monkeypatch.setattr("services.reservations.send_email", lambda *args: True)

    codes = client.post("/api/admin/invite-codes", json={"codes": ["WELCOME"]}, headers=operator_headers)
    assert codes.json()["codes"] == ["WELCOME"]

    reserve = client.post(
        "/api/username/reserve",
        json={"name": "Carol", "email": "carol.owner@mail.test", "invite_code": "WELCOME"},
    )
    assert reserve.status_code == 200
    assert reserve.json()["status"] == "pending_confirmation"

    listed = client.get("/api/admin/invite-codes", headers=operator_headers).json()["codes"]
    assert listed[0]["used_for"] == "carol"

    details = client.get("/api/admin/username/carol", headers=operator_headers).json()["username"]
    token = details["confirmation_token"]

    page = client.get("/confirm", params={"token": token})
    assert page.status_code == 200
    assert "text/html" in page.headers["content-type"]
    assert "carol.example.com" in page.text

    assert client.get("/confirm", params={"token": token}).status_code == 409
    assert client.get("/confirm", params={"token": "bogus"}).status_code == 404
    assert client.get("/confirm").status_code == 400


def test_reserve_requires_payment(client):
    response = client.post("/api/username/reserve", json={"name": "dave", "email": "dave@example.com"})
    assert response.status_code == 402
    assert response.json()["code"] == "payment_required"


def test_reserve_with_cashu(client, make_cashu_token):
    response = client.post(
        "/api/username/reserve",
        json={"name": "erin", "email": "erin@example.com", "token": make_cashu_token([2000])},
    )
    assert response.status_code == 200
    assert response.json()["payment_method"] == "cashu"


def test_reserve_body_validation(client):
    response = client.post("/api/username/reserve", json={"name": "dave"})
    assert response.status_code == 400
    data = response.json()
    assert data["ok"] is False
    assert data["kind"] == "validation_failed"
    assert data["code"] == "body"
    assert data["error"].startswith("email")


def test_admin_body_validation(client, operator_headers):
    response = client.post(
        "/api/admin/username/assign", json={"name": "vip", "pubkey": "zz"}, headers=operator_headers
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "validation_failed"

    page = client.get("/api/admin/usernames/search", params={"page": "x"}, headers=operator_headers)
    assert page.status_code == 400


def test_generated_invite_codes(client, operator_headers):
    response = client.post("/api/admin/invite-codes", json={"count": 3}, headers=operator_headers)
    assert len(response.json()["codes"]) == 3
    unused = client.get("/api/admin/invite-codes", params={"unused": "true"}, headers=operator_headers)
    assert len(unused.json()["codes"]) == 3
