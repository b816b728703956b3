import pytest

from core.canonical import canonicalize, normalize_pubkey, validate_email, validate_relays
from core.errors import ValidationFailed
from core.nostr import convert_hex_to_npub

PUBKEY = "a" * 64


def _code(raw):
    with pytest.raises(ValidationFailed) as exc_info:
        canonicalize(raw)
    return exc_info.value.code


def test_ascii_name_lowercased_display_kept():
    name = canonicalize("  Alice ")
    assert name.display == "Alice"
    assert name.canonical == "alice"


def test_case_variants_share_canonical():
    assert canonicalize("ALICE").canonical == canonicalize("alice").canonical


def test_digits_and_inner_hyphens_allowed():
    assert canonicalize("vine-2024").canonical == "vine-2024"
    assert canonicalize("123").canonical == "123"


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_empty_name_required(raw):
    assert _code(raw) == "required"


def test_length_limits():
    assert canonicalize("a" * 63).canonical == "a" * 63
    assert _code("a" * 64) == "length"


@pytest.mark.parametrize(
    "raw, code",
    [
        ("foo_bar", "underscore"),
        ("foo.bar", "dot"),
        ("foo bar", "space"),
        ("foo\tbar", "space"),
        ("party\U0001F600", "emoji"),
        ("love❤", "emoji"),
        ("\u0301abc", "combining_mark"),
        ("foo-\u0301bar", "combining_mark"),
        ("foo!", "charset"),
        ("a@b", "charset"),
    ],
)
def test_character_screening(raw, code):
    assert _code(raw) == code


def test_underscore_reported_before_other_problems():
    assert _code("a_b.c d") == "underscore"


@pytest.mark.parametrize("raw", ["-foo", "foo-", "-"])
def test_hyphen_edges_rejected(raw):
    assert _code(raw) == "hyphen_edge"


def test_hyphens_in_third_and_fourth_position_rejected():
    assert _code("ab--cd") == "hyphen_position"


def test_unicode_name_encoded_to_ace():
    name = canonicalize("Bücher")
    assert name.display == "Bücher"
    assert name.canonical == "xn--bcher-kva"


def test_non_latin_script_encoded():
    assert canonicalize("日本").canonical == "xn--wgv71a"
    assert canonicalize("café").canonical == "xn--caf-dma"


def test_valid_ace_input_accepted_as_is():
    name = canonicalize("XN--BCHER-KVA")
    assert name.canonical == "xn--bcher-kva"


@pytest.mark.parametrize("raw", ["Alice", "Bücher", "日本", "café", "xn--bcher-kva", "vine-2024"])
def test_canonicalization_is_idempotent(raw):
    canonical = canonicalize(raw).canonical
    assert canonicalize(canonical).canonical == canonical


def test_encoded_form_too_long():
    spread = "".join(chr(0x4E00 + i * 97) for i in range(40))
    assert _code(spread) == "length"


def test_relays_optional():
    assert validate_relays(None) is None
    assert validate_relays([]) == []


def test_relays_accepted():
    relays = ["wss://relay.example.com", "wss://nos.lol"]
    assert validate_relays(relays) == relays


@pytest.mark.parametrize(
    "relays",
    [
        "wss://relay.example.com",
        ["https://relay.example.com"],
        ["wss://"],
        [42],
        ["wss://" + "r" * 200],
        ["wss://relay.example.com"] * 51,
    ],
)
def test_bad_relays_rejected(relays):
    with pytest.raises(ValidationFailed):
        validate_relays(relays)


def test_normalize_pubkey_accepts_hex_and_npub():
    assert normalize_pubkey(PUBKEY.upper()) == PUBKEY
    assert normalize_pubkey(convert_hex_to_npub(PUBKEY)) == PUBKEY


@pytest.mark.parametrize("value", ["", "abc", "npub1invalid", "g" * 64])
def test_normalize_pubkey_rejects_garbage(value):
    with pytest.raises(ValidationFailed) as exc_info:
        normalize_pubkey(value)
    assert exc_info.value.code == "pubkey"


def test_validate_email():
    assert validate_email(" Alice@Example.COM ") == "alice@example.com"
    for bad in ["", "alice", "alice@", "a b@example.com"]:
        with pytest.raises(ValidationFailed):
            validate_email(bad)
