"""Tiered username pricing in sats, by name length with a premium override.

Registration is kept cheap; renewal is deliberately higher to discourage
squatting. Either table can be overridden with a JSON object such as
``{"1-2":10000,"3":5000,"4-5":2000,"6+":1000,"premium":10000}``; anything
that does not parse to an object is ignored and the defaults apply.
"""

import json
import logging

logger = logging.getLogger(__name__)

DEFAULT_PRICES = {
    "1-2": 10000,
    "3": 5000,
    "4-5": 2000,
    "6+": 1000,
    "premium": 10000,
}

DEFAULT_RENEWAL_PRICES = {
    "1-2": 50000,
    "3": 20000,
    "4-5": 5000,
    "6+": 2000,
    "premium": 100000,
}

PREMIUM_NAMES = frozenset({
    # music / creative
    "music", "dance", "art", "video", "film", "photo", "sound", "beat",
    "remix", "loop", "live", "sing", "play", "band", "song", "audio",
    # social
    "love", "follow", "share", "like", "viral", "trend", "famous", "star",
    "fan", "crew", "squad", "vibe", "mood", "real", "legend",
    # tech / crypto
    "bitcoin", "crypto", "nostr", "relay", "lightning", "cashu", "zap",
    "code", "hack", "dev", "app", "web", "ai", "bot",
    # platform
    "vine", "divine", "creator", "comedy", "funny", "lol",
    # generic high-value
    "admin", "support", "help", "official", "news", "shop", "store",
    "money", "cash", "pay", "gold", "king", "queen", "boss", "god",
})


def _load_table(defaults: dict, override_json: str | None) -> dict:
    if not override_json:
        return defaults
    try:
        override = json.loads(override_json)
    except ValueError:
        logger.warning("Ignoring malformed price override JSON")
        return defaults
    if not isinstance(override, dict):
        logger.warning("Ignoring price override that is not a JSON object")
        return defaults
    table = dict(defaults)
    for tier, price in override.items():
        if tier in defaults and isinstance(price, int) and not isinstance(price, bool) and price >= 0:
            table[tier] = price
    return table


def _tier(name_canonical: str) -> str:
    if name_canonical in PREMIUM_NAMES:
        return "premium"
    length = len(name_canonical)
    if length <= 2:
        return "1-2"
    if length == 3:
        return "3"
    if length <= 5:
        return "4-5"
    return "6+"


def is_premium_name(name_canonical: str) -> bool:
    return name_canonical in PREMIUM_NAMES


def get_price_table(price_json: str | None = None) -> dict:
    return _load_table(DEFAULT_PRICES, price_json)


def get_registration_price(name_canonical: str, price_json: str | None = None) -> int:
    return _load_table(DEFAULT_PRICES, price_json)[_tier(name_canonical)]


def get_renewal_price(name_canonical: str, renewal_price_json: str | None = None) -> int:
    return _load_table(DEFAULT_RENEWAL_PRICES, renewal_price_json)[_tier(name_canonical)]
