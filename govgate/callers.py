"""
Caller Authentication

Maps gateway API keys to caller addresses. ``identities.json`` lists every
known caller with the SHA-256 fingerprint of its key; the raw key is never
stored. ``grants`` name the devnet capabilities a caller starts with.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
from dataclasses import dataclass, field
from typing import Optional

from govgate.identity import normalize_address


# ---------------------------------------------------------------------------
# Domain types
# ---------------------------------------------------------------------------

@dataclass
class Caller:
    name: str
    address: str
    status: str
    key_fingerprint: Optional[str] = None
    grants: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_IDENTITIES_PATH = os.environ.get(
    "GOVGATE_IDENTITIES_PATH",
    os.path.join(os.path.dirname(__file__), "identities.json"),
)
_cache: dict[str, Caller] | None = None


def load_callers(path: str | None = None) -> dict[str, Caller]:
    """Load the caller allowlist. The default path is cached."""
    global _cache
    if path is None and _cache is not None:
        return _cache
    with open(path or _IDENTITIES_PATH, "r") as f:
        data = json.load(f)
    result: dict[str, Caller] = {}
    for name, info in data["callers"].items():
        result[name] = Caller(
            name=name,
            address=normalize_address(info["address"]),
            status=info["status"],
            key_fingerprint=info.get("key_fingerprint"),
            grants=list(info.get("grants", [])),
        )
    if path is None:
        _cache = result
    return result


# ---------------------------------------------------------------------------
# API-key authentication
# ---------------------------------------------------------------------------

def hash_api_key(raw_key: str) -> str:
    """Return ``sha256:<hex>`` fingerprint of a raw API key."""
    digest = hashlib.sha256(raw_key.encode()).hexdigest()
    return f"sha256:{digest}"


def authenticate(bearer_token: str, callers: dict[str, Caller]) -> Caller:
    """Resolve a Bearer token to an active Caller.

    Compares fingerprints timing-safe. Raises ``ValueError`` when nothing
    matches or the match is not active.
    """
    token_fp = hash_api_key(bearer_token)
    for caller in callers.values():
        if caller.key_fingerprint is None:
            continue
        if hmac.compare_digest(token_fp, caller.key_fingerprint):
            if caller.status != "active":
                raise ValueError(f"Caller {caller.name} is {caller.status}")
            return caller
    raise ValueError("Invalid API key: no matching caller found")
