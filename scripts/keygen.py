#!/usr/bin/env python3
"""
Governance Gate API Key Generator

Generates a new caller API key with a `ggk_` prefix and prints:
  - The raw key (give to the caller, store securely)
  - The SHA-256 fingerprint (store in identities.json)
  - A ready-to-paste JSON snippet for identities.json

Usage:  python scripts/keygen.py <address> [name] [grant ...]
        name defaults to "agent:caller"; grants default to none
"""

from __future__ import annotations

import hashlib
import json
import re
import secrets
import sys


def generate_key() -> str:
    """Return a `ggk_` prefixed key with 32 bytes of URL-safe randomness."""
    return "ggk_" + secrets.token_urlsafe(32)


def fingerprint(raw_key: str) -> str:
    """Return `sha256:<hex>` fingerprint."""
    return "sha256:" + hashlib.sha256(raw_key.encode()).hexdigest()


def main():
    if len(sys.argv) < 2 or not re.match(r"^0x[0-9a-fA-F]{40}$", sys.argv[1]):
        print(__doc__)
        sys.exit(2)
    address = sys.argv[1].lower()
    name = sys.argv[2] if len(sys.argv) > 2 else "agent:caller"
    grants = sys.argv[3:]

    raw = generate_key()
    fp = fingerprint(raw)

    print()
    print("=== Governance Gate API Key ===")
    print()
    print(f"  Caller:      {name}")
    print(f"  Address:     {address}")
    print(f"  Raw Key:     {raw}")
    print(f"  Fingerprint: {fp}")
    print()
    print("--- Paste into govgate/identities.json under \"callers\" ---")
    entry = {name: {
        "address": address,
        "status": "active",
        "key_fingerprint": fp,
        "grants": grants,
    }}
    print(json.dumps(entry, indent=2))
    print()


if __name__ == "__main__":
    main()
