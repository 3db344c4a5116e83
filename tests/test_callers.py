"""
Caller Authentication Test Suite
"""

from __future__ import annotations

import json

import pytest

from govgate.callers import authenticate, hash_api_key, load_callers
from govgate.errors import InvalidAddress


def test_default_allowlist():
    callers = load_callers()
    assert callers["human:owner"].grants == ["owner", "escalator"]
    assert callers["agent:retired"].key_fingerprint is None
    assert load_callers() is callers


def test_authenticate_known_key():
    caller = authenticate("owner-key-change-me", load_callers())
    assert caller.name == "human:owner"
    assert caller.address == "0x1000000000000000000000000000000000000001"


def test_authenticate_unknown_key():
    with pytest.raises(ValueError):
        authenticate("guess", load_callers())


def _write(tmp_path, callers):
    path = tmp_path / "identities.json"
    path.write_text(json.dumps({"callers": callers}))
    return str(path)


def test_suspended_caller(tmp_path):
    path = _write(tmp_path, {"agent:old": {
        "address": "0x2000000000000000000000000000000000000001",
        "status": "suspended",
        "key_fingerprint": hash_api_key("old-key"),
    }})
    with pytest.raises(ValueError) as exc:
        authenticate("old-key", load_callers(path))
    assert "suspended" in str(exc.value)


def test_addresses_are_normalized(tmp_path):
    path = _write(tmp_path, {"agent:x": {
        "address": "0x20000000000000000000000000000000000000AB",
        "status": "active",
    }})
    assert load_callers(path)["agent:x"].address.endswith("ab")


def test_bad_address_rejected(tmp_path):
    path = _write(tmp_path, {"agent:x": {"address": "0x12", "status": "active"}})
    with pytest.raises(InvalidAddress):
        load_callers(path)
