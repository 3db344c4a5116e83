"""
Proposal Identity & Batch Validation

Computes the deterministic proposal id and validates the shape of the
batch-call payload a proposal carries. Everything here is pure: the same
inputs always produce the same id, and changing any single field changes it.

The id binds the chain, this gate and the registry, so an id computed for
one deployment can never be replayed against another. The submitter is part
of the preimage, so nobody can claim another submitter's id first.
"""

from __future__ import annotations

import hashlib
import re

from govgate.errors import InvalidAddress, InvalidBatch, ValueOutOfRange

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ZERO_ADDRESS = "0x" + "00" * 20
NATIVE_ASSET = ZERO_ADDRESS
ZERO_HASH = "0x" + "00" * 32

MAX_AMOUNT = 2**88 - 1
MAX_UINT256 = 2**256 - 1

# multicall(bytes[])
BATCH_CALL_SELECTOR = bytes.fromhex("ac9650d8")

_ID_DOMAIN = b"govgate.proposal.v1"
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_WORD = 32


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------

def normalize_address(value: str) -> str:
    """Return the lower-case ``0x`` form of *value*. Raises InvalidAddress."""
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise InvalidAddress(value)
    return value.lower()


def require_range(field: str, value: int, maximum: int = MAX_UINT256) -> int:
    """Return *value* if ``0 <= value <= maximum``; raise ValueOutOfRange otherwise."""
    if not 0 <= value <= maximum:
        raise ValueOutOfRange(field, value, maximum)
    return value


def word(value: int) -> bytes:
    """Encode an unsigned int as one 32-byte big-endian word."""
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"value {value} does not fit in a word")
    return value.to_bytes(_WORD, "big")


def _address_word(value: str) -> bytes:
    return word(int(normalize_address(value), 16))


def _hash_word(value: str) -> bytes:
    if not isinstance(value, str) or not value.startswith("0x") or len(value) != 66:
        raise ValueError(f"not a 32-byte hash: {value!r}")
    return bytes.fromhex(value[2:])


def _read_word(data: bytes, offset: int) -> int:
    if offset < 0 or offset + _WORD > len(data):
        raise InvalidBatch(f"word at {offset} out of range")
    return int.from_bytes(data[offset:offset + _WORD], "big")


# ---------------------------------------------------------------------------
# Proposal id
# ---------------------------------------------------------------------------

def compute_proposal_id(
    *,
    chain_id: int,
    gate_address: str,
    registry_address: str,
    submitter: str,
    funding_amount: int,
    funding_asset: str,
    timelock: int,
    vault: str,
    recipient_id: int,
    batch_hash: str,
    salt: int,
) -> str:
    """Return the ``0x``-prefixed SHA-256 proposal id."""
    preimage = b"".join([
        _ID_DOMAIN,
        word(chain_id),
        _address_word(gate_address),
        _address_word(registry_address),
        _address_word(submitter),
        word(funding_amount),
        _address_word(funding_asset),
        word(timelock),
        _address_word(vault),
        word(recipient_id),
        _hash_word(batch_hash),
        word(salt),
    ])
    return "0x" + hashlib.sha256(preimage).hexdigest()


# ---------------------------------------------------------------------------
# Batch payload codec
# ---------------------------------------------------------------------------

def batch_hash(payload: bytes) -> str:
    """Hash of the raw payload, or ZERO_HASH for an empty one."""
    if not payload:
        return ZERO_HASH
    return "0x" + hashlib.sha256(payload).hexdigest()


def encode_batch(entries: list[bytes]) -> bytes:
    """ABI-encode *entries* as ``multicall(bytes[])`` calldata."""
    heads: list[bytes] = []
    tails: list[bytes] = []
    cursor = _WORD * len(entries)
    for entry in entries:
        padded = entry + b"\x00" * (-len(entry) % _WORD)
        chunk = word(len(entry)) + padded
        heads.append(word(cursor))
        tails.append(chunk)
        cursor += len(chunk)
    return (
        BATCH_CALL_SELECTOR
        + word(_WORD)
        + word(len(entries))
        + b"".join(heads)
        + b"".join(tails)
    )


def decode_batch(payload: bytes) -> list[bytes]:
    """Decode a non-empty payload into its call entries.

    Raises InvalidBatch when the selector is wrong or the ``bytes[]``
    encoding does not fit inside the payload.
    """
    if len(payload) < 4:
        raise InvalidBatch("payload shorter than a selector")
    if payload[:4] != BATCH_CALL_SELECTOR:
        raise InvalidBatch(f"unexpected selector 0x{payload[:4].hex()}")

    args = payload[4:]
    array_offset = _read_word(args, 0)
    count = _read_word(args, array_offset)
    base = array_offset + _WORD
    if count > (len(args) - base) // _WORD:
        raise InvalidBatch(f"entry count {count} exceeds payload")

    entries: list[bytes] = []
    for i in range(count):
        start = base + _read_word(args, base + i * _WORD)
        length = _read_word(args, start)
        end = start + _WORD + length
        if end > len(args):
            raise InvalidBatch(f"entry {i} overruns payload")
        entries.append(args[start + _WORD:end])
    return entries


def validate_batch(payload: bytes) -> str:
    """Accept an empty or well-formed payload and return its hash."""
    if not payload:
        return ZERO_HASH
    decode_batch(payload)
    return batch_hash(payload)


def verify_batch(payload: bytes, expected_hash: str) -> bool:
    """True when *payload* decodes and hashes to *expected_hash*."""
    try:
        return validate_batch(payload) == expected_hash.lower()
    except InvalidBatch:
        return False
