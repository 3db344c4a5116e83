"""
Vault Interface & Transfer Encoding

The multi-signature vault is external. The gate instructs it through a
module-style call and never holds funds itself. This module also owns the
token-transfer calldata and the rules for reading a transfer's return data.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from govgate.errors import TransferMalformedReturn, TransferReturnedFalse
from govgate.identity import normalize_address, word

# transfer(address,uint256)
TRANSFER_SELECTOR = bytes.fromhex("a9059cbb")


@runtime_checkable
class Vault(Protocol):
    address: str

    def execute_from_module(
        self, module: str, to: str, value: int, data: bytes,
    ) -> tuple[bool, bytes]: ...


def encode_transfer(recipient: str, amount: int) -> bytes:
    return TRANSFER_SELECTOR + word(int(normalize_address(recipient), 16)) + word(amount)


def decode_transfer(data: bytes) -> tuple[str, int]:
    """Inverse of encode_transfer. Raises ValueError on foreign calldata."""
    if len(data) != 68 or data[:4] != TRANSFER_SELECTOR:
        raise ValueError("not transfer(address,uint256) calldata")
    recipient = "0x" + data[4 + 12:36].hex()
    amount = int.from_bytes(data[36:68], "big")
    return recipient, amount


def check_transfer_return(return_data: bytes) -> None:
    """Interpret a token transfer's return data.

    Empty return is success (tokens that return nothing). A single word is
    a boolean; zero means the token refused. Anything else is malformed.
    """
    if not return_data:
        return
    if len(return_data) != 32:
        raise TransferMalformedReturn(return_data)
    flag = int.from_bytes(return_data, "big")
    if flag == 0:
        raise TransferReturnedFalse()
    if flag != 1:
        raise TransferMalformedReturn(return_data)
