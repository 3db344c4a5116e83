"""
In-Memory Collaborators

Process-local implementations of the capability registry, the vault and a
fungible token. The devnet runs on them and tests use them to drive
failure paths deterministically.

Registry ids are hierarchical 256-bit integers: the top 32 bits name a
top-level domain, followed by fourteen 16-bit levels. A token's parent is
its id with the lowest non-zero level cleared; a top-level token is its
own parent.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from govgate.identity import NATIVE_ASSET, normalize_address, word
from govgate.registry import NO_DELEGATE, BatchResult
from govgate.vault import TRANSFER_SELECTOR, decode_transfer

DOMAIN_SHIFT = 224
LEVEL_BITS = 16
MAX_LEVELS = 14
_LEVEL_MASK = (1 << LEVEL_BITS) - 1


def _level_shift(level: int) -> int:
    return DOMAIN_SHIFT - LEVEL_BITS * level


def token_depth(token_id: int) -> int:
    for level in range(MAX_LEVELS, 0, -1):
        if (token_id >> _level_shift(level)) & _LEVEL_MASK:
            return level
    return 0


def encode_registry_call(op: str, **args: Any) -> bytes:
    """Build one batch entry understood by InMemoryRegistry.apply_batch."""
    body = {"op": op}
    for key, value in args.items():
        body[key] = str(value) if isinstance(value, int) and not isinstance(value, bool) else value
    return json.dumps(body, sort_keys=True).encode()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@dataclass
class TokenRecord:
    token_id: int
    parent: int
    label: str
    max_supply: int
    eligibility: str
    toggle: str
    mutable: bool
    active: bool = True
    holders: set[str] = field(default_factory=set)


class InMemoryRegistry:
    """Capability registry. *operator* is the address calling into it (the gate)."""

    def __init__(self, operator: str):
        self.operator = normalize_address(operator)
        self.tokens: dict[int, TokenRecord] = {}
        self.children: dict[int, int] = {}
        self._domains = 0
        self.batches_applied = 0

    # -- hierarchy ----------------------------------------------------------

    def create_domain(self, label: str, holder: Optional[str] = None) -> int:
        self._domains += 1
        token_id = self._domains << DOMAIN_SHIFT
        self.tokens[token_id] = TokenRecord(
            token_id, token_id, label, 1, NO_DELEGATE, NO_DELEGATE, False,
        )
        if holder is not None:
            self.mint(token_id, holder)
        return token_id

    def parent_of(self, token_id: int) -> int:
        depth = token_depth(token_id)
        if depth == 0:
            return token_id
        return token_id & ~(_LEVEL_MASK << _level_shift(depth))

    def get_next_child_id(self, parent: int) -> int:
        self._record(parent)
        depth = token_depth(parent) + 1
        if depth > MAX_LEVELS:
            raise ValueError(f"token {parent:#x} is at maximum depth")
        slot = self.children.get(parent, 0) + 1
        if slot > _LEVEL_MASK:
            raise ValueError(f"token {parent:#x} has no free child slots")
        return parent | (slot << _level_shift(depth))

    def is_descendant(self, token_id: int, ancestor: int) -> bool:
        current = token_id
        while token_depth(current) > 0:
            current = self.parent_of(current)
            if current == ancestor:
                return True
        return False

    # -- tokens -------------------------------------------------------------

    def _record(self, token_id: int) -> TokenRecord:
        record = self.tokens.get(token_id)
        if record is None:
            raise KeyError(f"unknown token {token_id:#x}")
        return record

    def create_token(
        self,
        parent: int,
        label: str,
        max_supply: int = 1,
        eligibility: str = NO_DELEGATE,
        toggle: str = NO_DELEGATE,
        mutable: bool = True,
    ) -> int:
        self._record(parent)
        token_id = self.get_next_child_id(parent)
        self.children[parent] = self.children.get(parent, 0) + 1
        self.tokens[token_id] = TokenRecord(
            token_id=token_id,
            parent=parent,
            label=label,
            max_supply=max_supply,
            eligibility=normalize_address(eligibility),
            toggle=normalize_address(toggle),
            mutable=mutable,
        )
        return token_id

    def mint(self, token_id: int, holder: str) -> None:
        record = self._record(token_id)
        if len(record.holders) >= record.max_supply:
            raise ValueError(f"token {token_id:#x} is at max supply")
        record.holders.add(normalize_address(holder))

    def is_holder(self, address: str, token_id: int) -> bool:
        record = self.tokens.get(token_id)
        if record is None or not record.active:
            return False
        return address.lower() in record.holders

    def is_active(self, token_id: int) -> bool:
        return self._record(token_id).active

    def set_toggle_authority(self, token_id: int, authority: str) -> None:
        record = self._record(token_id)
        if not record.mutable:
            raise PermissionError(f"token {token_id:#x} is immutable")
        record.toggle = normalize_address(authority)

    def set_active(self, token_id: int, active: bool) -> None:
        record = self._record(token_id)
        if record.toggle != self.operator:
            raise PermissionError(f"{self.operator} is not the toggle for {token_id:#x}")
        record.active = bool(active)

    # -- batch --------------------------------------------------------------

    def apply_batch(self, entries: list[bytes]) -> BatchResult:
        """Apply every entry or none of them."""
        saved = (copy.deepcopy(self.tokens), dict(self.children), self._domains)
        try:
            for entry in entries:
                self._apply_entry(json.loads(entry))
        except Exception as exc:
            self.tokens, self.children, self._domains = saved
            return BatchResult(ok=False, reason=str(exc))
        self.batches_applied += 1
        return BatchResult(ok=True)

    def _apply_entry(self, call: dict[str, Any]) -> None:
        op = call.get("op")
        if op == "create_token":
            self.create_token(
                int(call["parent"]),
                call.get("label", ""),
                max_supply=int(call.get("max_supply", 1)),
                mutable=call.get("mutable", True),
            )
        elif op == "mint":
            self.mint(int(call["token_id"]), call["holder"])
        elif op == "set_active":
            self._record(int(call["token_id"])).active = bool(call["active"])
        elif op == "fail":
            raise RuntimeError(call.get("reason", "forced failure"))
        else:
            raise ValueError(f"unknown registry op {op!r}")


# ---------------------------------------------------------------------------
# Token
# ---------------------------------------------------------------------------

class InMemoryToken:
    """Fungible token. *mode* controls what transfer() returns:

    standard   one word, true
    no_return  empty return data
    false      one word, false; nothing moves
    malformed  a single byte
    """

    def __init__(self, address: str, mode: str = "standard"):
        self.address = normalize_address(address)
        self.mode = mode
        self.balances: dict[str, int] = {}

    def balance_of(self, holder: str) -> int:
        return self.balances.get(holder.lower(), 0)

    def mint(self, holder: str, amount: int) -> None:
        holder = normalize_address(holder)
        self.balances[holder] = self.balance_of(holder) + amount

    def call(self, sender: str, data: bytes) -> tuple[bool, bytes]:
        if data[:4] != TRANSFER_SELECTOR:
            return False, b""
        recipient, amount = decode_transfer(data)
        if self.mode == "false":
            return True, word(0)
        if self.balance_of(sender) < amount:
            return False, b"insufficient balance"
        self.balances[sender.lower()] = self.balance_of(sender) - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        if self.mode == "no_return":
            return True, b""
        if self.mode == "malformed":
            return True, b"\x01"
        return True, word(1)


# ---------------------------------------------------------------------------
# Vault
# ---------------------------------------------------------------------------

class InMemoryVault:
    """Multi-signature vault reduced to its module-call surface."""

    def __init__(self, address: str, tokens: Optional[dict[str, InMemoryToken]] = None):
        self.address = normalize_address(address)
        self.modules: set[str] = set()
        self.native_balance = 0
        self.native_paid: dict[str, int] = {}
        self.tokens = {normalize_address(k): v for k, v in (tokens or {}).items()}
        self.on_call: Optional[Callable[[str, int, bytes], None]] = None

    def enable_module(self, module: str) -> None:
        self.modules.add(normalize_address(module))

    def disable_module(self, module: str) -> None:
        self.modules.discard(normalize_address(module))

    def execute_from_module(
        self, module: str, to: str, value: int, data: bytes,
    ) -> tuple[bool, bytes]:
        if normalize_address(module) not in self.modules:
            raise PermissionError("GS104: method can only be called from an enabled module")
        if self.on_call is not None:
            self.on_call(to, value, data)

        to = normalize_address(to)
        if not data:
            if value > self.native_balance:
                return False, b""
            self.native_balance -= value
            self.native_paid[to] = self.native_paid.get(to, 0) + value
            return True, b""

        token = self.tokens.get(to)
        if token is None or to == NATIVE_ASSET:
            return False, b"no contract at target"
        return token.call(self.address, data)
