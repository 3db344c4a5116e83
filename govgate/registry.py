"""
Capability Registry Interfaces

The role/capability registry is an external collaborator. The gate only
sees the surface below; the in-memory implementation in govgate.memory
satisfies it for tests and the devnet.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from govgate.identity import ZERO_ADDRESS

# Passed as eligibility/toggle when a token delegates neither.
NO_DELEGATE = ZERO_ADDRESS


@dataclass
class BatchResult:
    ok: bool
    reason: str = ""


@runtime_checkable
class AuthorizationProvider(Protocol):
    def is_holder(self, address: str, token_id: int) -> bool: ...


@runtime_checkable
class CapabilityRegistry(AuthorizationProvider, Protocol):
    def create_token(
        self,
        parent: int,
        label: str,
        max_supply: int = 1,
        eligibility: str = NO_DELEGATE,
        toggle: str = NO_DELEGATE,
        mutable: bool = True,
    ) -> int: ...

    def get_next_child_id(self, parent: int) -> int: ...

    def parent_of(self, token_id: int) -> int: ...

    def is_descendant(self, token_id: int, ancestor: int) -> bool: ...

    def set_toggle_authority(self, token_id: int, authority: str) -> None: ...

    def set_active(self, token_id: int, active: bool) -> None: ...

    def apply_batch(self, entries: list[bytes]) -> BatchResult: ...
