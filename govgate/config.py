"""
Gate Configuration

GateSettings are fixed at deployment (chain, addresses, branch roots).
GateConfig holds the values the owner may change later: role pointers,
pause flags and the default vault. ConfigController owns the one GateConfig
instance; the state machine and withdrawal gateway receive the same object
and only read it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

from govgate.errors import Unauthorized
from govgate.identity import ZERO_ADDRESS, normalize_address, require_range
from govgate.registry import AuthorizationProvider
from govgate.store import GateStore

# Executor pointer value that opens execution to anyone. Never a real token
# id: real ids always carry a non-zero top-level domain.
PUBLIC_EXECUTION = 1


def _env_int(name: str, default: str) -> int:
    return int(os.environ.get(name, default), 0)


@dataclass(frozen=True)
class GateSettings:
    chain_id: int
    gate_address: str
    registry_address: str
    owner_token: int
    approver_branch: int
    reserved_branch: int = 0  # 0 = any parent may be reserved under

    def __post_init__(self):
        object.__setattr__(self, "gate_address", normalize_address(self.gate_address))
        object.__setattr__(self, "registry_address", normalize_address(self.registry_address))

    @classmethod
    def from_env(cls) -> "GateSettings":
        return cls(
            chain_id=_env_int("GOVGATE_CHAIN_ID", "31337"),
            gate_address=os.environ.get(
                "GOVGATE_GATE_ADDRESS", "0x00000000000000000000000000000000000a7e01"
            ),
            registry_address=os.environ.get(
                "GOVGATE_REGISTRY_ADDRESS", "0x00000000000000000000000000000000000a7e02"
            ),
            owner_token=_env_int("GOVGATE_OWNER_TOKEN", "0"),
            approver_branch=_env_int("GOVGATE_APPROVER_BRANCH", "0"),
            reserved_branch=_env_int("GOVGATE_RESERVED_BRANCH", "0"),
        )


@dataclass
class GateConfig:
    proposer_token: int = 0
    executor_token: int = PUBLIC_EXECUTION
    escalator_token: int = 0
    default_vault: str = ZERO_ADDRESS
    proposals_paused: bool = False
    withdrawals_paused: bool = False

    @property
    def public_execution(self) -> bool:
        return self.executor_token == PUBLIC_EXECUTION

    def to_dict(self) -> dict[str, Any]:
        return {
            "proposer_token": str(self.proposer_token),
            "executor_token": str(self.executor_token),
            "escalator_token": str(self.escalator_token),
            "default_vault": self.default_vault,
            "proposals_paused": self.proposals_paused,
            "withdrawals_paused": self.withdrawals_paused,
        }


_FIELDS = {f.name for f in fields(GateConfig)}


def _jsonable(value: Any) -> Any:
    # token ids exceed JSON's safe integer range
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _normalize(name: str, value: Any) -> Any:
    if name == "default_vault":
        return normalize_address(value)
    if name.endswith("_paused"):
        return bool(value)
    return require_range(name, value)


class ConfigController:
    """Owner-gated setters over the shared GateConfig."""

    def __init__(
        self,
        settings: GateSettings,
        config: GateConfig,
        authz: AuthorizationProvider,
        store: GateStore,
    ):
        self.settings = settings
        self.config = config
        self.authz = authz
        self.store = store

    def _require_owner(self, caller: str) -> None:
        if not self.authz.is_holder(caller, self.settings.owner_token):
            raise Unauthorized(caller, "owner", self.settings.owner_token)

    def set_proposer_token(self, caller: str, token_id: int) -> None:
        self.update(caller, proposer_token=token_id)

    def set_executor_token(self, caller: str, token_id: int) -> None:
        self.update(caller, executor_token=token_id)

    def set_escalator_token(self, caller: str, token_id: int) -> None:
        self.update(caller, escalator_token=token_id)

    def set_default_vault(self, caller: str, vault: str) -> None:
        self.update(caller, default_vault=vault)

    def set_proposals_paused(self, caller: str, paused: bool) -> None:
        self.update(caller, proposals_paused=paused)

    def set_withdrawals_paused(self, caller: str, paused: bool) -> None:
        self.update(caller, withdrawals_paused=paused)

    def update(self, caller: str, **changes: Any) -> None:
        """Change several fields at once.

        Unknown names raise KeyError and a bad value raises its fault before
        anything is applied; either every field changes or none does.
        """
        unknown = set(changes) - _FIELDS
        if unknown:
            raise KeyError(", ".join(sorted(unknown)))
        caller = normalize_address(caller)
        self._require_owner(caller)
        values = {name: _normalize(name, value) for name, value in changes.items()}

        with self.store.transaction():
            for name, value in values.items():
                self.store.emit(caller, "CONFIG_UPDATED", {
                    "field": name,
                    "previous": _jsonable(getattr(self.config, name)),
                    "value": _jsonable(value),
                })
            for name, value in values.items():
                setattr(self.config, name, value)
