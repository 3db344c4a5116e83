"""
Governance Gate

Facade over the gate's components. Wires the shared store, ledger,
reentrancy guard and configuration into the state machine and withdrawal
gateway, and exposes every write and read the outside world uses.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Mapping, Optional

from govgate import identity
from govgate.audit import AuditSpine, MemoryAuditSpine
from govgate.capabilities import CapabilityTokenManager
from govgate.config import ConfigController, GateConfig, GateSettings
from govgate.execution import ExecutionEngine
from govgate.guard import ReentrancyGuard
from govgate.ledger import AllowanceLedger
from govgate.proposals import Proposal, ProposalState
from govgate.receipts import ExecutionReceipt, WithdrawalReceipt
from govgate.registry import AuthorizationProvider, CapabilityRegistry
from govgate.state_machine import ProposalStateMachine
from govgate.store import GateStore
from govgate.vault import Vault
from govgate.withdrawal import WithdrawalGateway


def system_clock() -> int:
    return int(time.time())


class GovernanceGate:
    def __init__(
        self,
        settings: GateSettings,
        config: GateConfig,
        registry: CapabilityRegistry,
        vaults: Mapping[str, Vault],
        audit: Optional[AuditSpine] = None,
        authz: Optional[AuthorizationProvider] = None,
        clock: Callable[[], int] = system_clock,
    ):
        self.settings = settings
        self.registry = registry
        self.authz = authz or registry
        self.audit = audit if audit is not None else MemoryAuditSpine()
        self.clock = clock

        self.store = GateStore(self.audit)
        self.ledger = AllowanceLedger(self.store)
        self.guard = ReentrancyGuard()
        self.controller = ConfigController(settings, config, self.authz, self.store)
        self.tokens = CapabilityTokenManager(registry, settings)
        self.engine = ExecutionEngine(self.store, self.ledger, registry)
        self.proposals = ProposalStateMachine(
            settings, self.config, self.authz, self.store,
            self.tokens, self.engine, self.guard, clock,
        )
        self.withdrawals = WithdrawalGateway(
            settings, self.config, self.authz, self.store,
            self.ledger, vaults, self.guard, clock,
        )

    @property
    def config(self) -> GateConfig:
        return self.controller.config

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def propose(self, caller: str, **kwargs: Any) -> str:
        return self.proposals.propose(caller, **kwargs)

    def approve(self, caller: str, proposal_id: str) -> int:
        return self.proposals.approve(caller, proposal_id)

    def execute(self, caller: str, proposal_id: str) -> ExecutionReceipt:
        return self.proposals.execute(caller, proposal_id)

    def approve_and_execute(self, caller: str, proposal_id: str) -> ExecutionReceipt:
        return self.proposals.approve_and_execute(caller, proposal_id)

    def escalate(self, caller: str, proposal_id: str) -> None:
        self.proposals.escalate(caller, proposal_id)

    def reject(self, caller: str, proposal_id: str) -> None:
        self.proposals.reject(caller, proposal_id)

    def cancel(self, caller: str, proposal_id: str) -> None:
        self.proposals.cancel(caller, proposal_id)

    def withdraw(
        self, caller: str, recipient_id: int, vault: str, asset: str, amount: int,
    ) -> WithdrawalReceipt:
        return self.withdrawals.withdraw(caller, recipient_id, vault, asset, amount)

    def update_config(self, caller: str, **changes: Any) -> GateConfig:
        """Owner-only; see ConfigController for the individual setters."""
        self.controller.update(caller, **changes)
        return self.config

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def allowance_of(self, vault: str, recipient_id: int, asset: str) -> int:
        return self.ledger.balance_of(vault, recipient_id, asset)

    def compute_proposal_id(
        self,
        submitter: str,
        funding_amount: int,
        funding_asset: str,
        timelock: int,
        recipient_id: int,
        batch: bytes = b"",
        salt: int = 0,
        vault: Optional[str] = None,
    ) -> str:
        """Id a propose call with these arguments would get right now."""
        return self.proposals.compute_id(
            submitter,
            funding_amount,
            funding_asset,
            timelock,
            vault or self.config.default_vault,
            recipient_id,
            identity.validate_batch(batch),
            salt,
        )

    def get_proposal_state(self, proposal_id: str) -> ProposalState:
        return self.proposals.state_of(proposal_id)

    def get_proposal(self, proposal_id: str) -> Optional[Proposal]:
        return self.store.get_proposal(proposal_id)

    def decode_batch(self, payload: bytes) -> list[bytes]:
        return identity.decode_batch(payload) if payload else []

    def verify_batch(self, payload: bytes, expected_hash: str) -> bool:
        return identity.verify_batch(payload, expected_hash)
