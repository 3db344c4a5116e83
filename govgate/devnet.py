"""
Local Devnet

Builds a complete gate on in-memory collaborators: one registry domain
with the owner, proposer, executor, escalator, recipient and reserved
branches, a funded vault with the gate enabled as a module, and role
grants taken from the caller allowlist.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Optional

from govgate.audit import AuditSpine
from govgate.callers import Caller
from govgate.config import GateConfig, GateSettings
from govgate.gate import GovernanceGate, system_clock
from govgate.memory import InMemoryRegistry, InMemoryVault

DEVNET_VAULT_ADDRESS = os.environ.get(
    "GOVGATE_DEVNET_VAULT", "0x00000000000000000000000000000000000a7e03"
)
DEVNET_NATIVE_FUNDS = int(os.environ.get("GOVGATE_DEVNET_NATIVE_FUNDS", str(10**21)))

ROLES = ("owner", "proposer", "executor", "escalator", "recipient")
_ROLE_SUPPLY = 16


@dataclass
class Devnet:
    gate: GovernanceGate
    registry: InMemoryRegistry
    vault: InMemoryVault
    roles: dict[str, int]
    callers: dict[str, Caller] = field(default_factory=dict)

    def approvers(self) -> list[str]:
        return [c.address for c in self.callers.values() if "approver" in c.grants]

    def allocate_decision_token(self, proposal_id: str) -> Optional[str]:
        """Stand-in for the external allocator: hand the new decision token
        to the first caller granted ``approver``."""
        proposal = self.gate.get_proposal(proposal_id)
        approvers = self.approvers()
        if proposal is None or not approvers:
            return None
        self.registry.mint(proposal.decision_token, approvers[0])
        return approvers[0]


def build_devnet(
    callers: dict[str, Caller],
    audit: Optional[AuditSpine] = None,
    clock: Callable[[], int] = system_clock,
) -> Devnet:
    base = GateSettings.from_env()
    registry = InMemoryRegistry(operator=base.gate_address)
    domain = registry.create_domain("govgate devnet")

    roles = {
        name: registry.create_token(domain, name, max_supply=_ROLE_SUPPLY)
        for name in ROLES
    }
    approver_branch = registry.create_token(domain, "approvers", max_supply=0)
    reserved_branch = registry.create_token(domain, "reserved", max_supply=0)

    settings = GateSettings(
        chain_id=base.chain_id,
        gate_address=base.gate_address,
        registry_address=base.registry_address,
        owner_token=roles["owner"],
        approver_branch=approver_branch,
        reserved_branch=reserved_branch,
    )

    vault = InMemoryVault(DEVNET_VAULT_ADDRESS)
    vault.enable_module(settings.gate_address)
    vault.native_balance = DEVNET_NATIVE_FUNDS

    config = GateConfig(
        proposer_token=roles["proposer"],
        executor_token=roles["executor"],
        escalator_token=roles["escalator"],
        default_vault=vault.address,
    )

    for caller in callers.values():
        if caller.status != "active":
            continue
        for grant in caller.grants:
            if grant in roles:
                registry.mint(roles[grant], caller.address)

    gate = GovernanceGate(
        settings, config, registry, {vault.address: vault},
        audit=audit, clock=clock,
    )
    return Devnet(gate=gate, registry=registry, vault=vault, roles=roles, callers=callers)
