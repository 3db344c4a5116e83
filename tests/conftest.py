"""
Shared fixtures: a gate wired to an in-memory registry, vault and token,
with a clock the tests move by hand.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from govgate.audit import MemoryAuditSpine
from govgate.config import GateConfig, GateSettings
from govgate.gate import GovernanceGate
from govgate.identity import NATIVE_ASSET
from govgate.memory import InMemoryRegistry, InMemoryToken, InMemoryVault

GATE = "0x00000000000000000000000000000000000a7e01"
REGISTRY = "0x00000000000000000000000000000000000a7e02"
VAULT = "0x00000000000000000000000000000000000a7e03"
VAULT_B = "0x00000000000000000000000000000000000a7e04"
TOKEN = "0x00000000000000000000000000000000000a7e10"

OWNER = "0x1000000000000000000000000000000000000001"
PROPOSER = "0x1000000000000000000000000000000000000002"
APPROVER = "0x1000000000000000000000000000000000000003"
EXECUTOR = "0x1000000000000000000000000000000000000004"
ESCALATOR = "0x1000000000000000000000000000000000000005"
RECIPIENT = "0x1000000000000000000000000000000000000006"
OUTSIDER = "0x1000000000000000000000000000000000000007"

START_TIME = 1_700_000_000


class Clock:
    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@dataclass
class GateEnv:
    gate: GovernanceGate
    registry: InMemoryRegistry
    vault: InMemoryVault
    token: InMemoryToken
    audit: MemoryAuditSpine
    clock: Clock
    settings: GateSettings
    roles: dict[str, int] = field(default_factory=dict)

    def propose(self, caller: str = PROPOSER, **overrides) -> str:
        args = {
            "funding_amount": 1000,
            "funding_asset": NATIVE_ASSET,
            "timelock": 0,
            "recipient_id": self.roles["recipient"],
            "salt": 0,
        }
        args.update(overrides)
        return self.gate.propose(caller, **args)

    def propose_assigned(self, holder: str = APPROVER, **overrides) -> str:
        """Propose, then play the allocator and hand out the decision token."""
        proposal_id = self.propose(**overrides)
        self.registry.mint(self.gate.get_proposal(proposal_id).decision_token, holder)
        return proposal_id

    def approved(self, **overrides) -> str:
        proposal_id = self.propose_assigned(**overrides)
        self.gate.approve(APPROVER, proposal_id)
        return proposal_id

    def executed(self, **overrides) -> str:
        proposal_id = self.approved(**overrides)
        self.gate.execute(EXECUTOR, proposal_id)
        return proposal_id


def build_env(registry_cls=InMemoryRegistry) -> GateEnv:
    registry = registry_cls(GATE)
    domain = registry.create_domain("test domain", holder=OWNER)

    roles = {
        name: registry.create_token(domain, name, max_supply=8)
        for name in ("owner", "proposer", "executor", "escalator", "recipient")
    }
    roles["approvers"] = registry.create_token(domain, "approvers", max_supply=0)
    roles["reserved"] = registry.create_token(domain, "reserved", max_supply=0)
    roles["team"] = registry.create_token(domain, "team", max_supply=0)
    roles["domain"] = domain

    registry.mint(roles["owner"], OWNER)
    registry.mint(roles["proposer"], PROPOSER)
    registry.mint(roles["executor"], EXECUTOR)
    registry.mint(roles["executor"], APPROVER)
    registry.mint(roles["escalator"], ESCALATOR)
    registry.mint(roles["recipient"], RECIPIENT)

    settings = GateSettings(
        chain_id=31337,
        gate_address=GATE,
        registry_address=REGISTRY,
        owner_token=roles["owner"],
        approver_branch=roles["approvers"],
        reserved_branch=roles["reserved"],
    )

    token = InMemoryToken(TOKEN)
    vault = InMemoryVault(VAULT, tokens={TOKEN: token})
    vault.enable_module(GATE)
    vault.native_balance = 10**24
    token.mint(VAULT, 10**24)

    config = GateConfig(
        proposer_token=roles["proposer"],
        executor_token=roles["executor"],
        escalator_token=roles["escalator"],
        default_vault=VAULT,
    )
    audit = MemoryAuditSpine()
    clock = Clock()
    gate = GovernanceGate(
        settings, config, registry, {vault.address: vault},
        audit=audit, clock=clock,
    )
    return GateEnv(
        gate=gate,
        registry=registry,
        vault=vault,
        token=token,
        audit=audit,
        clock=clock,
        settings=settings,
        roles=roles,
    )


@pytest.fixture
def env() -> GateEnv:
    return build_env()
