"""govgate: proposal lifecycle, allowance ledger and withdrawal gate."""

from govgate.config import PUBLIC_EXECUTION, GateConfig, GateSettings
from govgate.gate import GovernanceGate
from govgate.identity import MAX_AMOUNT, NATIVE_ASSET, ZERO_HASH
from govgate.proposals import ProposalState

__all__ = [
    "GateConfig",
    "GateSettings",
    "GovernanceGate",
    "MAX_AMOUNT",
    "NATIVE_ASSET",
    "PUBLIC_EXECUTION",
    "ProposalState",
    "ZERO_HASH",
]
