"""
Proposal Records & Lifecycle States

  None -> Active -> Approved -> Executed      (happy path)
  Active | Approved -> Escalated
  Active -> Rejected
  Active | Approved -> Canceled

Submitter, amount, asset, timelock, vault and recipient never change after
creation. Only the state, the unlock time and the batch payload (cleared
on execution) are mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from govgate.errors import InvalidState


class ProposalState(str, Enum):
    NONE = "NONE"
    ACTIVE = "ACTIVE"
    APPROVED = "APPROVED"
    EXECUTED = "EXECUTED"
    ESCALATED = "ESCALATED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"


# operation -> states it may start from
ALLOWED_FROM: dict[str, frozenset[ProposalState]] = {
    "approve": frozenset({ProposalState.ACTIVE}),
    "execute": frozenset({ProposalState.APPROVED}),
    "approve_and_execute": frozenset({ProposalState.ACTIVE}),
    "escalate": frozenset({ProposalState.ACTIVE, ProposalState.APPROVED}),
    "reject": frozenset({ProposalState.ACTIVE}),
    "cancel": frozenset({ProposalState.ACTIVE, ProposalState.APPROVED}),
}

TERMINAL_STATES = frozenset({
    ProposalState.EXECUTED,
    ProposalState.ESCALATED,
    ProposalState.REJECTED,
    ProposalState.CANCELED,
})


def require_state(state: ProposalState, operation: str) -> None:
    """Raise InvalidState(state) unless *operation* may start from *state*."""
    if state not in ALLOWED_FROM[operation]:
        raise InvalidState(state)


@dataclass
class Proposal:
    proposal_id: str
    submitter: str
    funding_amount: int
    funding_asset: str
    timelock: int
    vault: str
    recipient_id: int
    decision_token: int
    reserved_token: int = 0
    batch: bytes = b""
    batch_hash: str = ""
    state: ProposalState = ProposalState.ACTIVE
    unlock_at: Optional[int] = None
    created_at: int = 0

    @property
    def has_reserved_token(self) -> bool:
        return self.reserved_token != 0

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe view. Token ids and amounts are decimal strings."""
        return {
            "proposal_id": self.proposal_id,
            "submitter": self.submitter,
            "funding_amount": str(self.funding_amount),
            "funding_asset": self.funding_asset,
            "timelock": self.timelock,
            "vault": self.vault,
            "recipient_id": str(self.recipient_id),
            "decision_token": str(self.decision_token),
            "reserved_token": str(self.reserved_token),
            "batch": "0x" + self.batch.hex(),
            "batch_hash": self.batch_hash,
            "state": self.state.value,
            "unlock_at": self.unlock_at,
            "created_at": self.created_at,
        }
