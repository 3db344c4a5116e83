"""
Execution Engine

Commits an approved proposal: credits the ledger, marks the record
Executed and clears its payload, and only then hands the batch to the
registry. A failing batch call raises, and the surrounding store
transaction discards the credit and the transition with it.
"""

from __future__ import annotations

from govgate.errors import BatchCallFailed, GateFault
from govgate.identity import decode_batch
from govgate.ledger import AllowanceLedger
from govgate.proposals import Proposal, ProposalState
from govgate.receipts import ExecutionReceipt, create_execution_receipt
from govgate.registry import CapabilityRegistry
from govgate.store import GateStore


class ExecutionEngine:
    def __init__(self, store: GateStore, ledger: AllowanceLedger, registry: CapabilityRegistry):
        self.store = store
        self.ledger = ledger
        self.registry = registry

    def run(self, proposal: Proposal, executor: str, now: int) -> ExecutionReceipt:
        """Apply *proposal*. Caller holds the guard and an open transaction."""
        balance_after = self.ledger.credit(
            proposal.vault,
            proposal.recipient_id,
            proposal.funding_asset,
            proposal.funding_amount,
        )

        payload = proposal.batch
        proposal.batch = b""
        self.store.transition(
            proposal, ProposalState.EXECUTED, executor, "PROPOSAL_EXECUTED",
            vault=proposal.vault,
            recipient_id=str(proposal.recipient_id),
            funding_asset=proposal.funding_asset,
            funding_amount=str(proposal.funding_amount),
            batch_hash=proposal.batch_hash,
        )

        entries_applied = self.apply_batch(payload)

        return create_execution_receipt(
            proposal_id=proposal.proposal_id,
            executor=executor,
            vault=proposal.vault,
            recipient_id=proposal.recipient_id,
            funding_asset=proposal.funding_asset,
            funding_amount=proposal.funding_amount,
            balance_after=balance_after,
            batch_hash=proposal.batch_hash,
            entries_applied=entries_applied,
            executed_at=now,
        )

    def apply_batch(self, payload: bytes) -> int:
        """Send *payload* to the registry; an empty payload is a no-op."""
        if not payload:
            return 0
        entries = decode_batch(payload)
        try:
            result = self.registry.apply_batch(entries)
        except GateFault:
            raise
        except Exception as exc:
            raise BatchCallFailed(str(exc)) from exc
        if not result.ok:
            raise BatchCallFailed(result.reason)
        return len(entries)
