"""
Proposal State Machine

Owns every proposal record and enforces who may move it, from which
state, and when. Each operation runs inside one store transaction, so a
fault at any step leaves the record, the ledger and the event log exactly
as they were.

Escalate, reject and cancel never look at the pause flag. They are the
ways out of a proposal and stay available while proposals are paused.
"""

from __future__ import annotations

from typing import Callable

from govgate.capabilities import CapabilityTokenManager
from govgate.config import GateConfig, GateSettings
from govgate.errors import (
    AlreadyUsed,
    InvalidFundingAmount,
    ProposalsPaused,
    TooEarly,
    Unauthorized,
)
from govgate.execution import ExecutionEngine
from govgate.guard import ReentrancyGuard
from govgate.identity import (
    MAX_AMOUNT,
    compute_proposal_id,
    normalize_address,
    require_range,
    validate_batch,
)
from govgate.proposals import Proposal, ProposalState, require_state
from govgate.receipts import ExecutionReceipt
from govgate.registry import AuthorizationProvider
from govgate.store import GateStore


class ProposalStateMachine:
    def __init__(
        self,
        settings: GateSettings,
        config: GateConfig,
        authz: AuthorizationProvider,
        store: GateStore,
        tokens: CapabilityTokenManager,
        engine: ExecutionEngine,
        guard: ReentrancyGuard,
        clock: Callable[[], int],
    ):
        self.settings = settings
        self.config = config
        self.authz = authz
        self.store = store
        self.tokens = tokens
        self.engine = engine
        self.guard = guard
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def compute_id(
        self,
        submitter: str,
        funding_amount: int,
        funding_asset: str,
        timelock: int,
        vault: str,
        recipient_id: int,
        batch_hash: str,
        salt: int,
    ) -> str:
        self.check_inputs(funding_amount, timelock, recipient_id, salt)
        return compute_proposal_id(
            chain_id=self.settings.chain_id,
            gate_address=self.settings.gate_address,
            registry_address=self.settings.registry_address,
            submitter=submitter,
            funding_amount=funding_amount,
            funding_asset=funding_asset,
            timelock=timelock,
            vault=vault,
            recipient_id=recipient_id,
            batch_hash=batch_hash,
            salt=salt,
        )

    def check_inputs(self, funding_amount: int, timelock: int,
                     recipient_id: int, salt: int) -> None:
        if not 0 <= funding_amount <= MAX_AMOUNT:
            raise InvalidFundingAmount(funding_amount)
        require_range("timelock", timelock)
        require_range("recipient_id", recipient_id)
        require_range("salt", salt)

    def state_of(self, proposal_id: str) -> ProposalState:
        proposal = self.store.get_proposal(proposal_id)
        return ProposalState.NONE if proposal is None else proposal.state

    def _load(self, proposal_id: str, operation: str) -> Proposal:
        proposal = self.store.get_proposal(proposal_id)
        require_state(ProposalState.NONE if proposal is None else proposal.state, operation)
        return proposal

    def _require_holder(self, caller: str, token_id: int, capability: str) -> None:
        if not self.authz.is_holder(caller, token_id):
            raise Unauthorized(caller, capability, token_id)

    def _require_executor(self, caller: str) -> None:
        if self.config.public_execution:
            return
        self._require_holder(caller, self.config.executor_token, "executor")

    def _deactivate(self, token_id: int, caller: str, proposal_id: str) -> None:
        self.tokens.deactivate(token_id)
        self.store.emit(caller, "TOKEN_DEACTIVATED", {
            "proposal_id": proposal_id,
            "token_id": str(token_id),
        })

    def _retire_tokens(self, proposal: Proposal, previous: ProposalState,
                       caller: str, include_reserved: bool) -> None:
        # The decision token was already switched off if the proposal had
        # been approved.
        if previous == ProposalState.ACTIVE:
            self._deactivate(proposal.decision_token, caller, proposal.proposal_id)
        if include_reserved and proposal.has_reserved_token:
            self._deactivate(proposal.reserved_token, caller, proposal.proposal_id)

    # ------------------------------------------------------------------
    # propose
    # ------------------------------------------------------------------

    def propose(
        self,
        caller: str,
        *,
        funding_amount: int,
        funding_asset: str,
        timelock: int,
        recipient_id: int,
        batch: bytes = b"",
        reserved_id: int = 0,
        salt: int = 0,
    ) -> str:
        """Create an Active proposal and return its id."""
        caller = normalize_address(caller)
        funding_asset = normalize_address(funding_asset)

        with self.store.transaction():
            self._require_holder(caller, self.config.proposer_token, "proposer")
            if self.config.proposals_paused:
                raise ProposalsPaused()
            self.check_inputs(funding_amount, timelock, recipient_id, salt)
            require_range("reserved_id", reserved_id)

            vault = self.config.default_vault
            batch_hash = validate_batch(batch)
            proposal_id = self.compute_id(
                caller, funding_amount, funding_asset, timelock,
                vault, recipient_id, batch_hash, salt,
            )
            if self.store.has_proposal(proposal_id):
                raise AlreadyUsed(proposal_id)
            if reserved_id:
                self.tokens.check_reserved(reserved_id)

            decision_token = self.tokens.create_decision_token(proposal_id)
            reserved_token = 0
            if reserved_id:
                reserved_token = self.tokens.create_reserved_token(reserved_id, proposal_id)

            proposal = Proposal(
                proposal_id=proposal_id,
                submitter=caller,
                funding_amount=funding_amount,
                funding_asset=funding_asset,
                timelock=timelock,
                vault=vault,
                recipient_id=recipient_id,
                decision_token=decision_token,
                reserved_token=reserved_token,
                batch=batch,
                batch_hash=batch_hash,
                state=ProposalState.ACTIVE,
                created_at=self.clock(),
            )
            self.store.save_proposal(proposal)
            # Off-chain tooling rebuilds the entries from the hash.
            self.store.emit(caller, "PROPOSAL_CREATED", {
                "proposal_id": proposal_id,
                "submitter": caller,
                "funding_amount": str(funding_amount),
                "funding_asset": funding_asset,
                "timelock": timelock,
                "vault": vault,
                "recipient_id": str(recipient_id),
                "decision_token": str(decision_token),
                "reserved_token": str(reserved_token),
                "batch_hash": batch_hash,
                "salt": str(salt),
            })
        return proposal_id

    # ------------------------------------------------------------------
    # approve / execute
    # ------------------------------------------------------------------

    def approve(self, caller: str, proposal_id: str) -> int:
        """Approve and start the timelock. Returns the unlock time."""
        caller = normalize_address(caller)
        with self.store.transaction():
            proposal = self._load(proposal_id, "approve")
            self._require_holder(caller, proposal.decision_token, "decision-authority")

            proposal.unlock_at = self.clock() + proposal.timelock
            self.store.transition(proposal, ProposalState.APPROVED, caller,
                                  "PROPOSAL_APPROVED", unlock_at=proposal.unlock_at)
            self._deactivate(proposal.decision_token, caller, proposal_id)
        return proposal.unlock_at

    def execute(self, caller: str, proposal_id: str) -> ExecutionReceipt:
        caller = normalize_address(caller)
        with self.guard.entered("execute"), self.store.transaction():
            proposal = self._load(proposal_id, "execute")
            now = self.clock()
            if now < proposal.unlock_at:
                raise TooEarly(proposal.unlock_at, now)
            if self.config.proposals_paused:
                raise ProposalsPaused()
            self._require_executor(caller)

            return self.engine.run(proposal, caller, now)

    def approve_and_execute(self, caller: str, proposal_id: str) -> ExecutionReceipt:
        """Approve and execute in one step; only for zero-timelock proposals."""
        caller = normalize_address(caller)
        with self.guard.entered("execute"), self.store.transaction():
            proposal = self._load(proposal_id, "approve_and_execute")
            now = self.clock()
            if proposal.timelock != 0:
                raise TooEarly(now + proposal.timelock, now)
            if self.config.proposals_paused:
                raise ProposalsPaused()
            self._require_holder(caller, proposal.decision_token, "decision-authority")
            self._require_executor(caller)

            proposal.unlock_at = now
            self.store.transition(proposal, ProposalState.APPROVED, caller,
                                  "PROPOSAL_APPROVED", unlock_at=now)
            receipt = self.engine.run(proposal, caller, now)
            # After the batch, so a failed batch leaves the token untouched.
            self._deactivate(proposal.decision_token, caller, proposal_id)
            return receipt

    # ------------------------------------------------------------------
    # exits
    # ------------------------------------------------------------------

    def escalate(self, caller: str, proposal_id: str) -> None:
        """Hand the proposal to a higher authority. The reserved token stays live."""
        caller = normalize_address(caller)
        with self.store.transaction():
            proposal = self._load(proposal_id, "escalate")
            self._require_holder(caller, self.config.escalator_token, "escalator")

            previous = proposal.state
            self.store.transition(proposal, ProposalState.ESCALATED, caller,
                                  "PROPOSAL_ESCALATED")
            self._retire_tokens(proposal, previous, caller, include_reserved=False)

    def reject(self, caller: str, proposal_id: str) -> None:
        caller = normalize_address(caller)
        with self.store.transaction():
            proposal = self._load(proposal_id, "reject")
            self._require_holder(caller, proposal.decision_token, "decision-authority")

            previous = proposal.state
            self.store.transition(proposal, ProposalState.REJECTED, caller,
                                  "PROPOSAL_REJECTED")
            self._retire_tokens(proposal, previous, caller, include_reserved=True)

    def cancel(self, caller: str, proposal_id: str) -> None:
        caller = normalize_address(caller)
        with self.store.transaction():
            proposal = self._load(proposal_id, "cancel")
            if caller != proposal.submitter:
                raise Unauthorized(caller, "submitter")

            previous = proposal.state
            self.store.transition(proposal, ProposalState.CANCELED, caller,
                                  "PROPOSAL_CANCELED")
            self._retire_tokens(proposal, previous, caller, include_reserved=True)
