"""
Gate Store

Single owner of persistent gate state: proposal records, ledger balances
with their cumulative credit/debit totals, and the events an operation
produces. Writes made inside ``transaction()`` are journaled; a failure
restores every touched key and drops pending events, so an operation
either lands completely or not at all.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Iterator, Optional

from govgate.audit import AuditSpine
from govgate.errors import AuditWriteFailed, InvalidState
from govgate.proposals import TERMINAL_STATES, Proposal, ProposalState

LedgerKey = tuple[str, int, str]

_MISSING = object()


class GateStore:
    def __init__(self, audit: AuditSpine):
        self.audit = audit
        self._proposals: dict[str, Proposal] = {}
        self._balances: dict[LedgerKey, int] = {}
        self._credited: dict[LedgerKey, int] = {}
        self._debited: dict[LedgerKey, int] = {}
        self._journal: list[tuple[dict, Any, Any]] = []
        self._pending: list[tuple[str, str, dict[str, Any]]] = []
        self._depth = 0

    # -- transactions -------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run a block atomically. Nested blocks join the outermost one.

        State commits when the block exits cleanly; its events are written
        to the spine only after that. The block may already have moved funds
        or registry state, so a spine failure at that point raises
        AuditWriteFailed without reverting anything.
        """
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        self._journal = []
        self._pending = []
        try:
            yield
        except BaseException:
            self._rollback()
            raise
        finally:
            committed = self._pending
            self._depth = 0
            self._journal = []
            self._pending = []
        self._publish(committed)

    def _publish(self, events: list[tuple[str, str, dict[str, Any]]]) -> None:
        for index, (actor_id, action_type, payload) in enumerate(events):
            try:
                self.audit.log_event(actor_id, action_type, payload)
            except Exception as exc:
                raise AuditWriteFailed(
                    str(exc), [event[1] for event in events[index:]],
                ) from exc

    def _write(self, table: dict, key, value) -> None:
        if not self._depth:
            raise RuntimeError("store writes require an open transaction")
        self._journal.append((table, key, table.get(key, _MISSING)))
        table[key] = value

    def _rollback(self) -> None:
        for table, key, previous in reversed(self._journal):
            if previous is _MISSING:
                table.pop(key, None)
            else:
                table[key] = previous

    def emit(self, actor_id: str, action_type: str, payload: dict[str, Any]) -> None:
        """Queue an audit event; it is written when the transaction commits."""
        if not self._depth:
            raise RuntimeError("events require an open transaction")
        self._pending.append((actor_id, action_type, payload))

    # -- proposals ----------------------------------------------------------

    def has_proposal(self, proposal_id: str) -> bool:
        return proposal_id in self._proposals

    def get_proposal(self, proposal_id: str) -> Optional[Proposal]:
        """Return a detached copy; mutate it and hand it to save_proposal."""
        record = self._proposals.get(proposal_id)
        return None if record is None else replace(record)

    def save_proposal(self, proposal: Proposal) -> None:
        self._write(self._proposals, proposal.proposal_id, replace(proposal))

    def transition(self, proposal: Proposal, state: ProposalState, actor_id: str,
                   action_type: str, **extra: Any) -> None:
        """Move *proposal* to *state*, save it and queue the matching event."""
        if proposal.state in TERMINAL_STATES:
            raise InvalidState(proposal.state)
        proposal.state = state
        self.save_proposal(proposal)
        self.emit(actor_id, action_type, {"proposal_id": proposal.proposal_id, **extra})

    # -- ledger -------------------------------------------------------------

    def balance(self, key: LedgerKey) -> int:
        return self._balances.get(key, 0)

    def credited(self, key: LedgerKey) -> int:
        return self._credited.get(key, 0)

    def debited(self, key: LedgerKey) -> int:
        return self._debited.get(key, 0)

    def record_credit(self, key: LedgerKey, amount: int) -> None:
        self._write(self._balances, key, self.balance(key) + amount)
        self._write(self._credited, key, self.credited(key) + amount)

    def record_debit(self, key: LedgerKey, amount: int) -> None:
        self._write(self._balances, key, self.balance(key) - amount)
        self._write(self._debited, key, self.debited(key) + amount)

    def ledger_keys(self) -> list[LedgerKey]:
        return list(self._balances)
