"""
Gate Faults

Typed, inspectable faults raised by every gate operation. A fault aborts
the enclosing operation as a whole; nothing raised here is retried.
Each fault carries a stable machine code and the HTTP status the gateway
answers with.
"""

from __future__ import annotations

from typing import Any


class GateFault(Exception):
    """Base class for every fault raised by the gate."""

    code = "GATE_FAULT"
    status_code = 400

    def __init__(self, message: str, **fields: Any):
        super().__init__(message)
        self.message = message
        self.fields = fields

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.message, **self.fields}


# ---------------------------------------------------------------------------
# Authorization faults
# ---------------------------------------------------------------------------

class Unauthorized(GateFault):
    code = "UNAUTHORIZED"
    status_code = 403

    def __init__(self, caller: str, capability: str, token_id: int | None = None):
        self.caller = caller
        self.capability = capability
        self.token_id = token_id
        super().__init__(
            f"{caller} does not hold the {capability} capability",
            caller=caller,
            capability=capability,
            token_id=None if token_id is None else str(token_id),
        )


# ---------------------------------------------------------------------------
# State faults
# ---------------------------------------------------------------------------

class InvalidState(GateFault):
    code = "INVALID_STATE"
    status_code = 409

    def __init__(self, state):
        self.state = state
        value = getattr(state, "value", state)
        super().__init__(f"operation not allowed in state {value}", state=value)


class AlreadyUsed(GateFault):
    code = "ALREADY_USED"
    status_code = 409

    def __init__(self, proposal_id: str):
        self.proposal_id = proposal_id
        super().__init__(f"proposal id {proposal_id} already used", proposal_id=proposal_id)


class ProposalsPaused(GateFault):
    code = "PROPOSALS_PAUSED"
    status_code = 409

    def __init__(self):
        super().__init__("proposals are paused")


class WithdrawalsPaused(GateFault):
    code = "WITHDRAWALS_PAUSED"
    status_code = 409

    def __init__(self):
        super().__init__("withdrawals are paused")


# ---------------------------------------------------------------------------
# Timing faults
# ---------------------------------------------------------------------------

class TooEarly(GateFault):
    code = "TOO_EARLY"
    status_code = 425

    def __init__(self, unlock_at: int, now: int):
        self.unlock_at = unlock_at
        self.now = now
        super().__init__(
            f"execution unlocks at {unlock_at}, now is {now}",
            unlock_at=unlock_at,
            now=now,
        )


# ---------------------------------------------------------------------------
# Validation faults
# ---------------------------------------------------------------------------

class InvalidBatch(GateFault):
    code = "INVALID_BATCH"
    status_code = 422

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"invalid batch payload: {reason}", reason=reason)


class InvalidReservedBranch(GateFault):
    code = "INVALID_RESERVED_BRANCH"
    status_code = 422

    def __init__(self, parent: int, branch: int):
        self.parent = parent
        self.branch = branch
        super().__init__(
            f"reserved parent {parent:#x} is outside branch {branch:#x}",
            parent=str(parent),
            branch=str(branch),
        )


class ReservedIdUnavailable(GateFault):
    code = "RESERVED_ID_UNAVAILABLE"
    status_code = 422

    def __init__(self, expected: int, supplied: int):
        self.expected = expected
        self.supplied = supplied
        super().__init__(
            f"next id under parent is {expected:#x}, not {supplied:#x}",
            expected=str(expected),
            supplied=str(supplied),
        )


class InvalidFundingAmount(GateFault):
    code = "INVALID_FUNDING_AMOUNT"
    status_code = 422

    def __init__(self, amount: int):
        self.amount = amount
        super().__init__(f"funding amount {amount} out of range", amount=str(amount))


class ValueOutOfRange(GateFault):
    code = "VALUE_OUT_OF_RANGE"
    status_code = 422

    def __init__(self, field: str, value: int, maximum: int):
        self.field = field
        self.value = value
        self.maximum = maximum
        super().__init__(
            f"{field} {value} is outside 0..{maximum:#x}",
            field=field,
            value=str(value),
        )


class InvalidAddress(GateFault):
    code = "INVALID_ADDRESS"
    status_code = 422

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"not an address: {value!r}", value=str(value))


# ---------------------------------------------------------------------------
# Ledger faults
# ---------------------------------------------------------------------------

class AllowanceExceeded(GateFault):
    code = "ALLOWANCE_EXCEEDED"
    status_code = 409

    def __init__(self, remaining: int, requested: int):
        self.remaining = remaining
        self.requested = requested
        super().__init__(
            f"requested {requested} but only {remaining} remains",
            remaining=str(remaining),
            requested=str(requested),
        )


class LedgerOverflow(GateFault):
    code = "LEDGER_OVERFLOW"
    status_code = 409

    def __init__(self, balance: int, amount: int):
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"crediting {amount} to {balance} overflows the ledger range",
            balance=str(balance),
            amount=str(amount),
        )


# ---------------------------------------------------------------------------
# External-call faults
# ---------------------------------------------------------------------------

class BatchCallFailed(GateFault):
    code = "BATCH_CALL_FAILED"
    status_code = 502

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"registry batch call failed: {reason}", reason=reason)


class VaultCallFailed(GateFault):
    code = "VAULT_CALL_FAILED"
    status_code = 502

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"vault call failed: {reason}", reason=reason)


class TransferReturnedFalse(GateFault):
    code = "TRANSFER_RETURNED_FALSE"
    status_code = 502

    def __init__(self):
        super().__init__("token transfer returned false")


class TransferMalformedReturn(GateFault):
    code = "TRANSFER_MALFORMED_RETURN"
    status_code = 502

    def __init__(self, return_data: bytes):
        self.return_data = return_data
        super().__init__(
            f"token transfer returned {len(return_data)} bytes",
            return_data="0x" + return_data.hex(),
        )


class ReentrantCall(GateFault):
    code = "REENTRANT_CALL"
    status_code = 409

    def __init__(self):
        super().__init__("reentrant call")


# ---------------------------------------------------------------------------
# Audit faults
# ---------------------------------------------------------------------------

class AuditWriteFailed(GateFault):
    """The operation committed but some of its events never reached the spine."""

    code = "AUDIT_WRITE_FAILED"
    status_code = 503

    def __init__(self, reason: str, unwritten: list[str]):
        self.reason = reason
        self.unwritten = unwritten
        super().__init__(
            f"audit spine write failed after commit: {reason}",
            reason=reason,
            unwritten=unwritten,
        )
