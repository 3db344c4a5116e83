"""
Execution & Withdrawal Receipts

Every execute and withdraw returns a receipt with a SHA-256 hash over its
canonical JSON, so a caller can later prove what the gate did.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from pydantic import BaseModel


def _receipt_hash(fields: dict[str, Any]) -> str:
    canonical = json.dumps(fields, sort_keys=True)
    return hashlib.sha256(canonical.encode()).hexdigest()


class ExecutionReceipt(BaseModel):
    proposal_id: str
    executor: str
    vault: str
    recipient_id: str
    funding_asset: str
    funding_amount: str
    balance_after: str
    batch_hash: str
    entries_applied: int
    executed_at: int
    receipt_hash: str


class WithdrawalReceipt(BaseModel):
    caller: str
    vault: str
    recipient_id: str
    asset: str
    amount: str
    remaining: str
    withdrawn_at: int
    receipt_hash: str


def create_execution_receipt(
    proposal_id: str,
    executor: str,
    vault: str,
    recipient_id: int,
    funding_asset: str,
    funding_amount: int,
    balance_after: int,
    batch_hash: str,
    entries_applied: int,
    executed_at: int,
) -> ExecutionReceipt:
    # Integers wider than 53 bits travel as decimal strings.
    pre_hash = {
        "proposal_id": proposal_id,
        "executor": executor,
        "vault": vault,
        "recipient_id": str(recipient_id),
        "funding_asset": funding_asset,
        "funding_amount": str(funding_amount),
        "balance_after": str(balance_after),
        "batch_hash": batch_hash,
        "entries_applied": entries_applied,
        "executed_at": executed_at,
    }
    return ExecutionReceipt(**pre_hash, receipt_hash=_receipt_hash(pre_hash))


def create_withdrawal_receipt(
    caller: str,
    vault: str,
    recipient_id: int,
    asset: str,
    amount: int,
    remaining: int,
    withdrawn_at: int,
) -> WithdrawalReceipt:
    pre_hash = {
        "caller": caller,
        "vault": vault,
        "recipient_id": str(recipient_id),
        "asset": asset,
        "amount": str(amount),
        "remaining": str(remaining),
        "withdrawn_at": withdrawn_at,
    }
    return WithdrawalReceipt(**pre_hash, receipt_hash=_receipt_hash(pre_hash))


def verify_receipt(receipt: BaseModel) -> bool:
    """Recompute the hash over every field except receipt_hash."""
    fields = receipt.model_dump()
    stored = fields.pop("receipt_hash")
    return _receipt_hash(fields) == stored
