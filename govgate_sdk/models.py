"""
Governance Gate SDK — Data Models
"""

from __future__ import annotations

from pydantic import BaseModel


class ProposalResult(BaseModel):
    """Result of a POST /proposals call."""
    success: bool
    proposal_id: str | None = None
    state: str | None = None          # ACTIVE on success
    batch_hash: str | None = None
    error: str | None = None          # fault code when success is False
    raw: dict                         # full response body


class TransitionResult(BaseModel):
    """Result of an approve/execute/escalate/reject/cancel call."""
    success: bool
    state: str | None = None
    error: str | None = None
    raw: dict


class WithdrawalResult(BaseModel):
    """Result of a POST /withdrawals call."""
    success: bool
    amount: int | None = None
    remaining: int | None = None
    error: str | None = None
    raw: dict
