"""
Governance Gate SDK — Client
Thin synchronous wrapper over the governance gate gateway.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from govgate_sdk.models import ProposalResult, TransitionResult, WithdrawalResult

NATIVE_ASSET = "0x" + "00" * 20


class GateClient:
    """
    Client for the governance gate gateway.

    Submits proposals, drives them through their lifecycle, withdraws
    credited allowances and reads gate state. Every call is authenticated
    with the caller's API key.
    """

    def __init__(
        self,
        gateway_url: str,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            gateway_url: Base URL of the gateway (e.g. "http://localhost:8000")
            api_key: Bearer token identifying the caller
            timeout: HTTP request timeout in seconds
            client: Pre-built httpx client (tests pass a TestClient here)
        """
        self.gateway_url = gateway_url.rstrip("/")
        self.api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _post(self, path: str, body: Optional[dict] = None) -> httpx.Response:
        return self._client.post(
            f"{self.gateway_url}{path}", json=body or {}, headers=self._headers,
        )

    def propose(
        self,
        funding_amount: int = 0,
        funding_asset: str = NATIVE_ASSET,
        timelock: int = 0,
        recipient_id: int = 0,
        batch: bytes = b"",
        reserved_id: int = 0,
        salt: int = 0,
    ) -> ProposalResult:
        """
        Submit a proposal.

        Returns:
            ProposalResult with the proposal id and batch hash on success.
        """
        resp = self._post("/proposals", {
            "funding_amount": str(funding_amount),
            "funding_asset": funding_asset,
            "timelock": timelock,
            "recipient_id": str(recipient_id),
            "batch": "0x" + batch.hex(),
            "reserved_id": str(reserved_id),
            "salt": str(salt),
        })
        body = resp.json()
        return ProposalResult(
            success=resp.status_code == 201,
            proposal_id=body.get("proposal_id"),
            state=body.get("state"),
            batch_hash=body.get("batch_hash"),
            error=body.get("error"),
            raw=body,
        )

    def _transition(self, proposal_id: str, action: str) -> TransitionResult:
        resp = self._post(f"/proposals/{proposal_id}/{action}")
        body = resp.json()
        return TransitionResult(
            success=resp.status_code == 200,
            state=body.get("state"),
            error=body.get("error"),
            raw=body,
        )

    def approve(self, proposal_id: str) -> TransitionResult:
        return self._transition(proposal_id, "approve")

    def execute(self, proposal_id: str) -> TransitionResult:
        return self._transition(proposal_id, "execute")

    def approve_and_execute(self, proposal_id: str) -> TransitionResult:
        return self._transition(proposal_id, "approve-and-execute")

    def escalate(self, proposal_id: str) -> TransitionResult:
        return self._transition(proposal_id, "escalate")

    def reject(self, proposal_id: str) -> TransitionResult:
        return self._transition(proposal_id, "reject")

    def cancel(self, proposal_id: str) -> TransitionResult:
        return self._transition(proposal_id, "cancel")

    def withdraw(
        self, recipient_id: int, vault: str, amount: int, asset: str = NATIVE_ASSET,
    ) -> WithdrawalResult:
        resp = self._post("/withdrawals", {
            "recipient_id": str(recipient_id),
            "vault": vault,
            "asset": asset,
            "amount": str(amount),
        })
        body = resp.json()
        ok = resp.status_code == 200
        return WithdrawalResult(
            success=ok,
            amount=int(body["amount"]) if ok else None,
            remaining=int(body["remaining"]) if ok else None,
            error=body.get("error"),
            raw=body,
        )

    def proposal(self, proposal_id: str) -> Optional[dict[str, Any]]:
        """Full proposal record, or None when the id is unknown."""
        resp = self._client.get(f"{self.gateway_url}/proposals/{proposal_id}")
        if resp.status_code == 404:
            return None
        return resp.json()

    def allowance(self, vault: str, recipient_id: int, asset: str = NATIVE_ASSET) -> int:
        resp = self._client.get(
            f"{self.gateway_url}/allowances/{vault}/{recipient_id}/{asset}"
        )
        return int(resp.json()["amount"])

    def health(self) -> dict:
        """Check gateway health via GET /health."""
        resp = self._client.get(f"{self.gateway_url}/health")
        return resp.json()
