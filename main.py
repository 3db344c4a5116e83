"""
Governance Gate Gateway
HTTP surface over the gate: proposal lifecycle, withdrawals, allowance and
proposal reads, batch helpers for off-chain tooling, and owner-gated
configuration.

Callers authenticate with ``Authorization: Bearer <key>``; the key resolves
to a caller address through identities.json. The module-level app runs
against an in-memory devnet; its events go to the PostgreSQL audit spine
when GOVGATE_DB_HOST is set.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from fastapi import APIRouter, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from govgate.audit import spine_from_env
from govgate.callers import Caller, authenticate, load_callers
from govgate.devnet import Devnet, build_devnet
from govgate.errors import GateFault
from govgate.identity import NATIVE_ASSET

TokenId = Union[int, str]

router = APIRouter()

# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class ProposeRequest(BaseModel):
    funding_amount: TokenId = 0
    funding_asset: str = NATIVE_ASSET
    timelock: int = Field(0, ge=0)
    recipient_id: TokenId = 0
    batch: str = "0x"
    reserved_id: TokenId = 0
    salt: TokenId = 0


class ComputeIdRequest(ProposeRequest):
    submitter: str
    vault: Optional[str] = None


class ProposeResponse(BaseModel):
    proposal_id: str
    state: str
    batch_hash: str
    decision_token: str
    reserved_token: str
    decision_holder: Optional[str] = None


class WithdrawRequest(BaseModel):
    recipient_id: TokenId
    vault: str
    asset: str = NATIVE_ASSET
    amount: TokenId


class BatchDecodeRequest(BaseModel):
    payload: str


class BatchVerifyRequest(BaseModel):
    payload: str
    expected_hash: str


class ConfigUpdate(BaseModel):
    proposer_token: Optional[TokenId] = None
    executor_token: Optional[TokenId] = None
    escalator_token: Optional[TokenId] = None
    default_vault: Optional[str] = None
    proposals_paused: Optional[bool] = None
    withdrawals_paused: Optional[bool] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _as_int(value: TokenId) -> int:
    """Token ids and amounts arrive as JSON ints or decimal/hex strings."""
    if isinstance(value, int):
        return value
    try:
        return int(value, 0)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Not an integer: {value!r}")


def _hex_bytes(value: str) -> bytes:
    raw = value[2:] if value.startswith("0x") else value
    try:
        return bytes.fromhex(raw)
    except ValueError:
        raise HTTPException(status_code=422, detail="Payload is not valid hex.")


def _devnet(request: Request) -> Devnet:
    return request.app.state.devnet


def _authenticate_request(request: Request, authorization: str) -> Caller:
    """Extract Bearer token and resolve it to a Caller.

    Raises HTTPException on auth failure.
    """
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token.")
    token = authorization[len("Bearer "):]
    try:
        return authenticate(token, request.app.state.callers)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc))


def _transition_response(devnet: Devnet, proposal_id: str, **extra: Any) -> dict[str, Any]:
    return {
        "proposal_id": proposal_id,
        "state": devnet.gate.get_proposal_state(proposal_id).value,
        **extra,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/health")
def health():
    return {"status": "operational", "service": "govgate-gateway"}


@router.post("/proposals")
def propose(body: ProposeRequest, request: Request, authorization: str = Header(...)):
    """
    Create a proposal.

    Flow:
      1. Authenticate the caller.
      2. Run propose (proposer capability, pause flag, id reuse, batch shape).
      3. Hand the decision token to the devnet approver (the allocator step).
    """
    caller = _authenticate_request(request, authorization)
    devnet = _devnet(request)
    proposal_id = devnet.gate.propose(
        caller.address,
        funding_amount=_as_int(body.funding_amount),
        funding_asset=body.funding_asset,
        timelock=body.timelock,
        recipient_id=_as_int(body.recipient_id),
        batch=_hex_bytes(body.batch),
        reserved_id=_as_int(body.reserved_id),
        salt=_as_int(body.salt),
    )
    holder = devnet.allocate_decision_token(proposal_id)
    proposal = devnet.gate.get_proposal(proposal_id)
    response = ProposeResponse(
        proposal_id=proposal_id,
        state=proposal.state.value,
        batch_hash=proposal.batch_hash,
        decision_token=str(proposal.decision_token),
        reserved_token=str(proposal.reserved_token),
        decision_holder=holder,
    )
    return JSONResponse(status_code=201, content=response.model_dump())


@router.post("/proposals/compute-id")
def compute_id(body: ComputeIdRequest, request: Request):
    devnet = _devnet(request)
    proposal_id = devnet.gate.compute_proposal_id(
        body.submitter,
        _as_int(body.funding_amount),
        body.funding_asset,
        body.timelock,
        _as_int(body.recipient_id),
        batch=_hex_bytes(body.batch),
        salt=_as_int(body.salt),
        vault=body.vault,
    )
    return {
        "proposal_id": proposal_id,
        "state": devnet.gate.get_proposal_state(proposal_id).value,
    }


@router.get("/proposals/{proposal_id}")
def get_proposal(proposal_id: str, request: Request):
    proposal = _devnet(request).gate.get_proposal(proposal_id)
    if proposal is None:
        raise HTTPException(status_code=404, detail=f"Proposal {proposal_id} not found.")
    return proposal.to_dict()


@router.post("/proposals/{proposal_id}/approve")
def approve(proposal_id: str, request: Request, authorization: str = Header(...)):
    caller = _authenticate_request(request, authorization)
    devnet = _devnet(request)
    unlock_at = devnet.gate.approve(caller.address, proposal_id)
    return _transition_response(devnet, proposal_id, unlock_at=unlock_at)


@router.post("/proposals/{proposal_id}/execute")
def execute(proposal_id: str, request: Request, authorization: str = Header(...)):
    caller = _authenticate_request(request, authorization)
    devnet = _devnet(request)
    receipt = devnet.gate.execute(caller.address, proposal_id)
    return _transition_response(devnet, proposal_id, receipt=receipt.model_dump())


@router.post("/proposals/{proposal_id}/approve-and-execute")
def approve_and_execute(proposal_id: str, request: Request, authorization: str = Header(...)):
    caller = _authenticate_request(request, authorization)
    devnet = _devnet(request)
    receipt = devnet.gate.approve_and_execute(caller.address, proposal_id)
    return _transition_response(devnet, proposal_id, receipt=receipt.model_dump())


@router.post("/proposals/{proposal_id}/escalate")
def escalate(proposal_id: str, request: Request, authorization: str = Header(...)):
    caller = _authenticate_request(request, authorization)
    devnet = _devnet(request)
    devnet.gate.escalate(caller.address, proposal_id)
    return _transition_response(devnet, proposal_id)


@router.post("/proposals/{proposal_id}/reject")
def reject(proposal_id: str, request: Request, authorization: str = Header(...)):
    caller = _authenticate_request(request, authorization)
    devnet = _devnet(request)
    devnet.gate.reject(caller.address, proposal_id)
    return _transition_response(devnet, proposal_id)


@router.post("/proposals/{proposal_id}/cancel")
def cancel(proposal_id: str, request: Request, authorization: str = Header(...)):
    caller = _authenticate_request(request, authorization)
    devnet = _devnet(request)
    devnet.gate.cancel(caller.address, proposal_id)
    return _transition_response(devnet, proposal_id)


@router.post("/withdrawals")
def withdraw(body: WithdrawRequest, request: Request, authorization: str = Header(...)):
    caller = _authenticate_request(request, authorization)
    receipt = _devnet(request).gate.withdraw(
        caller.address,
        _as_int(body.recipient_id),
        body.vault,
        body.asset,
        _as_int(body.amount),
    )
    return receipt.model_dump()


@router.get("/allowances/{vault}/{recipient_id}/{asset}")
def allowance(vault: str, recipient_id: str, asset: str, request: Request):
    amount = _devnet(request).gate.allowance_of(vault, _as_int(recipient_id), asset)
    return {
        "vault": vault.lower(),
        "recipient_id": str(_as_int(recipient_id)),
        "asset": asset.lower(),
        "amount": str(amount),
    }


@router.post("/batch/decode")
def decode_batch(body: BatchDecodeRequest, request: Request):
    entries = _devnet(request).gate.decode_batch(_hex_bytes(body.payload))
    return {"entries": ["0x" + e.hex() for e in entries]}


@router.post("/batch/verify")
def verify_batch(body: BatchVerifyRequest, request: Request):
    ok = _devnet(request).gate.verify_batch(_hex_bytes(body.payload), body.expected_hash)
    return {"valid": ok}


@router.get("/config")
def get_config(request: Request):
    return _devnet(request).gate.config.to_dict()


@router.get("/devnet/roles")
def devnet_roles(request: Request):
    devnet = _devnet(request)
    roles = {name: str(token_id) for name, token_id in devnet.roles.items()}
    roles["approver_branch"] = str(devnet.gate.settings.approver_branch)
    roles["reserved_branch"] = str(devnet.gate.settings.reserved_branch)
    return roles


@router.put("/config")
def update_config(body: ConfigUpdate, request: Request, authorization: str = Header(...)):
    caller = _authenticate_request(request, authorization)
    gate = _devnet(request).gate
    changes = body.model_dump(exclude_none=True)
    for name in ("proposer_token", "executor_token", "escalator_token"):
        if name in changes:
            changes[name] = _as_int(changes[name])
    return gate.update_config(caller.address, **changes).to_dict()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

async def _gate_fault_handler(request: Request, exc: GateFault) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(devnet: Devnet, callers: dict[str, Caller]) -> FastAPI:
    app = FastAPI(title="Governance Gate Gateway", version="1.0.0")
    app.state.devnet = devnet
    app.state.callers = callers
    app.add_exception_handler(GateFault, _gate_fault_handler)
    app.include_router(router)
    return app


_callers = load_callers()
app = create_app(build_devnet(_callers, audit=spine_from_env()), _callers)
