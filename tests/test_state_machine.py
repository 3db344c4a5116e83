"""
Proposal State Machine Test Suite
Lifecycle scenarios, the illegal (state, operation) grid, pause semantics,
timelocks and the one-step approve-and-execute path.
"""

from __future__ import annotations

import pytest

from govgate.audit import verify_chain
from govgate.config import PUBLIC_EXECUTION
from govgate.errors import (
    AlreadyUsed,
    InvalidBatch,
    InvalidFundingAmount,
    InvalidState,
    ProposalsPaused,
    TooEarly,
    Unauthorized,
    ValueOutOfRange,
)
from govgate.identity import (
    MAX_AMOUNT,
    MAX_UINT256,
    NATIVE_ASSET,
    ZERO_HASH,
    batch_hash,
    encode_batch,
)
from govgate.proposals import ALLOWED_FROM, ProposalState

from conftest import (
    APPROVER,
    ESCALATOR,
    EXECUTOR,
    OUTSIDER,
    OWNER,
    PROPOSER,
    START_TIME,
    VAULT,
)


def _reserved_id(env) -> int:
    return env.registry.get_next_child_id(env.roles["reserved"])


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

def test_propose_approve_execute(env):
    proposal_id = env.propose_assigned(funding_amount=1000)
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.ACTIVE

    unlock_at = env.gate.approve(APPROVER, proposal_id)
    assert unlock_at == START_TIME
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.APPROVED

    receipt = env.gate.execute(EXECUTOR, proposal_id)
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.EXECUTED
    assert env.gate.allowance_of(VAULT, env.roles["recipient"], NATIVE_ASSET) == 1000
    assert receipt.balance_after == "1000"
    assert receipt.entries_applied == 0


def test_lifecycle_events_form_a_chain(env):
    proposal_id = env.executed()
    types = [e["action_type"] for e in env.audit.events_for_proposal(proposal_id)]
    assert types == [
        "PROPOSAL_CREATED",
        "PROPOSAL_APPROVED",
        "TOKEN_DEACTIVATED",
        "PROPOSAL_EXECUTED",
    ]
    assert verify_chain(env.audit.events)


def test_creation_event_carries_hash_not_entries(env):
    payload = encode_batch([b"entry"])
    proposal_id = env.propose(batch=payload)
    created = env.audit.events_for_proposal(proposal_id)[0]
    assert created["intent_payload"]["batch_hash"] == batch_hash(payload)
    assert "batch" not in created["intent_payload"]


def test_record_fields_are_immutable(env):
    proposal_id = env.propose_assigned(funding_amount=42, timelock=0, salt=3)
    before = env.gate.get_proposal(proposal_id)
    env.gate.approve(APPROVER, proposal_id)
    env.gate.execute(EXECUTOR, proposal_id)
    after = env.gate.get_proposal(proposal_id)
    for name in ("submitter", "funding_amount", "funding_asset", "timelock",
                 "vault", "recipient_id", "decision_token", "batch_hash"):
        assert getattr(after, name) == getattr(before, name)


def test_unknown_id_reads_as_none(env):
    assert env.gate.get_proposal_state("0x" + "ab" * 32) == ProposalState.NONE
    assert env.gate.get_proposal("0x" + "ab" * 32) is None


def test_compute_id_predicts_propose(env):
    predicted = env.gate.compute_proposal_id(
        PROPOSER, 1000, NATIVE_ASSET, 0, env.roles["recipient"], salt=9,
    )
    assert env.gate.get_proposal_state(predicted) == ProposalState.NONE
    assert env.propose(salt=9) == predicted


# ---------------------------------------------------------------------------
# propose
# ---------------------------------------------------------------------------

def test_same_parameters_same_salt_already_used(env):
    first = env.propose(salt=1)
    with pytest.raises(AlreadyUsed) as exc:
        env.propose(salt=1)
    assert exc.value.proposal_id == first

    second = env.propose(salt=2)
    assert second != first
    assert env.gate.get_proposal_state(second) == ProposalState.ACTIVE


def test_propose_requires_proposer(env):
    with pytest.raises(Unauthorized) as exc:
        env.propose(caller=OUTSIDER)
    assert exc.value.capability == "proposer"


def test_propose_while_paused(env):
    env.gate.controller.set_proposals_paused(OWNER, True)
    with pytest.raises(ProposalsPaused):
        env.propose()


def test_propose_amount_range(env):
    env.propose(funding_amount=MAX_AMOUNT)
    with pytest.raises(InvalidFundingAmount):
        env.propose(funding_amount=MAX_AMOUNT + 1)


@pytest.mark.parametrize("field,value", [
    ("salt", -1),
    ("salt", MAX_UINT256 + 1),
    ("recipient_id", -1),
    ("timelock", -1),
    ("reserved_id", -1),
])
def test_propose_rejects_values_outside_a_word(env, field, value):
    events_before = len(env.audit.events)
    with pytest.raises(ValueOutOfRange) as exc:
        env.propose(**{field: value})
    assert exc.value.field == field
    assert exc.value.status_code == 422
    assert len(env.audit.events) == events_before


def test_compute_id_rejects_values_outside_a_word(env):
    with pytest.raises(ValueOutOfRange) as exc:
        env.gate.compute_proposal_id(
            PROPOSER, 1000, NATIVE_ASSET, 0, env.roles["recipient"], salt=-1,
        )
    assert exc.value.field == "salt"
    with pytest.raises(InvalidFundingAmount):
        env.gate.compute_proposal_id(
            PROPOSER, MAX_AMOUNT + 1, NATIVE_ASSET, 0, env.roles["recipient"],
        )


def test_propose_rejects_malformed_batch(env):
    with pytest.raises(InvalidBatch):
        env.propose(batch=b"\x01\x02\x03\x04\x05")


def test_empty_batch_hash_is_zero(env):
    proposal_id = env.propose()
    assert env.gate.get_proposal(proposal_id).batch_hash == ZERO_HASH


def test_failed_propose_creates_nothing(env):
    tokens_before = len(env.registry.tokens)
    events_before = len(env.audit.events)
    with pytest.raises(InvalidBatch):
        env.propose(batch=b"\xff" * 40)
    assert len(env.registry.tokens) == tokens_before
    assert len(env.audit.events) == events_before


def test_propose_with_reserved_token(env):
    reserved_id = _reserved_id(env)
    proposal_id = env.propose(reserved_id=reserved_id)
    proposal = env.gate.get_proposal(proposal_id)
    assert proposal.reserved_token == reserved_id
    assert env.registry.is_active(reserved_id)


# ---------------------------------------------------------------------------
# approve / execute
# ---------------------------------------------------------------------------

def test_approve_requires_decision_token(env):
    proposal_id = env.propose_assigned()
    with pytest.raises(Unauthorized) as exc:
        env.gate.approve(OUTSIDER, proposal_id)
    assert exc.value.capability == "decision-authority"


def test_approve_deactivates_decision_token(env):
    proposal_id = env.approved()
    decision = env.gate.get_proposal(proposal_id).decision_token
    assert not env.registry.is_active(decision)
    assert not env.registry.is_holder(APPROVER, decision)


def test_execute_before_unlock(env):
    proposal_id = env.approved(timelock=60)
    with pytest.raises(TooEarly) as exc:
        env.gate.execute(EXECUTOR, proposal_id)
    assert exc.value.unlock_at == START_TIME + 60
    assert exc.value.now == START_TIME

    env.clock.advance(60)
    env.gate.execute(EXECUTOR, proposal_id)
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.EXECUTED


def test_execute_requires_executor(env):
    proposal_id = env.approved()
    with pytest.raises(Unauthorized) as exc:
        env.gate.execute(OUTSIDER, proposal_id)
    assert exc.value.capability == "executor"


def test_public_execution(env):
    env.gate.controller.set_executor_token(OWNER, PUBLIC_EXECUTION)
    proposal_id = env.approved()
    env.gate.execute(OUTSIDER, proposal_id)
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.EXECUTED


def test_execute_while_paused(env):
    proposal_id = env.approved()
    env.gate.controller.set_proposals_paused(OWNER, True)
    with pytest.raises(ProposalsPaused):
        env.gate.execute(EXECUTOR, proposal_id)
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.APPROVED


def test_approve_ignores_pause(env):
    proposal_id = env.propose_assigned()
    env.gate.controller.set_proposals_paused(OWNER, True)
    env.gate.approve(APPROVER, proposal_id)
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.APPROVED


# ---------------------------------------------------------------------------
# approve_and_execute
# ---------------------------------------------------------------------------

def test_approve_and_execute(env):
    proposal_id = env.propose_assigned(funding_amount=250)
    decision = env.gate.get_proposal(proposal_id).decision_token

    receipt = env.gate.approve_and_execute(APPROVER, proposal_id)

    assert receipt.executor == APPROVER
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.EXECUTED
    assert env.gate.get_proposal(proposal_id).unlock_at == START_TIME
    assert env.gate.allowance_of(VAULT, env.roles["recipient"], NATIVE_ASSET) == 250
    assert not env.registry.is_active(decision)


def test_approve_and_execute_needs_zero_timelock(env):
    proposal_id = env.propose_assigned(timelock=3600)
    with pytest.raises(TooEarly) as exc:
        env.gate.approve_and_execute(APPROVER, proposal_id)
    assert exc.value.unlock_at == START_TIME + 3600
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.ACTIVE


def test_approve_and_execute_needs_executor(env):
    proposal_id = env.propose_assigned(holder=ESCALATOR)
    with pytest.raises(Unauthorized) as exc:
        env.gate.approve_and_execute(ESCALATOR, proposal_id)
    assert exc.value.capability == "executor"
    decision = env.gate.get_proposal(proposal_id).decision_token
    assert env.registry.is_holder(ESCALATOR, decision)


def test_approve_and_execute_needs_decision_token(env):
    proposal_id = env.propose_assigned()
    with pytest.raises(Unauthorized) as exc:
        env.gate.approve_and_execute(EXECUTOR, proposal_id)
    assert exc.value.capability == "decision-authority"


# ---------------------------------------------------------------------------
# exits
# ---------------------------------------------------------------------------

def test_reject_with_reserved_token(env):
    reserved_id = _reserved_id(env)
    proposal_id = env.propose_assigned(reserved_id=reserved_id)
    decision = env.gate.get_proposal(proposal_id).decision_token

    env.gate.reject(APPROVER, proposal_id)

    assert env.gate.get_proposal_state(proposal_id) == ProposalState.REJECTED
    assert not env.registry.is_active(decision)
    assert not env.registry.is_active(reserved_id)


def test_reject_requires_decision_token(env):
    proposal_id = env.propose_assigned()
    with pytest.raises(Unauthorized):
        env.gate.reject(OUTSIDER, proposal_id)


def test_escalate_keeps_reserved_token(env):
    reserved_id = _reserved_id(env)
    proposal_id = env.propose_assigned(reserved_id=reserved_id)
    decision = env.gate.get_proposal(proposal_id).decision_token

    env.gate.escalate(ESCALATOR, proposal_id)

    assert env.gate.get_proposal_state(proposal_id) == ProposalState.ESCALATED
    assert not env.registry.is_active(decision)
    assert env.registry.is_active(reserved_id)


def test_escalate_from_approved(env):
    proposal_id = env.approved()
    env.gate.escalate(ESCALATOR, proposal_id)
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.ESCALATED
    deactivations = [
        e for e in env.audit.events_for_proposal(proposal_id)
        if e["action_type"] == "TOKEN_DEACTIVATED"
    ]
    assert len(deactivations) == 1


def test_escalate_requires_escalator(env):
    proposal_id = env.propose_assigned()
    with pytest.raises(Unauthorized) as exc:
        env.gate.escalate(APPROVER, proposal_id)
    assert exc.value.capability == "escalator"


def test_cancel_from_approved(env):
    reserved_id = _reserved_id(env)
    proposal_id = env.approved(reserved_id=reserved_id)
    env.gate.cancel(PROPOSER, proposal_id)
    assert env.gate.get_proposal_state(proposal_id) == ProposalState.CANCELED
    assert not env.registry.is_active(reserved_id)


def test_cancel_only_by_submitter(env):
    proposal_id = env.propose()
    with pytest.raises(Unauthorized) as exc:
        env.gate.cancel(OWNER, proposal_id)
    assert exc.value.capability == "submitter"


@pytest.mark.parametrize("exit_op", ["escalate", "reject", "cancel"])
def test_exits_ignore_pause(env, exit_op):
    proposal_id = env.propose_assigned()
    env.gate.controller.set_proposals_paused(OWNER, True)
    caller = {"escalate": ESCALATOR, "reject": APPROVER, "cancel": PROPOSER}[exit_op]
    getattr(env.gate, exit_op)(caller, proposal_id)
    assert env.gate.get_proposal_state(proposal_id) in (
        ProposalState.ESCALATED, ProposalState.REJECTED, ProposalState.CANCELED,
    )


# ---------------------------------------------------------------------------
# Illegal transitions
# ---------------------------------------------------------------------------

def _in_state(env, state: ProposalState) -> str:
    if state == ProposalState.NONE:
        return "0x" + "ab" * 32
    if state == ProposalState.ACTIVE:
        return env.propose_assigned()
    if state == ProposalState.APPROVED:
        return env.approved()
    if state == ProposalState.EXECUTED:
        return env.executed()
    proposal_id = env.propose_assigned()
    if state == ProposalState.ESCALATED:
        env.gate.escalate(ESCALATOR, proposal_id)
    elif state == ProposalState.REJECTED:
        env.gate.reject(APPROVER, proposal_id)
    else:
        env.gate.cancel(PROPOSER, proposal_id)
    return proposal_id


OPERATIONS = {
    "approve": lambda gate, pid: gate.approve(APPROVER, pid),
    "execute": lambda gate, pid: gate.execute(EXECUTOR, pid),
    "approve_and_execute": lambda gate, pid: gate.approve_and_execute(APPROVER, pid),
    "escalate": lambda gate, pid: gate.escalate(ESCALATOR, pid),
    "reject": lambda gate, pid: gate.reject(APPROVER, pid),
    "cancel": lambda gate, pid: gate.cancel(PROPOSER, pid),
}

ILLEGAL = [
    (state, op)
    for state in ProposalState
    for op in OPERATIONS
    if state not in ALLOWED_FROM[op]
]


@pytest.mark.parametrize(
    "state,op", ILLEGAL, ids=[f"{s.value}-{op}" for s, op in ILLEGAL],
)
def test_illegal_transition(env, state, op):
    proposal_id = _in_state(env, state)
    before = env.gate.get_proposal(proposal_id)
    events_before = len(env.audit.events)

    with pytest.raises(InvalidState) as exc:
        OPERATIONS[op](env.gate, proposal_id)

    assert exc.value.state == state
    assert env.gate.get_proposal(proposal_id) == before
    assert len(env.audit.events) == events_before
