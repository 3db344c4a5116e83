"""
Capability Token Test Suite
Decision-token creation, reserved-namespace checks and deactivation.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from govgate.capabilities import CapabilityTokenManager
from govgate.errors import InvalidReservedBranch, ReservedIdUnavailable
from govgate.memory import DOMAIN_SHIFT, LEVEL_BITS, token_depth

from conftest import GATE


@pytest.fixture
def tokens(env):
    return env.gate.tokens


def test_decision_token_has_no_holder(env, tokens):
    token_id = tokens.create_decision_token("0xabc")
    record = env.registry.tokens[token_id]
    assert env.registry.parent_of(token_id) == env.settings.approver_branch
    assert record.label == "proposal:0xabc"
    assert record.max_supply == 1
    assert record.holders == set()
    assert record.active


def test_next_free_reserved_id_accepted(env, tokens):
    reserved_id = env.registry.get_next_child_id(env.roles["reserved"])
    assert tokens.check_reserved(reserved_id) == env.roles["reserved"]
    assert tokens.create_reserved_token(reserved_id, "0xabc") == reserved_id


def test_taken_reserved_id_rejected(env, tokens):
    taken = env.registry.create_token(env.roles["reserved"], "someone else")
    with pytest.raises(ReservedIdUnavailable) as exc:
        tokens.check_reserved(taken)
    assert exc.value.supplied == taken
    assert exc.value.expected == env.registry.get_next_child_id(env.roles["reserved"])


def test_skipping_ahead_rejected(env, tokens):
    first = env.registry.get_next_child_id(env.roles["reserved"])
    second = first + (1 << (DOMAIN_SHIFT - LEVEL_BITS * token_depth(first)))
    with pytest.raises(ReservedIdUnavailable) as exc:
        tokens.check_reserved(second)
    assert exc.value.expected == first


def test_parent_outside_branch_rejected(env, tokens):
    outside = env.registry.get_next_child_id(env.roles["team"])
    with pytest.raises(InvalidReservedBranch) as exc:
        tokens.check_reserved(outside)
    assert exc.value.parent == env.roles["team"]
    assert exc.value.branch == env.roles["reserved"]


def test_nested_parent_inside_branch_accepted(env, tokens):
    sub = env.registry.create_token(env.roles["reserved"], "sub", max_supply=0)
    reserved_id = env.registry.get_next_child_id(sub)
    assert tokens.check_reserved(reserved_id) == sub


def test_unrestricted_branch(env):
    open_tokens = CapabilityTokenManager(
        env.registry, replace(env.settings, reserved_branch=0),
    )
    outside = env.registry.get_next_child_id(env.roles["team"])
    assert open_tokens.check_reserved(outside) == env.roles["team"]


def test_deactivate_takes_toggle_authority(env, tokens):
    token_id = tokens.create_decision_token("0xabc")
    tokens.deactivate(token_id)
    record = env.registry.tokens[token_id]
    assert not record.active
    assert record.toggle == GATE
