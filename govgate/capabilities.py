"""
Capability Token Lifecycle

Creates the per-proposal decision-authority token and the optional
reserved-namespace token, and deactivates them when the proposal leaves
the state they were needed for. Creation never assigns a holder; a trusted
allocator hands the decision token out separately.
"""

from __future__ import annotations

from govgate.config import GateSettings
from govgate.errors import InvalidReservedBranch, ReservedIdUnavailable
from govgate.registry import NO_DELEGATE, CapabilityRegistry


class CapabilityTokenManager:
    def __init__(self, registry: CapabilityRegistry, settings: GateSettings):
        self.registry = registry
        self.settings = settings

    def create_decision_token(self, proposal_id: str) -> int:
        """Mint the single-use decision token under the approver branch."""
        return self.registry.create_token(
            self.settings.approver_branch,
            f"proposal:{proposal_id}",
            max_supply=1,
            eligibility=NO_DELEGATE,
            toggle=NO_DELEGATE,
            mutable=True,
        )

    def check_reserved(self, reserved_id: int) -> int:
        """Validate a reserved-namespace request and return its parent.

        The registry's next free id under the parent must be exactly
        *reserved_id*, so two proposals cannot race for the same slot.
        """
        parent = self.registry.parent_of(reserved_id)
        expected = self.registry.get_next_child_id(parent)
        if expected != reserved_id:
            raise ReservedIdUnavailable(expected, reserved_id)
        branch = self.settings.reserved_branch
        if branch and parent != branch and not self.registry.is_descendant(parent, branch):
            raise InvalidReservedBranch(parent, branch)
        return parent

    def create_reserved_token(self, reserved_id: int, proposal_id: str) -> int:
        parent = self.check_reserved(reserved_id)
        created = self.registry.create_token(
            parent,
            f"reserved:{proposal_id}",
            max_supply=1,
            eligibility=NO_DELEGATE,
            toggle=NO_DELEGATE,
            mutable=True,
        )
        if created != reserved_id:
            raise ReservedIdUnavailable(created, reserved_id)
        return created

    def deactivate(self, token_id: int) -> None:
        """Take toggle authority, then switch the token off for good."""
        self.registry.set_toggle_authority(token_id, self.settings.gate_address)
        self.registry.set_active(token_id, False)
