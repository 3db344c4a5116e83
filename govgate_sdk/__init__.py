from govgate_sdk.client import GateClient
from govgate_sdk.models import ProposalResult, TransitionResult, WithdrawalResult

__all__ = ["GateClient", "ProposalResult", "TransitionResult", "WithdrawalResult"]
