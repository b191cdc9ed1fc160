from .base import TransactionSubmitter
from .prices import PriceObservationTask, PriceOutcome
from .relay import CrossChainRelayTask, RelayReport
from .rewards import RewardsOutcome, RewardsSubmissionTask

__all__ = [
    "CrossChainRelayTask",
    "PriceObservationTask",
    "PriceOutcome",
    "RelayReport",
    "RewardsOutcome",
    "RewardsSubmissionTask",
    "TransactionSubmitter",
]
