# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Chain-facing contracts: state snapshots, read-side clients and the transaction layer.
"""

from .clients import (
    BeaconClient,
    DistributionClient,
    ExecutionClient,
    RateMessengerReader,
    StateManager,
    StorageReader,
    TwapPool,
)
from .state import BeaconBlock, BeaconConfig, BeaconHead, BlockHeader, NetworkDetails, NetworkState, OracleMember
from .transactions import ContractCall, FeeOracle, FeeParams, GasEstimate, TransactionLayer, TxHandle

__all__ = [
    "BeaconBlock",
    "BeaconClient",
    "BeaconConfig",
    "BeaconHead",
    "BlockHeader",
    "ContractCall",
    "DistributionClient",
    "ExecutionClient",
    "FeeOracle",
    "FeeParams",
    "GasEstimate",
    "NetworkDetails",
    "NetworkState",
    "OracleMember",
    "RateMessengerReader",
    "StateManager",
    "StorageReader",
    "TransactionLayer",
    "TwapPool",
    "TxHandle",
]
