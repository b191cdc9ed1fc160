# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Interface to the external rewards generator.

The rewards/Merkle algorithm is not part of this package. The watchtower hands
the generator a fully-resolved request (snapshot blocks, the state at the
snapshot and the number of intervals to fold) and persists what comes back.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..chain.state import NetworkState
from ..core.types import BlockNumber, Slot, TimestampSec
from .artifact import RewardsArtifact


@dataclass(frozen=True)
class GenerationRequest:
    interval_index: int
    intervals_passed: int
    start_time: TimestampSec
    end_time: TimestampSec
    snapshot_slot: Slot
    snapshot_block: BlockNumber
    state: NetworkState


@dataclass(frozen=True)
class GenerationResult:
    artifact: RewardsArtifact
    performance_bytes: bytes = b""


@runtime_checkable
class RewardsGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Deterministically compute the rewards artifact for `request`."""
        ...
