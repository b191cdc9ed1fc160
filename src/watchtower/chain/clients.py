# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Read-side chain collaborators.

The watchtower never talks to RPC endpoints directly. Callers provide
implementations of these protocols (web3/beacon-API backed in production,
in-memory fakes in tests). Implementations own timeouts and retries; errors
they raise propagate unchanged through the tasks.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ..core.types import Address, BlockNumber, Slot
from .state import BeaconBlock, BeaconHead, BlockHeader, NetworkState


@runtime_checkable
class StateManager(Protocol):
    """Builds `NetworkState` snapshots from batched contract reads."""

    async def get_head_state(self) -> tuple[NetworkState, bool]:
        """Return the latest finalized-enough state and whether this node is an oracle member."""
        ...

    async def get_state_for_slot(self, slot: Slot) -> NetworkState:
        """Build the state at a historical consensus slot (and its execution block)."""
        ...


@runtime_checkable
class BeaconClient(Protocol):
    async def get_beacon_head(self) -> BeaconHead: ...

    async def get_beacon_block(self, slot: Slot) -> BeaconBlock | None:
        """Return the block proposed at `slot`, or None if the slot was missed."""
        ...


@runtime_checkable
class ExecutionClient(Protocol):
    async def header_by_number(self, number: BlockNumber) -> BlockHeader: ...


@runtime_checkable
class StorageReader(Protocol):
    """Generic boolean storage of the protocol's key/value storage contract."""

    async def get_bool(self, key: bytes, *, block: BlockNumber | None = None) -> bool: ...


@runtime_checkable
class RateMessengerReader(Protocol):
    async def are_rates_stale(self, messengers: Sequence[Address], *, block: BlockNumber) -> list[bool]:
        """Read `isRateStale()` of every messenger in ONE batched call; results keep input order."""
        ...


@runtime_checkable
class TwapPool(Protocol):
    async def observe(self, pool: Address, seconds_ago: Sequence[int], *, block: BlockNumber) -> list[int]:
        """Return the pool's tick cumulatives for each `seconds_ago` entry, read at `block`."""
        ...


@runtime_checkable
class DistributionClient(Protocol):
    async def upload(self, data: bytes, *, name: str) -> str:
        """Publish a blob and return its content identifier."""
        ...
