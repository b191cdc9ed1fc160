# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Point-in-time chain state consumed by the watchtower tasks.

A `NetworkState` is produced by an external state manager for a specific
consensus slot / execution block and is treated as immutable once read. Tasks
never cache it across invocations: membership, interval boundaries and price
checkpoints are re-read on every tick.
"""

from dataclasses import dataclass, field

from ..api.errors import ConfigurationError
from ..core.types import Address, BlockNumber, Epoch, Slot, TimestampSec


@dataclass(frozen=True)
class BeaconConfig:
    genesis_time: TimestampSec
    seconds_per_slot: int
    slots_per_epoch: int

    def __post_init__(self) -> None:
        if self.seconds_per_slot <= 0 or self.slots_per_epoch <= 0:
            raise ConfigurationError(
                f"malformed beacon config: seconds_per_slot={self.seconds_per_slot}, "
                f"slots_per_epoch={self.slots_per_epoch}"
            )

    def epoch_of(self, slot: Slot) -> Epoch:
        return slot // self.slots_per_epoch

    def slot_time(self, slot: Slot) -> TimestampSec:
        return self.genesis_time + self.seconds_per_slot * slot


@dataclass(frozen=True)
class NetworkDetails:
    """Protocol values the tasks read: the current reward interval and price checkpoints."""

    reward_index: int
    interval_start: TimestampSec
    interval_duration: int
    submit_prices_enabled: bool = True
    prices_block: BlockNumber = 0
    latest_reportable_prices_block: BlockNumber = 0


@dataclass(frozen=True)
class OracleMember:
    address: Address
    joined_time: TimestampSec = 0


@dataclass(frozen=True)
class NetworkState:
    beacon_config: BeaconConfig
    beacon_slot_number: Slot
    el_block_number: BlockNumber
    network_details: NetworkDetails
    oracle_members: tuple[OracleMember, ...] = field(default_factory=tuple)

    @property
    def chain_time(self) -> TimestampSec:
        """Wall time of the slot this state was read at."""
        return self.beacon_config.slot_time(self.beacon_slot_number)


@dataclass(frozen=True)
class BeaconHead:
    head_slot: Slot
    finalized_epoch: Epoch


@dataclass(frozen=True)
class BeaconBlock:
    slot: Slot
    execution_block_number: BlockNumber


@dataclass(frozen=True)
class BlockHeader:
    number: BlockNumber
    timestamp: TimestampSec
