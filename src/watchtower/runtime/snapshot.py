# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Snapshot block resolution.

Every oracle node independently maps an interval end time to the same
consensus slot: the last slot of the epoch containing the end time. The
snapshot is only usable once the epoch *after* it is finalized, so late
attestations for the target epoch are already accounted for. Missed slots are
skipped by walking backward to the nearest proposed block.
"""

from dataclasses import dataclass

from ..api.errors import SlotSearchExhausted
from ..chain.clients import BeaconClient
from ..chain.state import BeaconConfig
from ..core.log import get_logger
from ..core.time import format_unix
from ..core.types import BlockNumber, Epoch, Slot, TimestampSec


@dataclass(frozen=True)
class SnapshotTarget:
    end_time: TimestampSec
    target_slot: Slot
    target_epoch: Epoch
    required_finalized_epoch: Epoch
    resolved_consensus_block: Slot | None = None
    resolved_execution_block: BlockNumber | None = None

    @property
    def is_resolved(self) -> bool:
        return self.resolved_consensus_block is not None


def compute_target(end_time: TimestampSec, beacon_config: BeaconConfig) -> SnapshotTarget:
    """Epoch-aligned target slot for `end_time`, before any finality check."""
    span = end_time - beacon_config.genesis_time
    slot = max(0, -(-span // beacon_config.seconds_per_slot))  # ceil
    epoch = slot // beacon_config.slots_per_epoch
    return SnapshotTarget(
        end_time=end_time,
        target_slot=epoch * beacon_config.slots_per_epoch + (beacon_config.slots_per_epoch - 1),
        target_epoch=epoch,
        required_finalized_epoch=epoch + 1,
    )


class SnapshotBlockResolver:
    """Resolves interval end times into finalized, proposed consensus blocks."""

    def __init__(self, beacon: BeaconClient, *, max_backtrack: int | None = None) -> None:
        self.beacon = beacon
        self.max_backtrack = max_backtrack
        self.log = get_logger("snapshot")

    async def resolve(
        self,
        end_time: TimestampSec,
        beacon_config: BeaconConfig,
        finalized_epoch: Epoch | None = None,
    ) -> SnapshotTarget:
        """
        Return the snapshot for `end_time`.

        If the required epoch is not finalized yet the returned target is
        unresolved (`is_resolved` is False) and the caller should retry on a
        later tick. When `finalized_epoch` is None the beacon head is queried.

        Raises:
            SlotSearchExhausted: if no proposed block exists within the search depth.
        """
        target = compute_target(end_time, beacon_config)
        if finalized_epoch is None:
            finalized_epoch = (await self.beacon.get_beacon_head()).finalized_epoch

        if finalized_epoch < target.required_finalized_epoch:
            self.log.info(
                f"Snapshot end time = {format_unix(end_time)}, slot (epoch) = {target.target_slot} "
                f"({target.target_epoch}); waiting until epoch {target.required_finalized_epoch} "
                f"is finalized (currently {finalized_epoch})",
                event="snapshot.waiting_finality",
                target_slot=target.target_slot,
                required_epoch=target.required_finalized_epoch,
                finalized_epoch=finalized_epoch,
            )
            return target

        depth = self.max_backtrack or 2 * beacon_config.slots_per_epoch
        slot = target.target_slot
        for _ in range(depth):
            if slot < 0:
                break
            block = await self.beacon.get_beacon_block(slot)
            if block is not None:
                return SnapshotTarget(
                    end_time=target.end_time,
                    target_slot=target.target_slot,
                    target_epoch=target.target_epoch,
                    required_finalized_epoch=target.required_finalized_epoch,
                    resolved_consensus_block=slot,
                    resolved_execution_block=block.execution_block_number,
                )
            self.log.info(f"Slot {slot} was missing, trying the previous one", event="snapshot.slot_missing", slot=slot)
            slot -= 1

        raise SlotSearchExhausted(target.target_slot, depth)
