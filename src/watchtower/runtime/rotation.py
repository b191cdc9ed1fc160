# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Round-robin submitter rotation among oracle members.

Every member evaluates the same pure formula over a public value (the block
number), so exactly one member is "on duty" per window of `blocks_per_turn`
blocks without any messages being exchanged. Nothing is persisted: the member
list is re-read from chain state on every call, and an offline leader simply
lets its window pass to the next member.
"""

from collections.abc import Sequence

from ..api.errors import ConfigurationError
from ..chain.state import OracleMember
from ..core.types import Address, BlockNumber
from ..core.utils import same_address

DEFAULT_BLOCKS_PER_TURN = 75  # ~15 minutes of 12s blocks


def selected_index(block_number: BlockNumber, blocks_per_turn: int, member_count: int) -> int:
    if blocks_per_turn <= 0:
        raise ConfigurationError(f"blocks_per_turn must be positive, got {blocks_per_turn}")
    if member_count <= 0:
        raise ConfigurationError(f"member_count must be positive, got {member_count}")
    return (block_number // blocks_per_turn) % member_count


def is_my_turn(self_index: int, block_number: BlockNumber, blocks_per_turn: int, member_count: int) -> bool:
    return self_index == selected_index(block_number, blocks_per_turn, member_count)


def member_index(members: Sequence[OracleMember], address: Address) -> int | None:
    """Position of `address` in the on-chain member order, or None for non-members."""
    for i, m in enumerate(members):
        if same_address(m.address, address):
            return i
    return None
