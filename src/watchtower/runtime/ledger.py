# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Duplicate-submission probe backed by on-chain storage flags.

The protocol records each oracle submission as a boolean in its storage
contract under

    keccak256(tag ‖ address[20] ‖ uint256_be(subject) [‖ uint256_be(value)])

The chain is the authority: a local artifact or a local "done" marker never
overrides what this probe reads.
"""

from web3 import Web3

from ..chain.clients import StorageReader
from ..core.log import get_logger
from ..core.types import Address, BlockNumber
from ..core.utils import address_bytes, uint256_be

REWARDS_SNAPSHOT_TAG = "rewards.snapshot.submitted.node"
PRICES_SUBMITTED_TAG = "network.prices.submitted.node.key"


def submission_key(tag: str, address: Address, subject: int, value: int | None = None) -> bytes:
    """32-byte storage key for a submission flag."""
    parts = [tag.encode("utf-8"), address_bytes(address), uint256_be(subject)]
    if value is not None:
        parts.append(uint256_be(value))
    return bytes(Web3.keccak(b"".join(parts)))


class SubmissionLedgerProbe:
    """Reads "already recorded" flags for this node's submissions."""

    def __init__(self, storage: StorageReader) -> None:
        self.storage = storage
        self.log = get_logger("ledger")

    async def has_submitted(
        self,
        tag: str,
        address: Address,
        subject: int,
        value: int | None = None,
        *,
        block: BlockNumber | None = None,
    ) -> bool:
        """
        True if `address` has a recorded submission for `subject` (and, when
        given, for exactly `value`). `block` pins the read to a historical block.
        """
        key = submission_key(tag, address, subject, value)
        recorded = await self.storage.get_bool(key, block=block)
        self.log.debug(
            "submission flag read",
            event="ledger.read",
            tag=tag,
            subject=subject,
            with_value=value is not None,
            key="0x" + key.hex(),
            recorded=recorded,
        )
        return bool(recorded)
