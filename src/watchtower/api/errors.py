# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Error taxonomy for the watchtower.

Expected, self-resolving conditions (nothing elapsed, epoch not finalized yet,
task already running, already submitted) are NOT exceptions: tasks report
them as outcomes. The classes below cover genuine failures. Task runs log them
and clear their single-flight flag; the next scheduler tick starts over.
"""


class WatchtowerError(Exception):
    """Base class for all watchtower errors."""

    ...


class ConfigurationError(WatchtowerError):
    """
    Invalid configuration or malformed chain parameters (zero interval duration,
    zero slots per epoch, missing contract address). Aborts the current attempt
    of the affected task only.
    """

    ...


class ChainReadError(WatchtowerError):
    """A chain-state read returned something unusable (missing header, short observation)."""

    ...


class SlotSearchExhausted(WatchtowerError):
    """No proposed consensus block was found within the allowed backward search depth."""

    def __init__(self, start_slot: int, depth: int) -> None:
        super().__init__(
            f"no proposed block found in {depth} slots walking back from slot {start_slot}"
        )
        self.start_slot = start_slot
        self.depth = depth


class ArtifactError(WatchtowerError):
    """Reading, writing or decoding a local rewards artifact failed."""

    ...


class DistributionError(WatchtowerError):
    """Uploading an artifact to the distribution network failed."""

    ...


class SubmissionError(WatchtowerError):
    """Preparing, sending or confirming an on-chain transaction failed."""

    ...


class SimulationError(SubmissionError):
    """The transaction layer reported that the call would revert."""

    ...


class RelaySubmissionError(SubmissionError):
    """A single cross-chain relay target failed; collected with the others."""

    def __init__(self, target: str, cause: BaseException) -> None:
        super().__init__(f"{target} rate relay failed: {cause}")
        self.target = target
        self.cause = cause
