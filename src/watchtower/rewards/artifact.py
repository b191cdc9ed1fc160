# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Rewards artifact model and its on-disk, generation-keyed cache.

An artifact is only reusable while the number of elapsed intervals it was
generated for (`intervals_passed`) equals the number the chain shows now. Any
mismatch, unreadable file or schema violation means "regenerate"; there is no
partial reuse. This makes generation idempotent across restarts: a crash after
writing the artifact but before submitting it resumes from the file.
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..api.errors import ArtifactError
from ..core.log import get_logger
from ..core.types import StrPath

ARTIFACT_VERSION = 1
COMPRESSED_EXTENSION = ".zst"


class NetworkRewards(BaseModel):
    """Per-network reward totals, in wei."""

    model_config = ConfigDict(extra="forbid")

    collateral_reward: int = Field(0, ge=0)
    oracle_reward: int = Field(0, ge=0)
    pool_reward: int = Field(0, ge=0)


class RewardsArtifact(BaseModel):
    """
    Header and payload of a rewards artifact for one (possibly folded) interval.

    Fields:
        interval_index: Reward interval this artifact settles.
        intervals_passed: How many whole intervals it covers. Verifiers use it to
            validate that several missed intervals were rolled into one.
        merkle_root: 0x-prefixed 32-byte root over `nodes`.
        network_rewards: Totals per network id (0 = mainnet).
        performance_file_cid: CID of the companion performance artifact, or "---"
            when it was saved locally only.
        content_id: CID this artifact was distributed under; empty until then.
            It is excluded from the distributed bytes (see `canonical_bytes`).
        nodes: Generator-specific per-node claims and proofs, opaque here.
    """

    model_config = ConfigDict(extra="forbid")

    version: int = ARTIFACT_VERSION
    interval_index: int = Field(ge=0)
    intervals_passed: int = Field(ge=1)
    start_time: int
    end_time: int
    consensus_end_block: int = Field(ge=0)
    execution_end_block: int = Field(ge=0)
    merkle_root: str
    network_rewards: dict[int, NetworkRewards] = Field(default_factory=dict)
    treasury_reward: int = Field(0, ge=0)
    pool_staker_reward: int = Field(0, ge=0)
    performance_file_cid: str = ""
    content_id: str = ""
    nodes: dict[str, Any] = Field(default_factory=dict)

    def to_bytes(self) -> bytes:
        return self.model_dump_json(indent=2).encode("utf-8")

    def canonical_bytes(self) -> bytes:
        """Bytes that get distributed and content-addressed: everything but `content_id`."""
        return self.model_dump_json(indent=2, exclude={"content_id"}).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> RewardsArtifact:
        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            raise ArtifactError(f"malformed rewards artifact: {e.error_count()} validation error(s)") from e


@dataclass(frozen=True)
class ArtifactPaths:
    """File locations for one interval, all inside the configured artifact directory."""

    rewards: Path
    performance: Path

    @classmethod
    def for_interval(cls, artifact_dir: StrPath, index: int) -> ArtifactPaths:
        base = Path(artifact_dir)
        return cls(rewards=base / f"rewards-{index}.json", performance=base / f"performance-{index}.json")

    @property
    def rewards_compressed(self) -> Path:
        return compressed_path(self.rewards)

    @property
    def performance_compressed(self) -> Path:
        return compressed_path(self.performance)


def compressed_path(path: Path) -> Path:
    """Where the compressed copy of `path` is kept: same directory, `.zst` appended."""
    return path.with_name(path.name + COMPRESSED_EXTENSION)


def write_atomic(path: Path, data: bytes) -> None:
    """Write via a sibling temp file and rename, so readers never see a torn artifact."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    except OSError as e:
        raise ArtifactError(f"error saving {path}: {e}") from e
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, path)
    except OSError as e:
        Path(tmp).unlink(missing_ok=True)
        raise ArtifactError(f"error saving {path}: {e}") from e


class ArtifactCache:
    """Generation-count keyed cache of rewards artifacts on local storage."""

    def __init__(self) -> None:
        self.log = get_logger("artifacts")

    def is_valid(self, path: StrPath, current_intervals_passed: int) -> bool:
        path = Path(path)
        if not path.exists():
            return False
        try:
            artifact = self.load(path)
        except ArtifactError as e:
            self.log.warning(
                f"failed to load {path}: {e}; regenerating",
                event="artifact.unreadable",
                path=str(path),
            )
            return False
        if artifact.intervals_passed != current_intervals_passed:
            self.log.info(
                f"Existing artifact for interval {artifact.interval_index} covered {artifact.intervals_passed} "
                f"interval(s) but {current_intervals_passed} have passed now; regenerating",
                event="artifact.stale",
                path=str(path),
                stored=artifact.intervals_passed,
                current=current_intervals_passed,
            )
            return False
        return True

    def read_bytes(self, path: StrPath) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise ArtifactError(f"error reading {path}: {e}") from e

    def load(self, path: StrPath) -> RewardsArtifact:
        return RewardsArtifact.from_bytes(self.read_bytes(path))

    def save(self, path: StrPath, artifact: RewardsArtifact) -> bytes:
        """Persist `artifact`, overwriting any stale one, and return the bytes written."""
        data = artifact.to_bytes()
        write_atomic(Path(path), data)
        return data
