# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Rewards snapshot task.

One `run()` walks the pipeline

    interval check -> snapshot resolution -> artifact reuse or generation
        -> distribution -> duplicate check -> submission

and reports where it stopped as a `RewardsOutcome`. Reusing a cached artifact
happens inline; generating one is handed to a single-flight background run so
the scheduler keeps polling the other tasks meanwhile. Anything that goes
wrong ends the attempt; the next tick re-evaluates from the interval check,
which is safe because every step is idempotent.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..api.errors import ArtifactError, ConfigurationError
from ..chain.clients import BeaconClient, ExecutionClient, StateManager, StorageReader
from ..chain.state import NetworkState
from ..chain.transactions import ContractCall
from ..core.config import WatchtowerConfig
from ..core.log import get_logger, log_context, warn_once
from ..core.time import format_unix
from ..core.types import UNDISTRIBUTED_CID, BlockNumber, ContentId, Slot, TimestampSec
from ..core.utils import hex_to_bytes32
from ..rewards.artifact import ArtifactCache, ArtifactPaths, RewardsArtifact, write_atomic
from ..rewards.distribution import ArtifactDistributor
from ..rewards.generator import GenerationRequest, RewardsGenerator
from ..runtime.intervals import elapsed_intervals, latest_checkpoint_time
from ..runtime.ledger import REWARDS_SNAPSHOT_TAG, SubmissionLedgerProbe
from ..runtime.single_flight import SingleFlightRunner
from ..runtime.snapshot import SnapshotBlockResolver
from .base import TransactionSubmitter

REWARDS_POOL_CONTRACT = "rocketRewardsPool"
SUBMIT_METHOD = "submitRewardSnapshot"


class RewardsOutcome(str, Enum):
    NOT_PARTICIPATING = "not_participating"
    NO_OP = "no_op"
    WAITING_ON_FINALITY = "waiting_on_finality"
    ALREADY_RUNNING = "already_running"
    REUSED = "reused"
    ALREADY_SUBMITTED = "already_submitted"
    SUBMITTED = "submitted"
    GENERATING = "generating"
    FAILED = "failed"


@dataclass(frozen=True)
class RewardSubmission:
    """Arguments of `submitRewardSnapshot`, per-network arrays ordered by network id."""

    reward_index: int
    execution_block: BlockNumber
    consensus_block: Slot
    merkle_root: bytes
    merkle_tree_cid: ContentId
    intervals_passed: int
    treasury_reward: int
    node_collateral_rewards: tuple[int, ...]
    oracle_rewards: tuple[int, ...]
    node_pool_rewards: tuple[int, ...]
    pool_staker_reward: int

    @classmethod
    def from_artifact(
        cls,
        artifact: RewardsArtifact,
        *,
        cid: ContentId,
        consensus_block: Slot,
        execution_block: BlockNumber,
    ) -> RewardSubmission:
        try:
            root = hex_to_bytes32(artifact.merkle_root)
        except ValueError as e:
            raise ArtifactError(f"error decoding merkle root: {e}") from e

        collateral, oracle, pool = [], [], []
        network = 0
        # networks are contiguous from 0; the first gap ends the list
        while network in artifact.network_rewards:
            rewards = artifact.network_rewards[network]
            collateral.append(rewards.collateral_reward)
            oracle.append(rewards.oracle_reward)
            pool.append(rewards.pool_reward)
            network += 1

        return cls(
            reward_index=artifact.interval_index,
            execution_block=execution_block,
            consensus_block=consensus_block,
            merkle_root=root,
            merkle_tree_cid=cid,
            intervals_passed=artifact.intervals_passed,
            treasury_reward=artifact.treasury_reward,
            node_collateral_rewards=tuple(collateral),
            oracle_rewards=tuple(oracle),
            node_pool_rewards=tuple(pool),
            pool_staker_reward=artifact.pool_staker_reward,
        )

    def as_call(self) -> ContractCall:
        args = (
            self.reward_index,
            self.execution_block,
            self.consensus_block,
            self.merkle_root,
            self.merkle_tree_cid,
            self.intervals_passed,
            self.treasury_reward,
            list(self.node_collateral_rewards),
            list(self.oracle_rewards),
            list(self.node_pool_rewards),
            self.pool_staker_reward,
        )
        return ContractCall(contract=REWARDS_POOL_CONTRACT, method=SUBMIT_METHOD, args=(args,))


@dataclass(frozen=True)
class _IntervalJob:
    index: int
    intervals_passed: int
    start_time: TimestampSec
    end_time: TimestampSec
    snapshot_slot: Slot
    snapshot_block: BlockNumber
    paths: ArtifactPaths


class RewardsSubmissionTask:
    """
    Detects elapsed reward intervals and gets their snapshot on-chain.

    Oracle members submit; other nodes only generate and cache locally, and only
    when configured with `rewards_mode="generate"`.
    """

    name = "rewards"

    def __init__(
        self,
        cfg: WatchtowerConfig,
        *,
        state_manager: StateManager,
        beacon: BeaconClient,
        execution: ExecutionClient,
        storage: StorageReader,
        generator: RewardsGenerator,
        distributor: ArtifactDistributor,
        submitter: TransactionSubmitter,
        cache: ArtifactCache | None = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.cfg = cfg
        self.state_manager = state_manager
        self.execution = execution
        self.generator = generator
        self.distributor = distributor
        self.submitter = submitter
        self.cache = cache or ArtifactCache()
        self.resolver = SnapshotBlockResolver(beacon, max_backtrack=cfg.max_slot_backtrack)
        self.ledger = SubmissionLedgerProbe(storage)
        self.flight = SingleFlightRunner(self.name, prefix="[Rewards Generation]", on_error=on_error)
        self.log = get_logger("tasks.rewards")

    async def run(self, node_trusted: bool, state: NetworkState, beacon_slot: Slot | None = None) -> RewardsOutcome:
        if not node_trusted:
            if not self.cfg.generates_rewards:
                warn_once(
                    self.log,
                    "rewards.observer_download_mode",
                    "Node is not an oracle member and rewards_mode is 'download'; skipping rewards snapshots",
                    level=logging.INFO,
                )
                return RewardsOutcome.NOT_PARTICIPATING
            # observers are not handed a state by the scheduler, build one
            slot = state.beacon_slot_number if beacon_slot is None else beacon_slot
            state = await self.state_manager.get_state_for_slot(slot)
        elif not self.cfg.node_address:
            raise ConfigurationError("node_address is required to submit rewards snapshots")

        self.log.info("Checking for rewards checkpoint...", event="rewards.check")
        details = state.network_details
        now = state.chain_time
        intervals_passed = elapsed_intervals(now, details.interval_start, details.interval_duration)
        if intervals_passed == 0:
            self.log.debug("No rewards interval has elapsed", event="rewards.no_op", interval=details.reward_index)
            return RewardsOutcome.NO_OP
        end_time = latest_checkpoint_time(now, details.interval_start, details.interval_duration)

        target = await self.resolver.resolve(end_time, state.beacon_config)
        if not target.is_resolved:
            return RewardsOutcome.WAITING_ON_FINALITY

        header = await self.execution.header_by_number(target.resolved_execution_block)
        job = _IntervalJob(
            index=details.reward_index,
            intervals_passed=intervals_passed,
            start_time=details.interval_start,
            end_time=end_time,
            snapshot_slot=target.resolved_consensus_block,
            snapshot_block=header.number,
            paths=ArtifactPaths.for_interval(self.cfg.artifact_dir, details.reward_index),
        )

        reuse = self.cache.is_valid(job.paths.rewards, job.intervals_passed)
        if not self.flight.try_start():
            self.log.info(
                "Rewards generation is already running in the background.",
                event="rewards.already_running",
                interval=job.index,
            )
            return RewardsOutcome.ALREADY_RUNNING

        if reuse:
            with log_context(task=self.name, interval=job.index):
                try:
                    outcome = await self._reuse(job, node_trusted)
                except asyncio.CancelledError as e:
                    self.flight.finish(e)
                    raise
                except Exception as e:
                    self.flight.finish(e)
                    return RewardsOutcome.FAILED
            self.flight.finish()
            return outcome

        self.flight.launch(lambda: self._generate(job, node_trusted))
        return RewardsOutcome.GENERATING

    async def _reuse(self, job: _IntervalJob, node_trusted: bool) -> RewardsOutcome:
        path = job.paths.rewards
        if not node_trusted:
            self.log.info(
                f"Rewards artifact for interval {job.index} already exists at {path}.",
                event="rewards.reused",
                path=str(path),
            )
            return RewardsOutcome.REUSED

        if await self._has_submitted(job.index):
            return RewardsOutcome.ALREADY_SUBMITTED

        self.log.info(
            f"Rewards artifact for interval {job.index} already exists at {path}, attempting to resubmit...",
            event="rewards.resubmit",
            path=str(path),
        )
        artifact = self.cache.load(path)
        cid = await self._distribute(artifact, job)
        await self._submit(artifact, cid, job)
        return RewardsOutcome.SUBMITTED

    async def _generate(self, job: _IntervalJob, node_trusted: bool) -> None:
        with log_context(task=self.name, interval=job.index):
            if job.intervals_passed > 1:
                self.log.warning(
                    f"{job.intervals_passed} intervals have passed since the last rewards checkpoint was "
                    "submitted! Rolling them into one...",
                    event="rewards.intervals_folded",
                    intervals_passed=job.intervals_passed,
                )
            self.log.info(
                f"Rewards checkpoint has passed, starting generation for interval {job.index} in the background. "
                f"Snapshot Beacon block = {job.snapshot_slot}, EL block = {job.snapshot_block}, "
                f"running from {format_unix(job.start_time)} to {format_unix(job.end_time)}",
                event="rewards.generation_started",
                snapshot_slot=job.snapshot_slot,
                snapshot_block=job.snapshot_block,
            )

            snapshot_state = await self.state_manager.get_state_for_slot(job.snapshot_slot)
            result = await self.generator.generate(
                GenerationRequest(
                    interval_index=job.index,
                    intervals_passed=job.intervals_passed,
                    start_time=job.start_time,
                    end_time=job.end_time,
                    snapshot_slot=job.snapshot_slot,
                    snapshot_block=job.snapshot_block,
                    state=snapshot_state,
                )
            )
            artifact = result.artifact
            if artifact.interval_index != job.index or artifact.intervals_passed != job.intervals_passed:
                raise ArtifactError(
                    f"generator returned interval {artifact.interval_index} covering {artifact.intervals_passed} "
                    f"interval(s), expected interval {job.index} covering {job.intervals_passed}"
                )

            write_atomic(job.paths.performance, result.performance_bytes)
            if node_trusted:
                performance_cid = await self.distributor.distribute(
                    result.performance_bytes, job.paths.performance, description="compressed performance artifact"
                )
            else:
                self.log.info("Saved performance artifact.", event="rewards.performance_saved")
                performance_cid = UNDISTRIBUTED_CID

            artifact = artifact.model_copy(update={"performance_file_cid": performance_cid, "content_id": ""})
            self.log.info("Generation complete! Saving artifact...", event="rewards.generated")
            self.cache.save(job.paths.rewards, artifact)

            if not node_trusted:
                self.log.info(
                    f"Successfully generated rewards snapshot for interval {job.index}.",
                    event="rewards.generation_done",
                )
                return

            cid = await self._distribute(artifact, job)
            if await self._has_submitted(job.index):
                return
            await self._submit(artifact, cid, job)

    async def _distribute(self, artifact: RewardsArtifact, job: _IntervalJob) -> ContentId:
        """Publish the artifact once; later attempts reuse the CID recorded in the file."""
        if artifact.content_id:
            return artifact.content_id
        cid = await self.distributor.distribute(
            artifact.canonical_bytes(), job.paths.rewards, description="compressed rewards artifact"
        )
        self.cache.save(job.paths.rewards, artifact.model_copy(update={"content_id": cid}))
        return cid

    async def _has_submitted(self, index: int) -> bool:
        submitted = await self.ledger.has_submitted(REWARDS_SNAPSHOT_TAG, self.cfg.node_address, index)
        if submitted:
            self.log.info(
                f"Rewards snapshot for interval {index} was already submitted by this node.",
                event="rewards.already_submitted",
            )
        return submitted

    async def _submit(self, artifact: RewardsArtifact, cid: ContentId, job: _IntervalJob) -> None:
        submission = RewardSubmission.from_artifact(
            artifact, cid=cid, consensus_block=job.snapshot_slot, execution_block=job.snapshot_block
        )
        await self.submitter.submit(submission.as_call(), description=f"rewards snapshot for interval {job.index}")
        self.log.info(
            f"Successfully submitted rewards snapshot for interval {job.index}.",
            event="rewards.submitted",
            cid=cid,
        )
