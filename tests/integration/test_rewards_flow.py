# tests/integration/test_rewards_flow.py
from __future__ import annotations

import asyncio

import pytest

from watchtower.api.errors import ArtifactError, ConfigurationError, SimulationError
from watchtower.rewards.artifact import ArtifactCache, ArtifactPaths
from watchtower.runtime.ledger import REWARDS_SNAPSHOT_TAG, submission_key
from watchtower.tasks.rewards import REWARDS_POOL_CONTRACT, RewardsOutcome
from tests.helpers import DAY, EPOCH_SEC, INTERVAL_START, NODE, REWARD_INDEX, make_artifact, make_state

pytestmark = pytest.mark.integration

SNAPSHOT_SLOT = 39_231
SNAPSHOT_BLOCK = 1_039_231


# ───────────────────────── Small helpers ─────────────────────────


def artifact_paths(cfg) -> ArtifactPaths:
    return ArtifactPaths.for_interval(cfg.artifact_dir, REWARD_INDEX)


def stored_artifact(cfg):
    return ArtifactCache().load(artifact_paths(cfg).rewards)


def mark_submitted(storage, index: int = REWARD_INDEX) -> None:
    storage.mark(submission_key(REWARDS_SNAPSHOT_TAG, NODE, index))


def events(caplog) -> list[str]:
    return [getattr(r, "event", "") for r in caplog.records]


# ───────────────────────── Pre-checks ─────────────────────────


@pytest.mark.asyncio
async def test_nothing_to_do_inside_an_open_interval(rewards_task, generator, beacon):
    state = make_state(now=INTERVAL_START + DAY // 2)
    assert await rewards_task.run(True, state) is RewardsOutcome.NO_OP
    assert generator.requests == []
    assert beacon.head_calls == 0


@pytest.mark.asyncio
async def test_waits_until_the_epoch_after_the_snapshot_is_finalized(rewards_task, head_state, beacon, generator):
    beacon.finalized_epoch = 1225
    assert await rewards_task.run(True, head_state) is RewardsOutcome.WAITING_ON_FINALITY
    assert beacon.block_calls == []
    assert generator.requests == []
    assert not rewards_task.flight.is_running


@pytest.mark.asyncio
async def test_member_without_node_address_is_misconfigured(rewards_factory, head_state):
    task = rewards_factory(node_address="")
    with pytest.raises(ConfigurationError):
        await task.run(True, head_state)


# ───────────────────────── Oracle member ─────────────────────────


@pytest.mark.asyncio
async def test_member_generates_distributes_and_submits(rewards_task, head_state, cfg, generator, distribution, tx, state_manager):
    assert await rewards_task.run(True, head_state) is RewardsOutcome.GENERATING
    await rewards_task.flight.join()
    assert not rewards_task.flight.is_running

    (request,) = generator.requests
    assert request.interval_index == REWARD_INDEX
    assert request.intervals_passed == 1
    assert request.start_time == INTERVAL_START
    assert request.end_time == INTERVAL_START + DAY
    assert (request.snapshot_slot, request.snapshot_block) == (SNAPSHOT_SLOT, SNAPSHOT_BLOCK)
    assert request.state.beacon_slot_number == SNAPSHOT_SLOT
    assert state_manager.slot_calls == [SNAPSHOT_SLOT]

    names = [name for name, _ in distribution.uploads]
    assert names == ["performance-10.json.zst", "rewards-10.json.zst"]

    saved = stored_artifact(cfg)
    assert saved.performance_file_cid.startswith("bafy")
    assert saved.content_id.startswith("bafy")
    assert saved.content_id != saved.performance_file_cid
    assert artifact_paths(cfg).performance.exists()

    (call,) = tx.calls
    assert call.contract == REWARDS_POOL_CONTRACT
    (submission,) = call.args
    assert submission[:6] == (
        REWARD_INDEX,
        SNAPSHOT_BLOCK,
        SNAPSHOT_SLOT,
        bytes.fromhex("ab" * 32),
        saved.content_id,
        1,
    )


@pytest.mark.asyncio
async def test_member_resubmits_cached_artifact_inline(rewards_task, head_state, cfg, generator, distribution, tx):
    ArtifactCache().save(artifact_paths(cfg).rewards, make_artifact())

    assert await rewards_task.run(True, head_state) is RewardsOutcome.SUBMITTED
    assert not rewards_task.flight.is_running
    assert generator.requests == []
    assert [name for name, _ in distribution.uploads] == ["rewards-10.json.zst"]
    assert len(tx.calls) == 1
    assert stored_artifact(cfg).content_id == tx.calls[0].args[0][4]


@pytest.mark.asyncio
async def test_recorded_cid_is_not_uploaded_again(rewards_task, head_state, cfg, distribution, tx):
    ArtifactCache().save(artifact_paths(cfg).rewards, make_artifact(content_id="bafyalreadythere"))

    assert await rewards_task.run(True, head_state) is RewardsOutcome.SUBMITTED
    assert distribution.uploads == []
    assert tx.calls[0].args[0][4] == "bafyalreadythere"


@pytest.mark.asyncio
async def test_submission_recorded_on_chain_is_not_repeated(rewards_task, head_state, cfg, storage, distribution, tx):
    ArtifactCache().save(artifact_paths(cfg).rewards, make_artifact())
    mark_submitted(storage)

    for _ in range(3):
        assert await rewards_task.run(True, head_state) is RewardsOutcome.ALREADY_SUBMITTED
    assert distribution.uploads == []
    assert tx.calls == []


@pytest.mark.asyncio
async def test_generation_skips_submission_recorded_meanwhile(rewards_task, head_state, storage, tx):
    mark_submitted(storage)
    assert await rewards_task.run(True, head_state) is RewardsOutcome.GENERATING
    await rewards_task.flight.join()
    assert tx.calls == []


@pytest.mark.asyncio
async def test_artifact_for_fewer_intervals_is_regenerated(rewards_task, cfg, beacon, generator, tx):
    ArtifactCache().save(artifact_paths(cfg).rewards, make_artifact(intervals_passed=1))
    beacon.finalized_epoch = 10_000
    state = make_state(now=INTERVAL_START + 2 * DAY + 5 * EPOCH_SEC)

    assert await rewards_task.run(True, state) is RewardsOutcome.GENERATING
    await rewards_task.flight.join()

    assert generator.requests[0].intervals_passed == 2
    assert stored_artifact(cfg).intervals_passed == 2
    assert tx.calls[0].args[0][5] == 2


@pytest.mark.asyncio
async def test_missed_intervals_are_folded_into_one(rewards_task, beacon, generator, caplog):
    caplog.set_level("INFO", logger="watchtower")
    beacon.finalized_epoch = 10_000
    state = make_state(now=INTERVAL_START + 3 * DAY + 5 * EPOCH_SEC)

    assert await rewards_task.run(True, state) is RewardsOutcome.GENERATING
    await rewards_task.flight.join()

    (request,) = generator.requests
    assert request.intervals_passed == 3
    assert request.end_time == INTERVAL_START + 3 * DAY
    # (start + 3 days) falls in epoch 1675
    assert request.snapshot_slot == 1675 * 32 + 31
    assert "rewards.intervals_folded" in events(caplog)


@pytest.mark.asyncio
async def test_missed_snapshot_slot_falls_back_to_previous_block(rewards_task, head_state, beacon, generator):
    beacon.missing = {SNAPSHOT_SLOT}
    assert await rewards_task.run(True, head_state) is RewardsOutcome.GENERATING
    await rewards_task.flight.join()
    assert generator.requests[0].snapshot_slot == SNAPSHOT_SLOT - 1
    assert generator.requests[0].snapshot_block == SNAPSHOT_BLOCK - 1


# ───────────────────────── Single flight ─────────────────────────


@pytest.mark.asyncio
async def test_concurrent_runs_start_one_generation(rewards_task, head_state, generator, tx):
    generator.gate = asyncio.Event()

    first, second = await asyncio.gather(
        rewards_task.run(True, head_state),
        rewards_task.run(True, head_state),
    )
    assert sorted([first, second]) == sorted([RewardsOutcome.GENERATING, RewardsOutcome.ALREADY_RUNNING])

    await asyncio.sleep(0)
    assert await rewards_task.run(True, head_state) is RewardsOutcome.ALREADY_RUNNING

    generator.gate.set()
    await rewards_task.flight.join()
    assert len(generator.requests) == 1
    assert len(tx.calls) == 1
    assert not rewards_task.flight.is_running


@pytest.mark.asyncio
async def test_generation_failure_reaches_error_sink_and_frees_the_flag(rewards_task, head_state, generator, errors, tx):
    generator.fail = True
    assert await rewards_task.run(True, head_state) is RewardsOutcome.GENERATING
    await rewards_task.flight.join()

    assert [str(e) for e in errors] == ["generator crashed"]
    assert not rewards_task.flight.is_running
    assert tx.calls == []

    generator.fail = False
    assert await rewards_task.run(True, head_state) is RewardsOutcome.GENERATING
    await rewards_task.flight.join()
    assert len(tx.calls) == 1


@pytest.mark.asyncio
async def test_generator_answering_for_another_interval_is_rejected(rewards_task, head_state, generator, errors, cfg):
    generator.artifact_fields = {"interval_index": REWARD_INDEX + 1}
    await rewards_task.run(True, head_state)
    await rewards_task.flight.join()

    assert len(errors) == 1 and isinstance(errors[0], ArtifactError)
    assert not artifact_paths(cfg).rewards.exists()


@pytest.mark.asyncio
async def test_failed_submission_resumes_from_saved_artifact(rewards_task, head_state, tx, errors, distribution, generator):
    tx.sim_error = "execution reverted: invalid network"
    await rewards_task.run(True, head_state)
    await rewards_task.flight.join()
    assert len(errors) == 1 and isinstance(errors[0], SimulationError)
    uploads_before = len(distribution.uploads)

    tx.sim_error = ""
    assert await rewards_task.run(True, head_state) is RewardsOutcome.SUBMITTED
    assert len(generator.requests) == 1
    assert len(distribution.uploads) == uploads_before
    assert len(tx.calls) == 1


@pytest.mark.asyncio
async def test_failed_resubmission_of_cached_artifact_reaches_error_sink(rewards_task, head_state, cfg, tx, errors):
    ArtifactCache().save(artifact_paths(cfg).rewards, make_artifact())
    tx.sim_error = "execution reverted: invalid network"

    assert await rewards_task.run(True, head_state) is RewardsOutcome.FAILED
    assert len(errors) == 1 and isinstance(errors[0], SimulationError)
    assert not rewards_task.flight.is_running
    assert tx.calls == []

    tx.sim_error = ""
    assert await rewards_task.run(True, head_state) is RewardsOutcome.SUBMITTED
    assert len(tx.calls) == 1


# ───────────────────────── Non-member nodes ─────────────────────────


@pytest.mark.asyncio
async def test_observer_in_download_mode_does_nothing(rewards_task, head_state, generator, state_manager):
    assert await rewards_task.run(False, head_state) is RewardsOutcome.NOT_PARTICIPATING
    assert generator.requests == []
    assert state_manager.slot_calls == []


@pytest.mark.asyncio
async def test_observer_generates_locally_without_publishing(rewards_factory, head_state, cfg, generator, distribution, tx, state_manager):
    task = rewards_factory(rewards_mode="generate")
    assert await task.run(False, head_state, head_state.beacon_slot_number) is RewardsOutcome.GENERATING
    await task.flight.join()

    assert state_manager.slot_calls == [head_state.beacon_slot_number, SNAPSHOT_SLOT]
    assert len(generator.requests) == 1
    saved = stored_artifact(cfg)
    assert saved.performance_file_cid == "---"
    assert saved.content_id == ""
    assert distribution.uploads == []
    assert tx.calls == []


@pytest.mark.asyncio
async def test_observer_keeps_a_valid_artifact(rewards_factory, head_state, cfg, generator, tx):
    ArtifactCache().save(artifact_paths(cfg).rewards, make_artifact())
    task = rewards_factory(rewards_mode="generate")
    assert await task.run(False, head_state) is RewardsOutcome.REUSED
    assert generator.requests == []
    assert tx.calls == []
