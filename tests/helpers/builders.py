"""
Builders for states, artifacts and configs used across the tests.

Chain parameters follow mainnet: 12s slots, 32-slot epochs. Interval
boundaries are placed on epoch starts so slot arithmetic stays readable.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from watchtower.chain.state import BeaconConfig, NetworkDetails, NetworkState, OracleMember
from watchtower.core.config import WatchtowerConfig
from watchtower.rewards.artifact import NetworkRewards, RewardsArtifact

GENESIS = 1_606_824_023
SECONDS_PER_SLOT = 12
SLOTS_PER_EPOCH = 32
EPOCH_SEC = SECONDS_PER_SLOT * SLOTS_PER_EPOCH

DAY = 86_400
# interval 10 starts on the first slot of epoch 1000
INTERVAL_START = GENESIS + 1000 * EPOCH_SEC
REWARD_INDEX = 10

NODE = "0x" + "11" * 20
MEMBER_B = "0x" + "22" * 20
MEMBER_C = "0x" + "33" * 20
MEMBER_D = "0x" + "44" * 20

MERKLE_ROOT = "0x" + "ab" * 32


def beacon_config() -> BeaconConfig:
    return BeaconConfig(genesis_time=GENESIS, seconds_per_slot=SECONDS_PER_SLOT, slots_per_epoch=SLOTS_PER_EPOCH)


def slot_at(ts: int) -> int:
    return (ts - GENESIS) // SECONDS_PER_SLOT


def make_state(
    *,
    now: int | None = None,
    interval_start: int = INTERVAL_START,
    interval_duration: int = DAY,
    reward_index: int = REWARD_INDEX,
    members: tuple[str, ...] = (NODE, MEMBER_B, MEMBER_C, MEMBER_D),
    el_block: int = 20_000_000,
    submit_prices_enabled: bool = True,
    prices_block: int = 0,
    latest_reportable_prices_block: int = 0,
) -> NetworkState:
    """State read at `now` (defaults to five epochs after the first interval ended)."""
    if now is None:
        now = interval_start + interval_duration + 5 * EPOCH_SEC
    return NetworkState(
        beacon_config=beacon_config(),
        beacon_slot_number=slot_at(now),
        el_block_number=el_block,
        network_details=NetworkDetails(
            reward_index=reward_index,
            interval_start=interval_start,
            interval_duration=interval_duration,
            submit_prices_enabled=submit_prices_enabled,
            prices_block=prices_block,
            latest_reportable_prices_block=latest_reportable_prices_block,
        ),
        oracle_members=tuple(OracleMember(address=a, joined_time=GENESIS) for a in members),
    )


def make_artifact(*, index: int = REWARD_INDEX, intervals_passed: int = 1, **fields: Any) -> RewardsArtifact:
    data: dict[str, Any] = {
        "interval_index": index,
        "intervals_passed": intervals_passed,
        "start_time": INTERVAL_START,
        "end_time": INTERVAL_START + intervals_passed * DAY,
        "consensus_end_block": 39_231,
        "execution_end_block": 1_039_231,
        "merkle_root": MERKLE_ROOT,
        "network_rewards": {
            0: NetworkRewards(collateral_reward=7 * 10**20, oracle_reward=10**20, pool_reward=3 * 10**18),
            1: NetworkRewards(collateral_reward=2 * 10**20, oracle_reward=0, pool_reward=10**18),
        },
        "treasury_reward": 5 * 10**19,
        "pool_staker_reward": 4 * 10**18,
        "nodes": {NODE: {"collateral_reward": str(7 * 10**20), "proof": ["0x" + "cd" * 32]}},
    }
    data.update(fields)
    return RewardsArtifact(**data)


def make_config(artifact_dir: str | Path, **overrides: Any) -> WatchtowerConfig:
    values: dict[str, Any] = {
        "node_address": NODE,
        "artifact_dir": str(artifact_dir),
        "twap_pool_address": "0x" + "99" * 20,
    }
    values.update(overrides)
    return WatchtowerConfig(**values)
