from .builders import (
    DAY,
    EPOCH_SEC,
    GENESIS,
    INTERVAL_START,
    MEMBER_B,
    MEMBER_C,
    MEMBER_D,
    MERKLE_ROOT,
    NODE,
    REWARD_INDEX,
    beacon_config,
    make_artifact,
    make_config,
    make_state,
    slot_at,
)
from .chain import (
    FakeBeacon,
    FakeDistribution,
    FakeExecution,
    FakeFeeOracle,
    FakeGenerator,
    FakeRates,
    FakeStateManager,
    FakeStorage,
    FakeTwapPool,
    FakeTxLayer,
)

__all__ = [
    "DAY",
    "EPOCH_SEC",
    "GENESIS",
    "INTERVAL_START",
    "MEMBER_B",
    "MEMBER_C",
    "MEMBER_D",
    "MERKLE_ROOT",
    "NODE",
    "REWARD_INDEX",
    "FakeBeacon",
    "FakeDistribution",
    "FakeExecution",
    "FakeFeeOracle",
    "FakeGenerator",
    "FakeRates",
    "FakeStateManager",
    "FakeStorage",
    "FakeTwapPool",
    "FakeTxLayer",
    "beacon_config",
    "make_artifact",
    "make_config",
    "make_state",
    "slot_at",
]
