# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Reward-interval checkpoint arithmetic.

All values are chain time in unix seconds. A new interval only counts as
elapsed once its full duration has passed, so callers treat a result of 0 as
"nothing to do" rather than as an error.
"""

from ..api.errors import ConfigurationError
from ..chain.state import BeaconConfig
from ..core.types import Slot, TimestampSec


def elapsed_intervals(now: TimestampSec, interval_start: TimestampSec, interval_duration: int) -> int:
    """
    Number of whole intervals between `interval_start` and `now`.

    Returns 0 when `now < interval_start + interval_duration` (including a
    `now` before the start, which happens briefly after a checkpoint lands).

    Raises:
        ConfigurationError: if `interval_duration` is not positive.
    """
    if interval_duration <= 0:
        raise ConfigurationError(f"interval duration must be positive, got {interval_duration}")
    if now <= interval_start:
        return 0
    return (now - interval_start) // interval_duration


def latest_checkpoint_time(latest_ts: TimestampSec, reference_ts: TimestampSec, interval: int) -> TimestampSec:
    """
    The most recent interval boundary at or before `latest_ts`, counting whole
    intervals from `reference_ts`.

    Raises:
        ConfigurationError: for non-positive inputs or a reference in the future.
    """
    if interval <= 0:
        raise ConfigurationError(f"interval must be positive, got {interval}")
    if reference_ts <= 0:
        raise ConfigurationError(f"reference timestamp must be positive, got {reference_ts}")
    if latest_ts <= 0:
        raise ConfigurationError(f"latest timestamp must be positive, got {latest_ts}")
    if reference_ts > latest_ts:
        raise ConfigurationError(f"reference timestamp {reference_ts} is after latest timestamp {latest_ts}")
    return reference_ts + ((latest_ts - reference_ts) // interval) * interval


def chain_time(beacon_config: BeaconConfig, slot: Slot) -> TimestampSec:
    """Wall time of `slot`; tasks use it instead of the local clock."""
    return beacon_config.slot_time(slot)
