from __future__ import annotations

"""
watchtower.core.config
======================

Strongly-typed watchtower configuration.
- Plain dataclass; optional JSON file loading.
- Derives wei fields from the gwei fee settings to avoid repeated conversions.
- Provides small env overrides for containers.

If a config file path is not provided or not found, defaults are used.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..api.errors import ConfigurationError
from .utils import gwei_to_wei

REWARDS_MODE_DOWNLOAD = "download"
REWARDS_MODE_GENERATE = "generate"

# zstd accepts levels 1..22
DEFAULT_COMPRESSION_LEVEL = 22
MAX_COMPRESSION_LEVEL = 22

RELAY_TARGETS: tuple[str, ...] = ("optimism", "polygon", "arbitrum", "zksync_era", "base")


def _try_load_json(path: Path | None) -> dict[str, Any]:
    if not path or not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"cannot read config file {path}: {e}") from e


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


# ---------------------------------------------------------------------------


@dataclass
class WatchtowerConfig:
    """Watchtower configuration loaded from JSON/env with derived wei fields."""

    # ---- Identity
    node_address: str = ""

    # ---- Rewards artifacts
    artifact_dir: str = "rewards-trees"
    rewards_mode: str = REWARDS_MODE_DOWNLOAD
    distribution_compression_level: int = DEFAULT_COMPRESSION_LEVEL

    # ---- Fees (gwei)
    max_fee_gwei: float = 50.0
    priority_fee_gwei: float = 2.0

    # ---- Scheduling
    tick_sec: float = 12.0
    metrics_port: int | None = None
    metrics_address: str = "0.0.0.0"
    blocks_per_turn: int = 75
    max_slot_backtrack: int | None = None

    # ---- Prices
    twap_window_sec: int = 60 * 60 * 12
    twap_pool_address: str | None = None

    # ---- Cross-chain relays: target -> messenger address (absent => skipped)
    relay_messengers: dict[str, str] = field(default_factory=dict)

    # ---- Derived
    max_fee_wei: int = 0
    priority_fee_wei: int = 0
    tick_ms: int = 0

    # ---- Methods ------------------------------------------------------------

    def __post_init__(self) -> None:
        if self.rewards_mode not in (REWARDS_MODE_DOWNLOAD, REWARDS_MODE_GENERATE):
            raise ConfigurationError(f"rewards_mode must be 'download' or 'generate', got {self.rewards_mode!r}")
        if not self.artifact_dir:
            raise ConfigurationError("artifact_dir must be a non-empty path")
        if not 1 <= self.distribution_compression_level <= MAX_COMPRESSION_LEVEL:
            raise ConfigurationError(
                f"distribution_compression_level must be within 1..{MAX_COMPRESSION_LEVEL}, "
                f"got {self.distribution_compression_level}"
            )
        if self.max_fee_gwei <= 0 or self.priority_fee_gwei < 0:
            raise ConfigurationError("max_fee_gwei must be positive and priority_fee_gwei non-negative")
        if self.priority_fee_gwei > self.max_fee_gwei:
            raise ConfigurationError("priority_fee_gwei cannot exceed max_fee_gwei")
        if self.blocks_per_turn <= 0:
            raise ConfigurationError("blocks_per_turn must be positive")
        if self.twap_window_sec <= 0:
            raise ConfigurationError("twap_window_sec must be positive")
        if self.max_slot_backtrack is not None and self.max_slot_backtrack <= 0:
            raise ConfigurationError("max_slot_backtrack must be positive when set")
        if self.tick_sec <= 0:
            raise ConfigurationError("tick_sec must be positive")
        if self.metrics_port is not None and not 0 < self.metrics_port < 65536:
            raise ConfigurationError(f"metrics_port must be a TCP port, got {self.metrics_port}")
        unknown = sorted(set(self.relay_messengers) - set(RELAY_TARGETS))
        if unknown:
            raise ConfigurationError(f"unknown relay targets: {unknown}")
        self.max_fee_wei = gwei_to_wei(self.max_fee_gwei)
        self.priority_fee_wei = gwei_to_wei(self.priority_fee_gwei)
        self.tick_ms = int(self.tick_sec * 1000)

    @property
    def generates_rewards(self) -> bool:
        return self.rewards_mode == REWARDS_MODE_GENERATE

    def relay_address(self, target: str) -> str | None:
        return self.relay_messengers.get(target) or None

    # Loader
    @classmethod
    def load(cls, path: Path | str | None = None, *, overrides: dict[str, Any] | None = None) -> WatchtowerConfig:
        """
        Load config from JSON file (if provided), then apply env and overrides.

        Env overrides:
          - WATCHTOWER_NODE_ADDRESS
          - WATCHTOWER_ARTIFACT_DIR
          - WATCHTOWER_REWARDS_MODE
          - WATCHTOWER_MAX_FEE_GWEI
          - WATCHTOWER_PRIORITY_FEE_GWEI
        """
        data: dict[str, Any] = {}
        data.update(_try_load_json(Path(path) if path else None))

        for env, key in (
            ("WATCHTOWER_NODE_ADDRESS", "node_address"),
            ("WATCHTOWER_ARTIFACT_DIR", "artifact_dir"),
            ("WATCHTOWER_REWARDS_MODE", "rewards_mode"),
        ):
            if os.getenv(env):
                data[key] = os.environ[env]
        for env, key in (
            ("WATCHTOWER_MAX_FEE_GWEI", "max_fee_gwei"),
            ("WATCHTOWER_PRIORITY_FEE_GWEI", "priority_fee_gwei"),
        ):
            val = _env_float(env)
            if val is not None:
                data[key] = val

        if overrides:
            data.update(overrides)

        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"invalid watchtower config: {e}") from e
