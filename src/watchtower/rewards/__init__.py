# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Rewards artifacts: model, local cache, generator contract and distribution.
"""

from .artifact import ArtifactCache, ArtifactPaths, NetworkRewards, RewardsArtifact
from .distribution import ArtifactDistributor
from .generator import GenerationRequest, GenerationResult, RewardsGenerator

__all__ = [
    "ArtifactCache",
    "ArtifactDistributor",
    "ArtifactPaths",
    "GenerationRequest",
    "GenerationResult",
    "NetworkRewards",
    "RewardsArtifact",
    "RewardsGenerator",
]
