# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Watchtower public error API.
"""

from .errors import (
    ArtifactError,
    ChainReadError,
    ConfigurationError,
    DistributionError,
    RelaySubmissionError,
    SimulationError,
    SlotSearchExhausted,
    SubmissionError,
    WatchtowerError,
)

__all__ = [
    "ArtifactError",
    "ChainReadError",
    "ConfigurationError",
    "DistributionError",
    "RelaySubmissionError",
    "SimulationError",
    "SlotSearchExhausted",
    "SubmissionError",
    "WatchtowerError",
]
