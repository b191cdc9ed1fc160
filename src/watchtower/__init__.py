from __future__ import annotations

# Runtime package version, taken from the installed distribution metadata.
try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("watchtower")
except Exception:  # pragma: no cover
    # fallback for source checkouts that were never installed
    __version__ = "0.0.0"

from .core.config import WatchtowerConfig
from .runner import Watchtower
from .tasks import CrossChainRelayTask, PriceObservationTask, RewardsSubmissionTask

__all__ = [
    "CrossChainRelayTask",
    "PriceObservationTask",
    "RewardsSubmissionTask",
    "Watchtower",
    "WatchtowerConfig",
    "__version__",
]
