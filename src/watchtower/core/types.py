from __future__ import annotations

"""
watchtower.core.types
=====================

Shared type aliases and chain constants used across the codebase.
Keep this module **tiny** and dependency-free.

Guidelines:
- Prefer narrow aliases for clarity (e.g., Slot vs generic int).
- Avoid importing application-level models here.
"""

import os
from pathlib import Path
from typing import Final, Union

# Paths
StrPath = Union[str, os.PathLike[str], Path]

# ---- Time --------------------------------------------------------------------

Millis = int
Seconds = int
TimestampSec = int  # unix epoch seconds, chain time
TimestampMs = int  # wall-clock epoch timestamp (ms)
MonotonicMs = int  # process-local monotonic time (ms)

# ---- Chain identifiers -------------------------------------------------------

Address = str  # 0x-prefixed, 20 bytes
BlockNumber = int
Slot = int
Epoch = int
Wei = int
Gwei = float
ContentId = str
NetworkId = int

# ---- Constants ---------------------------------------------------------------

WEI_PER_ETH: Final[int] = 10**18
UINT256_BYTES: Final[int] = 32
ADDRESS_BYTES: Final[int] = 20

# CID recorded for a performance artifact that was saved locally but never distributed.
UNDISTRIBUTED_CID: Final[str] = "---"


__all__ = [
    "StrPath",
    "Millis",
    "Seconds",
    "TimestampSec",
    "TimestampMs",
    "MonotonicMs",
    "Address",
    "BlockNumber",
    "Slot",
    "Epoch",
    "Wei",
    "Gwei",
    "ContentId",
    "NetworkId",
    "WEI_PER_ETH",
    "UINT256_BYTES",
    "ADDRESS_BYTES",
    "UNDISTRIBUTED_CID",
]
