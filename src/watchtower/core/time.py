from __future__ import annotations

"""
watchtower.core.time
====================

Clock abstractions:
- Clock Protocol for dependency-injection and testing.
- SystemClock: production default implementation.
- ManualClock: deterministic time control for tests.

Chain time (interval boundaries, slots) always comes from chain state, never
from these clocks; they only drive the polling cadence.
"""

import asyncio
import time
from datetime import UTC, datetime
from typing import Protocol

from .types import Millis, MonotonicMs, TimestampMs


class Clock(Protocol):
    """Minimal clock protocol used by the driver loop."""

    def now_dt(self) -> datetime: ...
    def now_ms(self) -> TimestampMs: ...
    def mono_ms(self) -> MonotonicMs: ...
    async def sleep_ms(self, ms: Millis) -> None: ...


class SystemClock:
    """Default production clock backed by system time."""

    def now_dt(self) -> datetime:
        return datetime.now(UTC)

    def now_ms(self) -> TimestampMs:
        return time.time_ns() // 1_000_000

    def mono_ms(self) -> MonotonicMs:
        return time.monotonic_ns() // 1_000_000

    async def sleep_ms(self, ms: Millis) -> None:
        await asyncio.sleep(max(0.0, ms / 1000.0))


class ManualClock(SystemClock):
    """
    Controllable clock for tests.

    Wall time starts at `start_ms` and advances only through `sleep_ms`/`advance`.
    `sleep_ms` still yields to the event loop once so other tasks make progress.
    """

    def __init__(self, start_ms: Millis = 0) -> None:
        self._wall: Millis = start_ms

    def now_dt(self) -> datetime:
        return datetime.fromtimestamp(self._wall / 1000.0, tz=UTC)

    def now_ms(self) -> TimestampMs:
        return self._wall

    def mono_ms(self) -> MonotonicMs:
        return self._wall

    def advance(self, ms: Millis) -> None:
        self._wall += max(0, int(ms))

    async def sleep_ms(self, ms: Millis) -> None:
        self.advance(ms)
        await asyncio.sleep(0)


def format_unix(ts: int) -> str:
    """Render a unix timestamp (seconds) as an ISO-8601 UTC string for logs."""
    return datetime.fromtimestamp(ts, tz=UTC).isoformat().replace("+00:00", "Z")
