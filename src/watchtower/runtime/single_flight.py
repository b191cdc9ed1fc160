# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from typing import Optional

from ..core.log import get_logger, swallow

ErrorSink = Callable[[BaseException], None]


class SingleFlightRunner:
    """
    Per-task guard allowing at most one background run at a time.

    Usage:
      if not runner.try_start():
          return                      # another run is active: a no-op, not an error
      runner.launch(lambda: work())   # or run inline and call runner.finish(err) yourself

    Notes:
      - The lock protects only the flag check/set; the body never runs under it,
        so a long generation does not stall the scheduler polling other tasks.
      - `finish()` is called exactly once per started run. Failures are logged
        (and handed to `on_error`) but never re-raised.
    """

    def __init__(self, name: str, *, prefix: str | None = None, on_error: Optional[ErrorSink] = None) -> None:
        self.name = name
        self.prefix = prefix or f"[{name}]"
        self._on_error = on_error
        self._lock = threading.Lock()
        self._running = False
        self._task: asyncio.Task | None = None
        self.log = get_logger(f"flight.{name}")

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def try_start(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            return True

    def finish(self, err: BaseException | None = None) -> None:
        with self._lock:
            self._running = False
        if err is None:
            return
        self.log.error(f"{self.prefix} {err}", event="flight.failed", task=self.name, exc_info=err)
        self.log.error(f"*** {self.name} failed. ***", event="flight.failed.banner", task=self.name)
        if self._on_error is not None:
            with swallow(logger=self.log, code="flight.error_sink", msg="error sink raised"):
                self._on_error(err)

    def launch(self, body: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """
        Run `body` as a background task owned by this guard. The caller must
        already hold the run (`try_start()` returned True).
        """

        async def _run() -> None:
            try:
                await body()
            except asyncio.CancelledError as e:
                self.finish(e)
                raise
            except Exception as e:
                self.finish(e)
            else:
                self.finish(None)

        task = asyncio.create_task(_run(), name=f"watchtower-{self.name}")
        self._task = task
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        if self._task is task:
            self._task = None

    async def join(self) -> None:
        """Wait for the in-flight background run, if any."""
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def cancel(self) -> None:
        task = self._task
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
