# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Watchtower driver.

Polls on a fixed cadence, reads the head state once per tick and hands it to
each task in turn. Tasks are isolated from each other: an exception from one
is logged and the next one still runs in the same tick.
"""

import asyncio
import logging
from typing import Any

from .chain.clients import StateManager
from .core.config import WatchtowerConfig
from .core.log import bind_context, get_logger, log_context, swallow
from .core.time import Clock, SystemClock
from .observability.metrics import WatchtowerMetrics, start_metrics_server
from .observability.tracing import task_span
from .tasks.prices import PriceObservationTask
from .tasks.relay import CrossChainRelayTask
from .tasks.rewards import RewardsSubmissionTask


class Watchtower:
    def __init__(
        self,
        cfg: WatchtowerConfig,
        *,
        state_manager: StateManager,
        rewards: RewardsSubmissionTask | None = None,
        relay: CrossChainRelayTask | None = None,
        prices: PriceObservationTask | None = None,
        clock: Clock | None = None,
        metrics: WatchtowerMetrics | None = None,
    ) -> None:
        self.cfg = cfg
        self.state_manager = state_manager
        self.rewards = rewards
        self.relay = relay
        self.prices = prices
        self.clock: Clock = clock or SystemClock()
        self.metrics = metrics or WatchtowerMetrics.create()

        self._tasks: set[asyncio.Task] = set()
        self._running = False

        self.log = get_logger("watchtower")
        bind_context(role="watchtower", node=cfg.node_address or None)

    # ---- lifecycle
    async def start(self) -> None:
        self.log.debug("watchtower.start", event="watchtower.start", cfg=vars(self.cfg))
        if self.cfg.metrics_port is not None:
            start_metrics_server(self.metrics, port=self.cfg.metrics_port, address=self.cfg.metrics_address)
        self._running = True
        self._spawn(self._tick_loop(), name="watchtower-tick")

    async def stop(self) -> None:
        self._running = False
        for t in list(self._tasks):
            t.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        for task in (self.rewards, self.prices):
            if task is not None:
                await task.flight.cancel()
        self.log.debug("watchtower.stopped", event="watchtower.stopped")

    async def join_background(self) -> None:
        """Wait for in-flight background runs (generation, price reports)."""
        for task in (self.rewards, self.prices):
            if task is not None:
                await task.flight.join()

    def _spawn(self, coro, *, name: str) -> None:
        t = asyncio.create_task(coro, name=name)
        self._tasks.add(t)

        def _done(task: asyncio.Task) -> None:
            self._tasks.discard(task)
            if task.cancelled():
                return
            if task.exception() is not None:
                self.log.error("task.crashed", event="watchtower.task.crashed", task=task.get_name(), exc_info=True)

        t.add_done_callback(_done)

    async def _tick_loop(self) -> None:
        try:
            while self._running:
                with swallow(logger=self.log, code="watchtower.tick.failed", msg="tick failed"):
                    await self.tick()
                await self.clock.sleep_ms(self.cfg.tick_ms)
        except asyncio.CancelledError:
            return

    # ---- one pass
    async def tick(self) -> dict[str, Any]:
        """
        Run every configured task once against a freshly read head state.

        Returns the per-task outcome; a task that raised maps to None.
        Observers (non-members) only run the rewards task; it decides by
        itself whether a non-member generates.
        """
        self.metrics.ticks_total.inc()
        started = self.clock.mono_ms()
        try:
            state, trusted = await self.state_manager.get_head_state()
        except Exception:
            self.metrics.tick_failures_total.inc()
            raise

        outcomes: dict[str, Any] = {}
        block = state.el_block_number
        with log_context(block=block):
            if self.rewards is not None:
                outcomes["rewards"] = await self._isolated(
                    "rewards", self.rewards.run(trusted, state, state.beacon_slot_number), block=block
                )
            if trusted:
                if self.relay is not None:
                    outcomes["relay"] = await self._isolated("relay", self.relay.run(state), block=block)
                if self.prices is not None:
                    outcomes["prices"] = await self._isolated("prices", self.prices.run(state), block=block)
        self.metrics.tick_latency_ms.observe(max(0, self.clock.mono_ms() - started))
        return outcomes

    async def _isolated(self, name: str, coro, *, block: int) -> Any:
        result = None
        with log_context(task=name), swallow(
            logger=self.log,
            level=logging.ERROR,
            code=f"watchtower.{name}.failed",
            msg=f"{name} task failed",
        ):
            try:
                with task_span(name, block=block):
                    result = await coro
            except Exception as e:
                self.metrics.task_failures_total.labels(task=name, error=type(e).__name__).inc()
                raise
            self.metrics.record_outcome(name, result)
        return result
