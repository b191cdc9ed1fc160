# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Low-cardinality Prometheus metrics for the watchtower.

Labels stay conservative (task, outcome, contract method, result) and never
carry addresses, block numbers or interval indexes.

Each `WatchtowerMetrics` owns its own registry unless one is passed in, so
several watchtowers (and test cases) can live in one process. Pass
`prometheus_client.REGISTRY` to publish on the process-wide default.
"""

from dataclasses import dataclass
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

from ..core.log import get_logger

_log = get_logger("observability.metrics")


@dataclass
class WatchtowerMetrics:
    registry: CollectorRegistry
    ticks_total: Any
    tick_failures_total: Any
    task_outcomes_total: Any
    task_failures_total: Any
    submissions_total: Any
    tick_latency_ms: Any

    @classmethod
    def create(cls, registry: CollectorRegistry | None = None) -> WatchtowerMetrics:
        reg = registry if registry is not None else CollectorRegistry()
        return cls(
            registry=reg,
            ticks_total=Counter("watchtower_ticks_total", "Driver ticks started", registry=reg),
            tick_failures_total=Counter(
                "watchtower_tick_failures_total", "Ticks that could not read the head state", registry=reg
            ),
            task_outcomes_total=Counter(
                "watchtower_task_outcomes_total", "Task runs by outcome", ["task", "outcome"], registry=reg
            ),
            task_failures_total=Counter(
                "watchtower_task_failures_total", "Task runs that raised", ["task", "error"], registry=reg
            ),
            submissions_total=Counter(
                "watchtower_submissions_total", "On-chain submissions by method and result", ["method", "result"],
                registry=reg,
            ),
            tick_latency_ms=Histogram(
                "watchtower_tick_latency_ms",
                "Wall time of one driver tick (ms)",
                buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 5000, 30000),
                registry=reg,
            ),
        )

    def record_outcome(self, task: str, outcome: Any) -> None:
        value = getattr(outcome, "value", None)
        if value is None:
            # the relay task reports a RelayReport rather than an enum
            value = "skipped" if getattr(outcome, "skipped_reason", None) else "acted"
        self.task_outcomes_total.labels(task=task, outcome=str(value)).inc()

    def sample(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Current value of a sample, 0.0 when it was never recorded."""
        value = self.registry.get_sample_value(name, labels or {})
        return 0.0 if value is None else value


def start_metrics_server(metrics: WatchtowerMetrics, *, port: int, address: str = "0.0.0.0") -> None:
    """
    Expose `metrics.registry` on `http://<address>:<port>/metrics` from a
    daemon thread. prometheus_client offers no stop API; the socket closes
    with the process.
    """
    start_http_server(port, addr=address, registry=metrics.registry)
    _log.info("metrics server started", event="metrics.server_started", address=address, port=port)
