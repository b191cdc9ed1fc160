# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
OpenTelemetry spans around task runs.

Only the OpenTelemetry API is used here. Without an SDK tracer provider
installed by the host process every span is a no-op, so nothing has to be
configured for tests or minimal deployments.

Usage:
    with task_span("rewards", block=state.el_block_number):
        await task.run(...)
"""

from contextlib import contextmanager
from typing import Any

from opentelemetry import trace as otel_trace

__all__ = ["task_span"]

_TRACER_NAME = "watchtower"


@contextmanager
def task_span(name: str, **attributes: Any):
    tracer = otel_trace.get_tracer(_TRACER_NAME)
    with tracer.start_as_current_span(
        f"watchtower.{name}",
        attributes={k: v for k, v in attributes.items() if v is not None},
        record_exception=True,
        set_status_on_exception=True,
    ) as span:
        yield span
