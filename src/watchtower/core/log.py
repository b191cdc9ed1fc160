from __future__ import annotations

"""
watchtower.core.log
===================

Structured logging on top of the stdlib `logging` package.

- `get_logger(name)` returns an adapter under the `watchtower` namespace that
  accepts arbitrary keyword fields (`log.info("msg", event="...", slot=1)`).
- Context fields (task name, interval index, ...) are carried in a contextvar
  and merged into every record emitted inside `log_context(...)`.
- Library code is silent by default (NullHandler); applications and tests call
  `configure_from_env()` or `enable_stdout_logging()`.
"""

import contextvars
import json
import logging
import os
import sys
import threading
from collections.abc import Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, ClassVar, Final

__all__ = [
    "bind_context",
    "configure_from_env",
    "disable_stdout_logging",
    "enable_stdout_logging",
    "get_logger",
    "log_context",
    "set_level",
    "swallow",
    "warn_once",
]

_ROOT_NAME: Final[str] = "watchtower"
_ENV_PREFIX: Final[str] = "WATCHTOWER_LOG_"

_ctx: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar("watchtower_log_ctx", default=None)


def _current_ctx() -> dict[str, Any]:
    ctx = _ctx.get()
    return dict(ctx) if ctx else {}


def bind_context(**fields: Any) -> None:
    """Merge fields into the structured log context of the current task/thread."""
    ctx = _current_ctx()
    ctx.update({k: v for k, v in fields.items() if v is not None})
    _ctx.set(ctx)


@contextmanager
def log_context(**fields: Any):
    """Temporarily add fields to the structured log context."""
    token = _ctx.set({**_current_ctx(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _ctx.reset(token)


# ---------- Formatters ----------

_RECORD_ATTRS: Final[frozenset[str]] = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}


def _iso_utc_ms(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, message, context, extras, error."""

    def __init__(self, *, include_stack: bool = False) -> None:
        super().__init__()
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": _iso_utc_ms(record.created),
            "level": record.levelname,
            "logger": record.name,
        }
        msg = record.getMessage()
        if msg:
            out["message"] = msg
        out.update(_current_ctx())
        for k, v in record.__dict__.items():
            if k not in _RECORD_ATTRS and k not in out:
                out[k] = v

        if record.exc_info and record.exc_info[0] is not None:
            err: dict[str, Any] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }
            if self.include_stack:
                err["stack"] = self.formatException(record.exc_info)
            out["error"] = err

        return json.dumps(out, ensure_ascii=False, separators=(",", ":"), default=str)


class HumanFormatter(logging.Formatter):
    """Compact single-line formatter for terminals."""

    default_time_format = "%Y-%m-%d %H:%M:%S"
    default_msec_format = "%s.%03d"

    _shown_ctx: ClassVar[tuple[str, ...]] = ("task", "interval", "block", "target")

    def format(self, record: logging.LogRecord) -> str:
        line = f"{self.formatTime(record)} {record.levelname:<5} {record.name}: {record.getMessage()}"
        ctx = _current_ctx()
        shown = {k: ctx[k] for k in self._shown_ctx if ctx.get(k) is not None}
        if shown:
            line += "  [" + ", ".join(f"{k}={v}" for k, v in shown.items()) + "]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class _LevelRange(logging.Filter):
    def __init__(self, lo: int = logging.NOTSET, hi: int = logging.CRITICAL) -> None:
        super().__init__()
        self.lo, self.hi = lo, hi

    def filter(self, record: logging.LogRecord) -> bool:
        return self.lo <= record.levelno <= self.hi


class _KwExtraAdapter(logging.LoggerAdapter):
    """
    Moves unknown keyword arguments into `extra={...}` so call sites can write
    `log.info("msg", event="...", slot=...)` without TypeError from logging.
    """

    _passthrough: ClassVar[frozenset[str]] = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

    def process(self, msg, kwargs):
        extra = kwargs.get("extra")
        extra = dict(extra) if isinstance(extra, dict) else {}
        for k in [k for k in kwargs if k not in self._passthrough]:
            v = kwargs.pop(k)
            key = f"field_{k}" if k in _RECORD_ATTRS else k
            extra.setdefault(key, v)
        kwargs["extra"] = extra
        return msg, kwargs


def _adapt(logger: logging.Logger | logging.LoggerAdapter) -> logging.LoggerAdapter:
    return logger if isinstance(logger, logging.LoggerAdapter) else _KwExtraAdapter(logger, {})


_warned: set[str] = set()
_warned_lock = threading.Lock()


def warn_once(
    logger: logging.Logger | logging.LoggerAdapter,
    code: str,
    msg: str,
    *,
    level: int = logging.WARNING,
    **extra: Any,
) -> None:
    """Log `msg` only the first time `code` is seen in this process."""
    with _warned_lock:
        if code in _warned:
            return
        _warned.add(code)
    _adapt(logger).log(level, msg, event=code, **extra)


# ---------- Configuration ----------

_bootstrapped = False
_HANDLER_NAMES: Final[tuple[str, str]] = ("_watchtower_stdout", "_watchtower_stderr")


def _bootstrap() -> None:
    global _bootstrapped
    if _bootstrapped:
        return
    root = logging.getLogger(_ROOT_NAME)
    root.setLevel(logging.INFO)
    if not any(isinstance(h, logging.NullHandler) for h in root.handlers):
        root.addHandler(logging.NullHandler())
    _bootstrapped = True


def get_logger(name: str | None = None) -> logging.LoggerAdapter:
    """Namespaced adapter (`watchtower.<name>`) accepting keyword fields."""
    _bootstrap()
    base = logging.getLogger(_ROOT_NAME)
    return _KwExtraAdapter(base.getChild(name) if name else base, {})


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Invalid level name: {level!r}")
    return resolved


def set_level(level: int | str) -> None:
    logging.getLogger(_ROOT_NAME).setLevel(_resolve_level(level))


def enable_stdout_logging(
    *,
    level: int | str = logging.INFO,
    json_output: bool = True,
    include_stack: bool = False,
    pretty: bool = False,
    route_errors_to_stderr: bool = False,
) -> None:
    """
    Attach stream handlers to the `watchtower` logger.
    - pretty=True -> HumanFormatter, else JsonFormatter (or plain text when json_output=False)
    - route_errors_to_stderr=True -> ERROR+ to stderr, the rest to stdout
    """
    lvl = _resolve_level(level)
    _bootstrap()
    disable_stdout_logging()
    root = logging.getLogger(_ROOT_NAME)
    root.setLevel(min(root.level or lvl, lvl))

    fmt: logging.Formatter
    if pretty:
        fmt = HumanFormatter()
    elif json_output:
        fmt = JsonFormatter(include_stack=include_stack)
    else:
        fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    out = logging.StreamHandler(sys.stdout)
    out.set_name(_HANDLER_NAMES[0])
    out.setLevel(lvl)
    out.setFormatter(fmt)
    root.addHandler(out)

    if route_errors_to_stderr:
        out.addFilter(_LevelRange(hi=logging.WARNING))
        err = logging.StreamHandler(sys.stderr)
        err.set_name(_HANDLER_NAMES[1])
        err.setLevel(max(lvl, logging.ERROR))
        err.setFormatter(fmt)
        root.addHandler(err)


def disable_stdout_logging() -> None:
    root = logging.getLogger(_ROOT_NAME)
    for h in list(root.handlers):
        if h.get_name() in _HANDLER_NAMES:
            root.removeHandler(h)


def _env_flag(name: str) -> bool:
    return os.getenv(_ENV_PREFIX + name, "").lower() in ("1", "true", "yes", "on")


def configure_from_env() -> None:
    """
    Call once from entrypoints/tests. Honors:
      - WATCHTOWER_LOG_STDOUT=1 -> enable stdout
      - WATCHTOWER_LOG_LEVEL=DEBUG|INFO|...
      - WATCHTOWER_LOG_PRETTY=1 -> human formatter instead of JSON
      - WATCHTOWER_LOG_STACK=1 -> include stack in JSON logs
    """
    level = os.getenv(_ENV_PREFIX + "LEVEL", "INFO")
    _bootstrap()
    set_level(level)
    if _env_flag("STDOUT"):
        pretty = _env_flag("PRETTY")
        enable_stdout_logging(level=level, json_output=not pretty, include_stack=_env_flag("STACK"), pretty=pretty)
    else:
        disable_stdout_logging()


@contextmanager
def swallow(
    *,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
    level: int = logging.ERROR,
    code: str,
    msg: str | None = None,
    extra: Mapping[str, Any] | None = None,
    expected: bool = False,
):
    """
    Log-and-continue boundary for code that must never take the process down
    (driver ticks, background completions). `Exception` only; cancellation and
    interpreter exits propagate.
    """
    log = _adapt(logger or get_logger("swallow"))
    try:
        yield
    except Exception as e:
        payload: dict[str, Any] = {"event": code, "expected": expected, **dict(extra or {})}
        log.log(level, msg or "Suppressed exception", exc_info=e, **payload)


_bootstrap()
