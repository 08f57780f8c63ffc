"""
worldstate.logging
------------------

Stdlib logging with per-invocation context.

- Context fields live in a `contextvars.ContextVar`, so every record logged
  while an invocation runs carries its `tx_id`, `method` and `key` without
  threading them through call signatures.
- Two renderings of the same record: one JSON object per line (services,
  log shippers, the optional file tee) or a compact text line for terminals,
  colored when the stream is a TTY and NO_COLOR is unset.
- `WORLDSTATE_LOG_FORMAT=json|text` picks the console rendering when the
  caller does not.

Usage
-----
    from worldstate import logging as wlog

    wlog.configure(level="DEBUG")
    log = wlog.get_logger(__name__)

    with wlog.trace_scope(tx_id="tx-42", method="ReadAsset"):
        with wlog.bound(key="D001"):
            log.info("read", extra={"bytes": 97})
"""

from __future__ import annotations

import datetime as _dt
import json
import logging
import os
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import IO, Any, Dict, Iterator, Optional

# ----------------------------
# Context
# ----------------------------

_CTX: ContextVar[Dict[str, Any]] = ContextVar("worldstate_log_ctx", default={})

# Rendered first (in this order) by the text formatter.
CONTEXT_ORDER = ("trace_id", "tx_id", "method", "key")

# Attributes every LogRecord has; anything else on a record came from `extra=`.
_STD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


def context() -> Dict[str, Any]:
    """Copy of the fields bound in the current context."""
    return dict(_CTX.get())


def bind(**fields: Any) -> None:
    """Add fields to the current context until cleared or the scope exits."""
    _CTX.set({**_CTX.get(), **fields})


def clear_context() -> None:
    _CTX.set({})


@contextmanager
def bound(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Bind fields for the duration of a `with` block only."""
    token = _CTX.set({**_CTX.get(), **fields})
    try:
        yield _CTX.get()
    finally:
        _CTX.reset(token)


@contextmanager
def trace_scope(trace_id: Optional[str] = None, **fields: Any) -> Iterator[str]:
    """Like `bound`, plus a trace_id (generated when not given). Yields the id."""
    tid = trace_id or uuid.uuid4().hex[:12]
    with bound(trace_id=tid, **fields):
        yield tid


# ----------------------------
# Formatters
# ----------------------------


def _jsonable(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).hex()
    if isinstance(v, _dt.datetime):
        return v.isoformat()
    if isinstance(v, (list, tuple)):
        return [_jsonable(x) for x in v]
    if isinstance(v, dict):
        return {str(k): _jsonable(x) for k, x in v.items()}
    return str(v)


class _ContextFormatter(logging.Formatter):
    """Collects context + `extra=` fields; subclasses decide the layout."""

    def fields(self, record: logging.LogRecord) -> Dict[str, Any]:
        out = {k: _jsonable(v) for k, v in _CTX.get().items()}
        for k, v in record.__dict__.items():
            if k not in _STD_ATTRS and not k.startswith("_") and k not in out:
                out[k] = _jsonable(v)
        return out

    @staticmethod
    def timestamp(record: logging.LogRecord) -> str:
        ts = _dt.datetime.fromtimestamp(record.created, _dt.timezone.utc)
        return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @staticmethod
    def error_text(record: logging.LogRecord) -> Optional[str]:
        if not record.exc_info:
            return None
        return "".join(traceback.format_exception(*record.exc_info)).rstrip()


class JSONFormatter(_ContextFormatter):
    """One JSON object per line: ts, level, logger, msg, then context and extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k, v in self.fields(record).items():
            payload.setdefault(k, v)
        err = self.error_text(record)
        if err:
            payload["err"] = err
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


_COLORS = {
    logging.DEBUG: "\x1b[90m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[1m\x1b[35m",
}
_RESET = "\x1b[0m"


class TextFormatter(_ContextFormatter):
    """
    2025-01-05T12:34:56.789Z | INFO  | worldstate.registry | tx_id=t1 key=D001 | asset created
    """

    def __init__(self, color: bool = False) -> None:
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        fields = self.fields(record)
        ordered = [k for k in CONTEXT_ORDER if fields.get(k) is not None]
        ordered += [k for k in fields if k not in CONTEXT_ORDER]
        kv = " ".join(f"{k}={fields[k]}" for k in ordered)

        level = f"{record.levelname:<5}"
        if self.color:
            level = f"{_COLORS.get(record.levelno, '')}{level}{_RESET}"

        parts = [self.timestamp(record), level, record.name]
        if kv:
            parts.append(kv)
        parts.append(record.getMessage())
        line = " | ".join(parts)

        err = self.error_text(record)
        return f"{line}\n{err}" if err else line


# ----------------------------
# Setup
# ----------------------------


def _is_tty(stream: IO[str]) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty()) and "NO_COLOR" not in os.environ


def _want_json(json_flag: Optional[bool], stream: IO[str]) -> bool:
    if json_flag is not None:
        return json_flag
    env = os.environ.get("WORLDSTATE_LOG_FORMAT", "").strip().lower()
    if env in ("json", "text"):
        return env == "json"
    return not _is_tty(stream)


def configure(
    *,
    json: Optional[bool] = None,
    level: str | int = "INFO",
    stream: Optional[IO[str]] = None,
    file_path: Optional[Path | str] = None,
) -> None:
    """
    Replace the root logger's handlers with a console handler (JSON or text)
    and, if `file_path` is given, a JSON-lines file handler.

    `json=None` defers to WORLDSTATE_LOG_FORMAT, then to TTY detection
    (text on a terminal, JSON otherwise).
    """
    out = stream if stream is not None else sys.stderr
    lvl = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(lvl, int):
        lvl = logging.INFO

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(lvl)

    console = logging.StreamHandler(out)
    console.setFormatter(
        JSONFormatter() if _want_json(json, out) else TextFormatter(color=_is_tty(out))
    )
    root.addHandler(console)

    if file_path:
        p = Path(file_path).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(p, encoding="utf-8")
        fh.setFormatter(JSONFormatter())
        root.addHandler(fh)


def configure_from_config(cfg: Any) -> None:
    """Apply the `log` section of a `worldstate.config.Config`."""
    fmt = (cfg.log.format or "auto").lower()
    configure(
        json=None if fmt == "auto" else fmt == "json",
        level=cfg.log.level,
        file_path=cfg.log.file,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "worldstate")


__all__ = [
    "configure",
    "configure_from_config",
    "get_logger",
    "JSONFormatter",
    "TextFormatter",
    "bind",
    "bound",
    "clear_context",
    "context",
    "trace_scope",
]
