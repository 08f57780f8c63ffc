"""
worldstate.errors
-----------------

A small, consistent error system for the store, codec, registry and
dispatcher layers.

Design goals
------------
- One root `WorldStateError` with machine-friendly `code` and optional `data`.
- Concrete subclasses for the failure taxonomy the registry exposes:
  NotFound, AlreadyExists, DecodeError, StoreFailure (+ encode/config/dispatch).
- Safe JSON representation (`to_dict`) suitable for logs and dispatcher replies.
- Every error here is *permanent* from the core's point of view: retry policy,
  if any, belongs to the surrounding ledger platform.

This module uses only stdlib to avoid import-time dependency cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

# ---------------------------------------------------------------------------
# Error codes & classes
# ---------------------------------------------------------------------------


class ErrorCode(str, Enum):
    # Registry preconditions
    NOT_FOUND = "WS/NOT_FOUND"
    ALREADY_EXISTS = "WS/ALREADY_EXISTS"

    # Codec
    DECODE = "WS/DECODE"
    ENCODE = "WS/ENCODE"

    # Store / backend
    STORE = "WS/STORE"

    # Config / dispatch
    CONFIG = "WS/CONFIG"
    INVALID_ARGUMENT = "WS/INVALID_ARGUMENT"
    UNKNOWN_METHOD = "WS/UNKNOWN_METHOD"


@dataclass(eq=False)
class WorldStateError(Exception):
    """
    Root error for worldstate components.

    Attributes
    ----------
    code: str
        Machine-stable error code (see ErrorCode).
    message: str
        Human hint suitable for logs; never includes record secrets.
    data: dict
        Optional machine data (keys, method names, sizes). JSON-serializable.
    retryable: bool
        Whether the operation may succeed on retry without changing inputs.
    cause: Optional[BaseException]
        Wrapped original exception; not included in equality comparison.
    """

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    retryable: bool = False
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        # plain string code so f-strings and JSON show "WS/..." rather than the enum name
        if isinstance(self.code, ErrorCode):
            self.code = self.code.value
        super().__init__(f"{self.code}: {self.message}")

    def with_cause(self, exc: BaseException) -> "WorldStateError":
        """Attach the causal exception in place and return self (for `raise ... from`)."""
        self.cause = exc
        return self

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """JSON-safe shape suitable for logs/dispatcher replies."""
        out = {
            "code": self.code,
            "message": self.message,
            "data": _coerce_json(self.data),
            "retryable": self.retryable,
        }
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out

    def __str__(self) -> str:  # pragma: no cover - human formatting
        parts = [f"{self.code}: {self.message}"]
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            parts.append(f"[{preview}]")
        return " ".join(parts)


class NotFound(WorldStateError):
    """The operation required the record to be present; it is absent."""

    def __init__(self, key: str, space: str = "asset") -> None:
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=f"the {space} {key} does not exist",
            data={"key": key, "space": space},
        )


class AlreadyExists(WorldStateError):
    """The operation required the record to be absent; it is present."""

    def __init__(self, key: str, space: str = "asset") -> None:
        super().__init__(
            code=ErrorCode.ALREADY_EXISTS,
            message=f"the {space} {key} already exists",
            data={"key": key, "space": space},
        )


class DecodeError(WorldStateError):
    def __init__(self, message="record decode failed", **data: Any) -> None:
        super().__init__(code=ErrorCode.DECODE, message=message, data=_jsonmap(data))


class EncodeError(WorldStateError):
    def __init__(self, message="record encode failed", **data: Any) -> None:
        super().__init__(code=ErrorCode.ENCODE, message=message, data=_jsonmap(data))


class StoreFailure(WorldStateError):
    """Underlying read/write/scan failed. Fatal and non-retryable for the core."""

    def __init__(self, message="store operation failed", **data: Any) -> None:
        super().__init__(code=ErrorCode.STORE, message=message, data=_jsonmap(data))


class ConfigError(WorldStateError):
    def __init__(self, message="invalid configuration", **data: Any) -> None:
        super().__init__(code=ErrorCode.CONFIG, message=message, data=_jsonmap(data))


class InvalidArgument(WorldStateError):
    def __init__(self, message="invalid argument", **data: Any) -> None:
        super().__init__(
            code=ErrorCode.INVALID_ARGUMENT, message=message, data=_jsonmap(data)
        )


class UnknownMethod(WorldStateError):
    def __init__(self, name: str) -> None:
        super().__init__(
            code=ErrorCode.UNKNOWN_METHOD,
            message=f"unknown method {name!r}",
            data={"method": name},
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T = TypeVar("T", bound=WorldStateError)


def wrap(exc: BaseException, *, as_: Type[T] = StoreFailure, message: Optional[str] = None, **ctx: Any) -> T:
    """
    Wrap a backend exception into a WorldStateError subclass, attaching context.
    If `exc` already is a WorldStateError it is returned unchanged.
    """
    if isinstance(exc, WorldStateError):
        return exc  # type: ignore[return-value]
    err = as_(message or f"{type(exc).__name__}: {exc}", **ctx)  # type: ignore[call-arg]
    err.with_cause(exc)
    return err


def _jsonmap(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in data.items()}


def _coerce_json(v: Any) -> Any:
    # Keep JSON primitives; stringify the rest; hex-encode bytes.
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, dict):
        return {str(k): _coerce_json(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_coerce_json(x) for x in v]
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).hex()
    try:
        return str(v)
    except Exception:
        return "<unprintable>"


def _preview(v: Any, limit: int = 96) -> str:
    s = str(_coerce_json(v))
    return s if len(s) <= limit else s[:limit] + "…"


__all__ = [
    "ErrorCode",
    "WorldStateError",
    "NotFound",
    "AlreadyExists",
    "DecodeError",
    "EncodeError",
    "StoreFailure",
    "ConfigError",
    "InvalidArgument",
    "UnknownMethod",
    "wrap",
]
