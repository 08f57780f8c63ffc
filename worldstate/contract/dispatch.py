from __future__ import annotations

"""
Invocation boundary
===================

`invoke(registry, name, args)` is the single entry point a ledger host calls:

1) resolve `name` in the method table (UnknownMethod if absent)
2) parse the string `args` per the method's parameters (InvalidArgument)
3) run the call inside one store transaction tagged with `tx_id`
4) serialize the result to compact JSON bytes

Result encoding
---------------
- None                 → b""
- Record               → JSON object keyed by wire names
- HistoryRecord        → {"txId", "timestamp", "isDelete", "value"}
- list of the above    → JSON array
- bool / int / str     → JSON scalar

Errors propagate unchanged as `WorldStateError` subclasses; the transaction
is rolled back first, so a failed invocation leaves no writes behind.
"""

import datetime as _dt
import json
import time
from typing import Any, Optional, Sequence

from .. import logging as wlog
from ..errors import WorldStateError
from ..types import HistoryRecord, Record
from .methods import resolve

log = wlog.get_logger("worldstate.contract")


def _to_jsonable(obj: Any) -> Any:
    if isinstance(obj, (Record, HistoryRecord)):
        return obj.to_wire()
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(x) for x in obj]
    return obj


def encode_result(result: Any) -> bytes:
    """Serialize a method result for the ledger host."""
    if result is None:
        return b""
    return json.dumps(
        _to_jsonable(result), separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def invoke(
    registry: Any,
    name: str,
    args: Sequence[str] = (),
    *,
    tx_id: Optional[str] = None,
    timestamp: Optional[_dt.datetime] = None,
) -> bytes:
    """
    Run contract method `name` against `registry` and return its JSON reply.

    Raises:
        UnknownMethod, InvalidArgument, NotFound, AlreadyExists, DecodeError,
        EncodeError, StoreFailure.
    """
    spec = resolve(name)
    t0 = time.perf_counter()
    with registry.store.transaction(tx_id, timestamp) as info:
        with wlog.trace_scope(tx_id=info.tx_id, method=name):
            try:
                result = spec.call(registry, args)
            except WorldStateError as e:
                log.info("invocation failed", extra={"code": e.code})
                raise
            out = encode_result(result)
            log.debug(
                "invocation ok",
                extra={"ms": round((time.perf_counter() - t0) * 1000, 3)},
            )
    return out


__all__ = ["invoke", "encode_result"]
