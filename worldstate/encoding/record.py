from __future__ import annotations

"""
Record codec
------------

Serializes `worldstate.types.Record` to and from the store's byte values.

Formats
~~~~~~~
- ``json``  compact UTF-8 JSON object keyed by wire names (``dealerId``,
            ``msisdn``, ``mpin``, ``balance``, ...), sorted keys. This is the
            document shape ledger clients already read and write.
- ``cbor``  canonical CBOR (RFC 8949 deterministic encoding) of the same map,
            via ``cbor2``.

Decoding rules
~~~~~~~~~~~~~~
- Undecodable bytes, a non-map top level, a missing/non-string ``dealerId``
  (``dealerID`` is accepted when ``dealerId`` is absent),
  or a present field of the wrong type raise `DecodeError`.
- Missing non-key fields (or JSON ``null``) decode to zero values (``""``/``0``)
  so older documents keep loading after the schema grows. ``strict=True``
  turns any missing field into a `DecodeError` instead.
- ``balance`` and ``transAmount`` accept an integer or a base-10 integer
  string (documents written by the string-balance contract variant) and always
  decode to ``int``. Booleans, floats and non-integral strings are rejected.
- Unknown keys are ignored.

Encoding always emits integers, so ``decode(encode(r)) == r`` for every
valid record in both formats.
"""

import json
import re
from typing import Any, Dict, Mapping

import cbor2

from ..errors import DecodeError, EncodeError
from ..types import KEY_WIRE_ALIASES, KEY_WIRE_NAME, WIRE_FIELDS, Record

FORMATS = ("json", "cbor")
DEFAULT_FORMAT = "json"

_INT_STR = re.compile(r"^\s*[+-]?[0-9]+\s*$")


def _check_format(fmt: str) -> str:
    f = fmt.lower()
    if f not in FORMATS:
        raise ValueError(f"unsupported record format {fmt!r}; expected one of {FORMATS}")
    return f


# ------------------------
# Encode
# ------------------------


def _wire_map(record: Record) -> Dict[str, Any]:
    if not isinstance(record, Record):
        raise EncodeError("expected a Record", type=type(record).__name__)
    out: Dict[str, Any] = {}
    for attr, wire, typ in WIRE_FIELDS:
        v = getattr(record, attr)
        # bool is an int subclass; never a legitimate balance
        if not isinstance(v, typ) or isinstance(v, bool):
            raise EncodeError(
                f"field {attr} must be {typ.__name__}",
                field=attr,
                got=type(v).__name__,
            )
        out[wire] = v
    return out


def encode_record(record: Record, fmt: str = DEFAULT_FORMAT) -> bytes:
    """Encode `record` to bytes in the given format."""
    m = _wire_map(record)
    if _check_format(fmt) == "cbor":
        return cbor2.dumps(m, canonical=True)
    return json.dumps(
        m, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


# ------------------------
# Decode
# ------------------------


def _load_map(data: bytes, fmt: str) -> Mapping[str, Any]:
    try:
        if fmt == "cbor":
            obj = cbor2.loads(bytes(data))
        else:
            obj = json.loads(bytes(data).decode("utf-8"))
    except (ValueError, EOFError, TypeError, cbor2.CBORDecodeError) as e:
        raise DecodeError(f"malformed {fmt} record: {e}", format=fmt) from e
    if not isinstance(obj, dict):
        raise DecodeError(
            f"{fmt} record must be a map", format=fmt, got=type(obj).__name__
        )
    return obj


def _as_int(v: Any, wire: str) -> int:
    if isinstance(v, bool):
        raise DecodeError(f"field {wire} must be an integer", field=wire, got="bool")
    if isinstance(v, int):
        return v
    if isinstance(v, str) and _INT_STR.match(v):
        return int(v.strip())
    raise DecodeError(
        f"field {wire} must be an integer", field=wire, got=type(v).__name__
    )


def _record_key(m: Mapping[str, Any]) -> str:
    for wire in (KEY_WIRE_NAME,) + KEY_WIRE_ALIASES:
        key = m.get(wire)
        if key is not None:
            break
    if not isinstance(key, str) or not key:
        raise DecodeError(f"record has no valid {KEY_WIRE_NAME}", field=KEY_WIRE_NAME)
    return key


def record_from_wire(m: Mapping[str, Any], *, strict: bool = False) -> Record:
    """Build a Record from a wire-named mapping, applying the decoding rules."""
    kwargs: Dict[str, Any] = {"id": _record_key(m)}
    for attr, wire, typ in WIRE_FIELDS:
        if wire == KEY_WIRE_NAME:
            continue
        v = m.get(wire)
        if v is None:
            if strict:
                raise DecodeError(f"missing field {wire}", field=wire)
            kwargs[attr] = typ()
        elif typ is int:
            kwargs[attr] = _as_int(v, wire)
        elif isinstance(v, str):
            kwargs[attr] = v
        else:
            raise DecodeError(
                f"field {wire} must be a string", field=wire, got=type(v).__name__
            )
    return Record(**kwargs)


def decode_record(data: bytes, fmt: str = DEFAULT_FORMAT, *, strict: bool = False) -> Record:
    """Decode stored bytes to a Record. Raises DecodeError on malformed input."""
    return record_from_wire(_load_map(data, _check_format(fmt)), strict=strict)


class RecordCodec:
    """Format + strictness bound together; the registry holds one of these."""

    __slots__ = ("fmt", "strict")

    def __init__(self, fmt: str = DEFAULT_FORMAT, *, strict: bool = False) -> None:
        self.fmt = _check_format(fmt)
        self.strict = bool(strict)

    def encode(self, record: Record) -> bytes:
        return encode_record(record, self.fmt)

    def decode(self, data: bytes) -> Record:
        return decode_record(data, self.fmt, strict=self.strict)

    def __repr__(self) -> str:  # pragma: no cover
        return f"RecordCodec(fmt={self.fmt!r}, strict={self.strict})"


__all__ = [
    "FORMATS",
    "DEFAULT_FORMAT",
    "RecordCodec",
    "encode_record",
    "decode_record",
    "record_from_wire",
]
