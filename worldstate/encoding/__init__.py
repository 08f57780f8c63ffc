"""
worldstate.encoding
===================

Public encoding surface:

- record.py: Record ⇄ bytes (JSON wire documents or canonical CBOR)

Kept deliberately small; everything the registry stores goes through
`RecordCodec`.
"""

from __future__ import annotations

from .record import (DEFAULT_FORMAT, FORMATS, RecordCodec, decode_record,
                     encode_record, record_from_wire)

__all__ = [
    "FORMATS",
    "DEFAULT_FORMAT",
    "RecordCodec",
    "encode_record",
    "decode_record",
    "record_from_wire",
]
