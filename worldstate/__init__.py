"""
worldstate: versioned key-value world state for ledger contracts.

Layers, leaf first:

- ``worldstate.db``        versioned store + per-key history log (memory, SQLite)
- ``worldstate.encoding``  record codec (JSON wire format, canonical CBOR)
- ``worldstate.registry``  precondition-guarded asset registry
- ``worldstate.contract``  named entry points for a transaction dispatcher

Only re-exports the version here to keep import-time side effects near zero.
"""

from __future__ import annotations

from .version import __version__


def get_version() -> str:
    """Return the semantic version string for this package."""
    return __version__


__all__ = ["__version__", "get_version"]
