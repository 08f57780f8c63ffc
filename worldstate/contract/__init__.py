"""
worldstate.contract
===================

The invocation boundary a ledger host talks to:

- methods.py:  method table (`@method`, `resolve`, `list_methods`)
- asset.py:    built-in asset methods (InitLedger, CreateAsset, ...)
- dispatch.py: `invoke(registry, name, args)` → JSON bytes
"""

from __future__ import annotations

from .dispatch import encode_result, invoke
from .methods import MethodSpec, list_methods, method, resolve

__all__ = ["invoke", "encode_result", "MethodSpec", "list_methods", "method", "resolve"]
