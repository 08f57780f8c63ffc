"""
worldstate.registry
===================

Asset registry: precondition-guarded record operations over a store.

- registry.py: `AssetRegistry`
- seed.py:     starter records for `seed_defaults()`
"""

from __future__ import annotations

from .registry import AssetRegistry
from .seed import DEFAULT_RECORDS

__all__ = ["AssetRegistry", "DEFAULT_RECORDS"]
