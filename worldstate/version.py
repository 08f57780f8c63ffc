"""
Version helpers for worldstate.

- Exposes __version__ (PEP 440).
- Resolution order:
    1) WORLDSTATE_VERSION env var (authoritative override)
    2) installed distribution metadata ("worldstate")
    3) fallback DEFAULT_VERSION

This module has **no external dependencies** and is safe to import very early.
"""

from __future__ import annotations

import os
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _dist_version

DEFAULT_VERSION = "0.1.0"
DIST_NAME = "worldstate"


def resolve_version() -> str:
    env = os.getenv("WORLDSTATE_VERSION")
    if env:
        return env.strip()
    try:
        return _dist_version(DIST_NAME)
    except PackageNotFoundError:
        return DEFAULT_VERSION


__version__ = resolve_version()


if __name__ == "__main__":
    print(__version__)
