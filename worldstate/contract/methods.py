from __future__ import annotations

"""
worldstate.contract.methods
===========================

A lightweight table binding the ledger's contract function names
(e.g. "CreateAsset") to Python callables over an `AssetRegistry`.

Design goals
------------
- Simple: a dict mapping {method_name: MethodSpec}.
- Typed: each callable's annotations say how its string arguments are parsed
  (`int` → base-10 integer, `str` → verbatim).
- Lazy: the built-in asset methods load on first lookup.
- Safe: duplicate registrations must opt-in with replace=True.

Typical method module usage
---------------------------
from .methods import method

@method("ReadAsset", desc="Return the record stored under record_id")
def read_asset(reg: AssetRegistry, record_id: str) -> Record:
    ...

The first parameter of every method is the registry; the remaining ones are
filled from the invocation's argument strings, in order.
"""

import importlib
import inspect
import re
import threading
import typing as t
from dataclasses import dataclass, field

from ..errors import InvalidArgument, UnknownMethod

_INT_ARG = re.compile(r"[+-]?[0-9]+")


def parse_arg(raw: t.Any, typ: type, *, name: str) -> t.Any:
    """Parse one string argument per its declared type."""
    if not isinstance(raw, str):
        raise InvalidArgument("arguments must be strings", param=name, got=type(raw).__name__)
    if typ is int:
        s = raw.strip()
        if not _INT_ARG.fullmatch(s):
            raise InvalidArgument(
                f"argument {name} must be a base-10 integer", param=name, got=raw
            )
        return int(s)
    return raw


@dataclass(frozen=True)
class MethodSpec:
    """Metadata about a contract method binding."""

    name: str
    func: t.Callable[..., t.Any]
    desc: str | None = None
    params: tuple[tuple[str, type], ...] = field(default_factory=tuple)

    def call(self, registry: t.Any, args: t.Sequence[str] = ()) -> t.Any:
        """
        Parse `args` against the declared parameters and call the function.
        A wrong argument count or an unparsable integer raises InvalidArgument.
        """
        args = list(args)
        if len(args) != len(self.params):
            raise InvalidArgument(
                f"{self.name} expects {len(self.params)} arguments, got {len(args)}",
                method=self.name,
                expected=[p for p, _ in self.params],
            )
        parsed = [parse_arg(a, typ, name=p) for a, (p, typ) in zip(args, self.params)]
        return self.func(registry, *parsed)


# ---- Global registry --------------------------------------------------------

_REGISTRY: dict[str, MethodSpec] = {}
_LOADED = False
_LOCK = threading.RLock()

_BUILTIN_MODULES = ("worldstate.contract.asset",)


def _params_of(fn: t.Callable[..., t.Any]) -> tuple[tuple[str, type], ...]:
    hints = t.get_type_hints(fn)
    names = list(inspect.signature(fn).parameters)[1:]  # first is the registry
    out = []
    for n in names:
        typ = hints.get(n, str)
        if typ not in (int, str):
            raise TypeError(f"{fn.__name__}: parameter {n} must be annotated int or str")
        out.append((n, typ))
    return tuple(out)


def register(
    name: str,
    func: t.Callable[..., t.Any],
    *,
    desc: str | None = None,
    replace: bool = False,
) -> MethodSpec:
    """Register a callable under a contract method name."""
    if not isinstance(name, str) or not name:
        raise ValueError(f"Method name must be a non-empty string, got {name!r}")

    with _LOCK:
        if name in _REGISTRY and not replace:
            raise KeyError(f"Method {name!r} is already registered")
        spec = MethodSpec(
            name=name,
            func=func,
            desc=desc or _func_desc(func),
            params=_params_of(func),
        )
        _REGISTRY[name] = spec
        return spec


def method(name: str, *, desc: str | None = None, replace: bool = False):
    """
    Decorator to register a function as a contract method.

    Example:
        @method("AssetExists")
        def asset_exists(reg, record_id: str) -> bool: ...
    """

    def _wrap(fn: t.Callable[..., t.Any]):
        register(name, fn, desc=desc, replace=replace)
        return fn

    return _wrap


def resolve(name: str) -> MethodSpec:
    ensure_loaded()
    with _LOCK:
        spec = _REGISTRY.get(name)
        if spec is None:
            raise UnknownMethod(name)
        return spec


def list_methods() -> list[str]:
    ensure_loaded()
    with _LOCK:
        return sorted(_REGISTRY)


def ensure_loaded() -> None:
    """Import built-in method modules so their @method decorators run."""
    global _LOADED
    with _LOCK:
        if _LOADED:
            return
        for mod in _BUILTIN_MODULES:
            importlib.import_module(mod)
        _LOADED = True


# ---- Introspection helpers --------------------------------------------------


def _func_desc(fn: t.Callable[..., t.Any]) -> str | None:
    """One-line description from the docstring, else the signature."""
    lines = (fn.__doc__ or "").strip().splitlines()
    doc = lines[0].strip() if lines else ""
    return doc or f"{fn.__name__}{inspect.signature(fn)}"


__all__ = [
    "MethodSpec",
    "parse_arg",
    "register",
    "method",
    "resolve",
    "list_methods",
    "ensure_loaded",
]
