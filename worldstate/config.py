"""
worldstate configuration loader.

Goals
-----
- Zero external deps (stdlib only).
- Layered config with clear precedence:
    1) Explicit overrides passed to `load()` (highest)
    2) Environment variables (WORLDSTATE_*)
    3) Config file (TOML or JSON)
    4) Built-in defaults (lowest)
- Typed dataclasses with validation; every problem is a `ConfigError`.

Sections
--------
  store: { uri, create }            which backend holds the world state
  codec: { format, strict }         how records are serialized
  log:   { level, format, file }    see worldstate.logging.configure_from_config

Environment
-----------
  WORLDSTATE_STORE_URI      e.g. "memory://", "sqlite:///var/lib/ws/state.db"
  WORLDSTATE_STORE_CREATE   bool
  WORLDSTATE_CODEC_FORMAT   "json" | "cbor"
  WORLDSTATE_CODEC_STRICT   bool
  WORLDSTATE_LOG_LEVEL      DEBUG | INFO | ...
  WORLDSTATE_LOG_FORMAT     "json" | "text" | "auto"
  WORLDSTATE_LOG_FILE       optional JSON-lines tee
"""

from __future__ import annotations

import json
import logging
import os
import tomllib
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from .errors import ConfigError

if TYPE_CHECKING:  # pragma: no cover
    from .registry import AssetRegistry

# ------------------------------
# Defaults & helpers
# ------------------------------

DEFAULT_STORE_URI = "memory://"
LOG_FORMATS = ("json", "text", "auto")

_TRUE = {"1", "true", "t", "yes", "y", "on"}
_FALSE = {"0", "false", "f", "no", "n", "off"}


def _expand(p: str | Path) -> Path:
    return Path(p).expanduser().resolve()


def _parse_bool(v: Any, name: str) -> bool:
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean", key=name, got=repr(v))


# ------------------------------
# Typed configuration model
# ------------------------------

@dataclass
class StoreConfig:
    uri: str = DEFAULT_STORE_URI
    create: bool = True

    def validate(self) -> None:
        u = self.uri.strip()
        if u.startswith("memory://") or u.startswith("sqlite:///") or u.endswith(".db"):
            return
        raise ConfigError(
            "unsupported store URI; use memory://, sqlite:///path/to.db or a *.db path",
            key="store.uri",
            got=self.uri,
        )


@dataclass
class CodecConfig:
    format: str = "json"
    strict: bool = False

    def validate(self) -> None:
        # local import: encoding pulls in cbor2, config must stay importable early
        from .encoding.record import FORMATS

        if self.format not in FORMATS:
            raise ConfigError(
                f"codec.format must be one of {FORMATS}", key="codec.format", got=self.format
            )


@dataclass
class LogConfig:
    level: str = "INFO"
    format: str = "auto"
    file: Optional[str] = None

    def validate(self) -> None:
        if not isinstance(logging.getLevelName(self.level.upper()), int):
            raise ConfigError("unknown log level", key="log.level", got=self.level)
        if self.format not in LOG_FORMATS:
            raise ConfigError(
                f"log.format must be one of {LOG_FORMATS}", key="log.format", got=self.format
            )


@dataclass
class Config:
    store: StoreConfig
    codec: CodecConfig
    log: LogConfig

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ------------------------------
# File loader (TOML / JSON)
# ------------------------------

def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError("config file not found", path=str(path))
    suffix = path.suffix.lower()
    try:
        with path.open("rb") as f:
            if suffix in {".toml", ".tml"}:
                return tomllib.load(f)
            if suffix in {".json"}:
                return json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read config file: {e}", path=str(path)) from e
    raise ConfigError(f"unsupported config format {suffix!r}; use .toml or .json", path=str(path))


def _merge_dict(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow + nested dict merge: values in b override a."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge_dict(out[k], v)  # type: ignore[arg-type]
        else:
            out[k] = v
    return out


_ENV_MAP = {
    "WORLDSTATE_STORE_URI": ("store", "uri"),
    "WORLDSTATE_STORE_CREATE": ("store", "create"),
    "WORLDSTATE_CODEC_FORMAT": ("codec", "format"),
    "WORLDSTATE_CODEC_STRICT": ("codec", "strict"),
    "WORLDSTATE_LOG_LEVEL": ("log", "level"),
    "WORLDSTATE_LOG_FORMAT": ("log", "format"),
    "WORLDSTATE_LOG_FILE": ("log", "file"),
}


def _env_layer() -> Dict[str, Any]:
    out: Dict[str, Dict[str, Any]] = {}
    for name, (section, key) in _ENV_MAP.items():
        v = os.environ.get(name)
        if v is None or v == "":
            continue
        out.setdefault(section, {})[key] = v.strip()
    return out


# ------------------------------
# Main loader
# ------------------------------

def load(config_file: Optional[str | Path] = None, **overrides: Any) -> Config:
    """
    Load the configuration.

    Precedence: overrides > env > file > defaults.

    Parameters
    ----------
    config_file : str | Path | None
        Optional path to a TOML or JSON file with `store`, `codec` and `log`
        tables.
    overrides : Any
        Keyword overrides, e.g. load(store={"uri": "sqlite:///:memory:"}).
    """
    base: Dict[str, Any] = {
        "store": asdict(StoreConfig()),
        "codec": asdict(CodecConfig()),
        "log": asdict(LogConfig()),
    }

    if config_file:
        base = _merge_dict(base, _load_file(_expand(config_file)))
    base = _merge_dict(base, _env_layer())
    if overrides:
        base = _merge_dict(base, overrides)

    unknown = set(base) - {"store", "codec", "log"}
    if unknown:
        raise ConfigError("unknown config sections", sections=sorted(unknown))

    try:
        cfg = Config(
            store=StoreConfig(
                uri=str(base["store"]["uri"]),
                create=_parse_bool(base["store"]["create"], "store.create"),
            ),
            codec=CodecConfig(
                format=str(base["codec"]["format"]).strip().lower(),
                strict=_parse_bool(base["codec"]["strict"], "codec.strict"),
            ),
            log=LogConfig(
                level=str(base["log"]["level"]).strip().upper(),
                format=str(base["log"]["format"]).strip().lower(),
                file=str(base["log"]["file"]) if base["log"].get("file") else None,
            ),
        )
    except (KeyError, TypeError) as e:
        raise ConfigError(f"malformed configuration: {e}") from e

    _validate_config(cfg)
    return cfg


def _validate_config(cfg: Config) -> None:
    cfg.store.validate()
    cfg.codec.validate()
    cfg.log.validate()


def build_registry(cfg: Config) -> "AssetRegistry":
    """Open the configured store and wrap it in an `AssetRegistry`."""
    from .db import open_store
    from .encoding.record import RecordCodec
    from .registry import AssetRegistry

    store = open_store(cfg.store.uri, create=cfg.store.create)
    return AssetRegistry(store, RecordCodec(cfg.codec.format, strict=cfg.codec.strict))


__all__ = [
    "Config",
    "StoreConfig",
    "CodecConfig",
    "LogConfig",
    "DEFAULT_STORE_URI",
    "load",
    "build_registry",
]
