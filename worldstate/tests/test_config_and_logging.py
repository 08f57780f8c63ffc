from __future__ import annotations

import io
import json
import logging
from pathlib import Path

import pytest

from worldstate import config as wconfig
from worldstate import logging as wlog
from worldstate.errors import ConfigError, ErrorCode, StoreFailure, wrap
from worldstate.registry import AssetRegistry

_ENV = (
    "WORLDSTATE_STORE_URI",
    "WORLDSTATE_STORE_CREATE",
    "WORLDSTATE_CODEC_FORMAT",
    "WORLDSTATE_CODEC_STRICT",
    "WORLDSTATE_LOG_LEVEL",
    "WORLDSTATE_LOG_FORMAT",
    "WORLDSTATE_LOG_FILE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    for k in _ENV:
        monkeypatch.delenv(k, raising=False)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


# ---------- CONFIG ----------

def test_defaults():
    cfg = wconfig.load()
    assert cfg.store.uri == "memory://"
    assert cfg.store.create is True
    assert cfg.codec.format == "json"
    assert cfg.codec.strict is False
    assert cfg.log.level == "INFO"


def test_precedence_file_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    f = tmp_path / "ws.toml"
    f.write_text(
        '[store]\nuri = "sqlite:///:memory:"\n\n[codec]\nformat = "cbor"\nstrict = true\n',
        encoding="utf-8",
    )
    cfg = wconfig.load(f)
    assert cfg.store.uri == "sqlite:///:memory:"
    assert cfg.codec.format == "cbor" and cfg.codec.strict is True

    monkeypatch.setenv("WORLDSTATE_CODEC_FORMAT", "json")
    monkeypatch.setenv("WORLDSTATE_CODEC_STRICT", "no")
    cfg = wconfig.load(f)
    assert cfg.codec.format == "json" and cfg.codec.strict is False

    cfg = wconfig.load(f, codec={"format": "cbor"})
    assert cfg.codec.format == "cbor"


def test_json_config_file(tmp_path: Path):
    f = tmp_path / "ws.json"
    f.write_text(json.dumps({"log": {"level": "debug", "format": "json"}}), encoding="utf-8")
    cfg = wconfig.load(f)
    assert cfg.log.level == "DEBUG"
    assert cfg.log.format == "json"


@pytest.mark.parametrize(
    "overrides",
    [
        {"store": {"uri": "redis://localhost"}},
        {"codec": {"format": "yaml"}},
        {"codec": {"strict": "maybe"}},
        {"log": {"level": "LOUD"}},
        {"log": {"format": "xml"}},
        {"network": {"port": 1}},
        {"store": "memory://"},
    ],
)
def test_invalid_config_raises_config_error(overrides):
    with pytest.raises(ConfigError) as ei:
        wconfig.load(**overrides)
    assert ei.value.code == ErrorCode.CONFIG


def test_missing_or_unsupported_file(tmp_path: Path):
    with pytest.raises(ConfigError):
        wconfig.load(tmp_path / "nope.toml")
    ini = tmp_path / "ws.ini"
    ini.write_text("[store]\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        wconfig.load(ini)


def test_build_registry_uses_configured_backend(tmp_path: Path):
    cfg = wconfig.load(
        store={"uri": f"sqlite:///{tmp_path / 'cfg.db'}"}, codec={"format": "cbor"}
    )
    reg = wconfig.build_registry(cfg)
    try:
        assert isinstance(reg, AssetRegistry)
        assert reg.codec.fmt == "cbor"
        reg.seed_defaults()
        assert [r.id for r in reg.list_all()] == ["D001", "D002"]
    finally:
        reg.store.close()


# ---------- ERRORS ----------

def test_wrap_attaches_cause():
    original = OSError("disk gone")
    err = wrap(original, message="write failed", key="D001")
    assert isinstance(err, StoreFailure)
    assert err.cause is original
    d = err.to_dict(include_cause=True)
    assert d["code"] == "WS/STORE"
    assert d["data"] == {"key": "D001"}
    assert d["cause"]["type"] == "OSError"
    assert str(err).startswith("WS/STORE: write failed")


def test_wrap_passes_worldstate_errors_through():
    err = ConfigError("bad")
    assert wrap(err) is err


# ---------- LOGGING ----------

def test_json_logs_carry_bound_context(restore_root_logger):
    buf = io.StringIO()
    wlog.configure(json=True, level="DEBUG", stream=buf)
    log = wlog.get_logger("worldstate.test")
    with wlog.trace_scope(tx_id="tx-9", method="ReadAsset"):
        with wlog.bound(key="D001"):
            log.info("hello", extra={"balance": 10})
    line = json.loads(buf.getvalue().strip().splitlines()[-1])
    assert line["msg"] == "hello"
    assert line["tx_id"] == "tx-9"
    assert line["method"] == "ReadAsset"
    assert line["key"] == "D001"
    assert line["balance"] == 10
    assert line["trace_id"]
    assert wlog.context() == {}


def test_text_logs_one_line(restore_root_logger):
    buf = io.StringIO()
    wlog.configure(json=False, level="INFO", stream=buf)
    with wlog.bound(key="D002"):
        wlog.get_logger().info("seeded")
    out = buf.getvalue()
    assert "INFO" in out and "key=D002" in out and out.rstrip().endswith("seeded")


def test_configure_from_config_with_file(tmp_path: Path, restore_root_logger):
    logfile = tmp_path / "logs" / "ws.jsonl"
    cfg = wconfig.load(log={"format": "text", "level": "WARNING", "file": str(logfile)})
    wlog.configure_from_config(cfg)
    wlog.get_logger().warning("careful")
    for h in logging.getLogger().handlers:
        h.flush()
    rec = json.loads(logfile.read_text(encoding="utf-8").strip().splitlines()[-1])
    assert rec["msg"] == "careful"
    assert rec["level"] == "WARNING"


# ---------- VERSION ----------

def test_version_env_override(monkeypatch: pytest.MonkeyPatch):
    from worldstate import version

    monkeypatch.setenv("WORLDSTATE_VERSION", "9.9.9")
    assert version.resolve_version() == "9.9.9"
