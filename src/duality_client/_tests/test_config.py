from __future__ import annotations

import logging
from pathlib import Path

import pytest

from duality_client.config import RELOAD_REFETCH, RELOAD_REUSE, ClientConfig
from duality_client.utils.debug_logging import enable_debug_logger
from duality_client.utils.env import env_bool, env_flag, env_int, env_str

_ENV = (
    "DUALITY_SERVER_HOST",
    "DUALITY_SERVER_PORT",
    "DUALITY_RPC_TIMEOUT_S",
    "DUALITY_CACHE_DIR",
    "DUALITY_FETCH_WORKERS",
    "DUALITY_RELOAD_POLICY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    cfg = ClientConfig.from_env()
    assert cfg.endpoint_url() == "ws://127.0.0.1:10123"
    assert cfg.rpc_timeout_s == 10.0
    assert cfg.cache_dir is None
    assert cfg.fetch_workers == 2
    assert cfg.reload_policy == RELOAD_REUSE


def test_env_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("DUALITY_SERVER_HOST", "viewer.local")
    monkeypatch.setenv("DUALITY_SERVER_PORT", "9000")
    monkeypatch.setenv("DUALITY_RPC_TIMEOUT_S", "2.5")
    monkeypatch.setenv("DUALITY_CACHE_DIR", str(tmp_path))
    monkeypatch.setenv("DUALITY_FETCH_WORKERS", "0")
    monkeypatch.setenv("DUALITY_RELOAD_POLICY", "REFETCH")

    cfg = ClientConfig.from_env()

    assert cfg.endpoint_url() == "ws://viewer.local:9000"
    assert cfg.rpc_timeout_s == 2.5
    assert cfg.cache_dir == Path(tmp_path)
    assert cfg.fetch_workers == 1
    assert cfg.reload_policy == RELOAD_REFETCH
    assert cfg.as_dict()["cache_dir"] == str(tmp_path)


def test_malformed_values_fall_back(monkeypatch) -> None:
    monkeypatch.setenv("DUALITY_SERVER_PORT", "http")
    monkeypatch.setenv("DUALITY_RELOAD_POLICY", "sometimes")
    cfg = ClientConfig.from_env()
    assert cfg.server_port == 10123
    assert cfg.reload_policy == RELOAD_REUSE


def test_invalid_direct_construction() -> None:
    with pytest.raises(ValueError):
        ClientConfig(reload_policy="never")
    with pytest.raises(ValueError):
        ClientConfig(fetch_workers=0)


def test_env_helpers(monkeypatch) -> None:
    monkeypatch.setenv("DUALITY_TEST_FLAG", " Yes ")
    monkeypatch.setenv("DUALITY_TEST_OFF", "off")
    monkeypatch.setenv("DUALITY_TEST_JUNK", "maybe")
    monkeypatch.setenv("DUALITY_TEST_BLANK", "   ")
    assert env_bool("DUALITY_TEST_FLAG") is True
    assert env_bool("DUALITY_TEST_OFF", default=True) is False
    assert env_bool("DUALITY_TEST_JUNK", default=True) is True
    assert env_str("DUALITY_TEST_BLANK", "fallback") == "fallback"
    assert env_flag("DUALITY_TEST_FLAG")
    assert not env_flag("DUALITY_TEST_JUNK")
    assert env_int("DUALITY_TEST_JUNK", 3, minimum=5) == 5


def test_debug_logger_is_opt_in(monkeypatch) -> None:
    logger = logging.getLogger("duality_client._tests.debug_probe")
    monkeypatch.delenv("DUALITY_TEST_DEBUG", raising=False)
    assert not enable_debug_logger(logger, "DUALITY_TEST_DEBUG")

    monkeypatch.setenv("DUALITY_TEST_DEBUG", "dbg")
    try:
        assert enable_debug_logger(logger, "DUALITY_TEST_DEBUG")
        assert enable_debug_logger(logger, "DUALITY_TEST_DEBUG")
        local = [h for h in logger.handlers if getattr(h, "_duality_local", False)]
        assert len(local) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
