# tests/test_config.py
import json
import logging

import pytest

from fhevm_core.bootstrap import RuntimeMemo
from fhevm_core.config import Settings, load_settings, merge_mock_chains, parse_mock_chains
from fhevm_core.errors import ConfigError
from fhevm_core.logger import get_logger
from fhevm_core.rpc import RpcClient
from fhevm_core.sensitive import Secret


def test_parse_mock_chains():
    assert parse_mock_chains(None) == {}
    assert parse_mock_chains("1337=http://127.0.0.1:7545, 0x7a69=http://node:8545") == {
        1337: "http://127.0.0.1:7545",
        31337: "http://node:8545",
    }
    with pytest.raises(ConfigError):
        parse_mock_chains("abc=http://x")
    with pytest.raises(ConfigError):
        parse_mock_chains("1337")


def test_builtin_mock_chain_is_overridable(monkeypatch):
    monkeypatch.delenv("FHEVM_MOCK_CHAINS", raising=False)
    assert merge_mock_chains() == {31337: "http://localhost:8545"}
    merged = merge_mock_chains({31337: "http://other:8545", 1337: "http://x"})
    assert merged == {31337: "http://other:8545", 1337: "http://x"}


def test_load_settings(monkeypatch):
    monkeypatch.setenv("FHEVM_MOCK_CHAINS", "1337=http://x")
    monkeypatch.setenv("FHEVM_STORAGE_KEY", "c2VjcmV0")
    monkeypatch.setenv("FHEVM_RPC_TIMEOUT", "2.5")
    s = load_settings()
    assert s.mock_chains == {1337: "http://x"}
    assert s.rpc_timeout == 2.5
    assert isinstance(s.storage_key, Secret)
    assert "c2VjcmV0" not in repr(s)

    monkeypatch.setenv("FHEVM_RPC_TIMEOUT", "soon")
    with pytest.raises(ConfigError):
        load_settings()


def test_secret_masking():
    s = Secret("0xprivate")
    assert s.reveal() == "0xprivate"
    assert "private" not in repr(s) and "private" not in str(s)
    assert Secret(s).reveal() == "0xprivate"
    assert s == Secret("0xprivate")
    with pytest.raises(TypeError):
        json.dumps({"k": s})


def test_logger_is_json_and_idempotent(caplog):
    log = get_logger("FHEVM.Test", level=logging.DEBUG)
    again = get_logger("FHEVM.Test", level=logging.DEBUG)
    assert log is again
    assert len(log.handlers) == 1
    with caplog.at_level(logging.INFO, logger="FHEVM.Test"):
        log.info("[BOOT] hello")
    assert "[BOOT] hello" in caplog.text
    fmt = log.handlers[0].formatter._fmt
    assert json.loads(fmt)["msg"] == "%(message)s"


def test_settings_drive_storage_factory(tmp_path):
    from fhevm_core.storage import InMemoryStorage, SQLiteStorage, load_storage_provider

    assert isinstance(load_storage_provider(Settings(storage_provider="memory").storage_config()), InMemoryStorage)
    cfg = Settings(db_path=str(tmp_path / "s.db")).storage_config()
    assert isinstance(load_storage_provider(cfg), SQLiteStorage)
    assert isinstance(load_storage_provider(Settings(storage_provider="memory")), InMemoryStorage)


def test_env_mock_chains_sit_between_builtin_and_caller(monkeypatch):
    monkeypatch.setenv("FHEVM_MOCK_CHAINS", "31337=http://env:8545,1337=http://env:7545")
    assert merge_mock_chains() == {31337: "http://env:8545", 1337: "http://env:7545"}
    merged = merge_mock_chains({1337: "http://caller:7545"})
    assert merged == {31337: "http://env:8545", 1337: "http://caller:7545"}


def test_rpc_client_timeout_from_env(monkeypatch):
    monkeypatch.setenv("FHEVM_RPC_TIMEOUT", "4")
    client = RpcClient("http://node:8545")
    assert client.timeout == 4.0
    client.close()

    monkeypatch.setenv("FHEVM_RPC_TIMEOUT", "-1")
    with pytest.raises(ConfigError):
        RpcClient("http://node:8545")


def test_memo_built_from_settings():
    settings = Settings(sdk_module="acme_relayer_sdk", mock_chains={1337: "http://x"}, rpc_timeout=3.0)
    memo = RuntimeMemo.from_settings(settings)
    assert memo.registry.module_name == "acme_relayer_sdk"
    assert memo.mock_chains == {1337: "http://x"}

    client = memo.rpc_factory("http://node:8545")
    assert isinstance(client, RpcClient)
    assert client.timeout == 3.0
    client.close()
