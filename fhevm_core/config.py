# fhevm_core/config.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional
import os

from .constants import DEFAULT_MOCK_CHAINS, DEFAULT_SDK_MODULE
from .errors import ConfigError
from .sensitive import Secret


def parse_mock_chains(raw: Optional[str]) -> Dict[int, str]:
    """
    Parse "31337=http://localhost:8545,1337=http://127.0.0.1:7545".
    Empty or unset → {}.
    """
    chains: Dict[int, str] = {}
    if not raw:
        return chains
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        chain_id, sep, url = entry.partition("=")
        if not sep or not url.strip():
            raise ConfigError(f"Bad FHEVM_MOCK_CHAINS entry: {entry!r}")
        try:
            chains[int(chain_id.strip(), 0)] = url.strip()
        except ValueError as e:
            raise ConfigError(f"Bad chain id in FHEVM_MOCK_CHAINS: {chain_id!r}") from e
    return chains


def merge_mock_chains(mock_chains: Optional[Mapping[int, str]] = None) -> Dict[int, str]:
    # built-in < FHEVM_MOCK_CHAINS < caller
    merged = dict(DEFAULT_MOCK_CHAINS)
    merged.update(parse_mock_chains(os.getenv("FHEVM_MOCK_CHAINS")))
    merged.update({int(k): v for k, v in (mock_chains or {}).items()})
    return merged


def rpc_timeout_from_env() -> float:
    try:
        timeout = float(os.getenv("FHEVM_RPC_TIMEOUT", "10"))
    except ValueError as e:
        raise ConfigError("FHEVM_RPC_TIMEOUT must be a number") from e
    if timeout <= 0:
        raise ConfigError("FHEVM_RPC_TIMEOUT must be positive")
    return timeout


@dataclass(frozen=True)
class Settings:
    sdk_module: str = DEFAULT_SDK_MODULE
    mock_chains: Dict[int, str] = field(default_factory=dict)
    storage_provider: str = "sqlite"
    db_path: str = "db/fhevm_state.db"
    storage_key: Optional[Secret] = None
    rpc_timeout: float = 10.0

    def storage_config(self) -> dict:
        return {
            "provider": self.storage_provider,
            "sqlite_path": self.db_path,
            "storage_key": self.storage_key,
        }


def load_settings() -> Settings:
    key = os.getenv("FHEVM_STORAGE_KEY")
    return Settings(
        sdk_module=os.getenv("FHEVM_SDK_MODULE", DEFAULT_SDK_MODULE),
        mock_chains=parse_mock_chains(os.getenv("FHEVM_MOCK_CHAINS")),
        storage_provider=os.getenv("FHEVM_STORAGE_PROVIDER", "sqlite").lower(),
        db_path=os.getenv("FHEVM_DB_PATH", "db/fhevm_state.db"),
        storage_key=Secret(key) if key else None,
        rpc_timeout=rpc_timeout_from_env(),
    )
