# fhevm_core/storage/__init__.py

from .provider import StringStorage
from .providers.memory_provider import InMemoryStorage
from .providers.sqlite_provider import SQLiteStorage
from .providers.encrypted_provider import EncryptedStorage
from .public_keys import PublicKeyCache, PublicKeyRecord
import binascii
import os

from fhevm_core.config import Settings
from fhevm_core.errors import ConfigError
from fhevm_core.sensitive import Secret
from fhevm_core.utils import b64d


def load_storage_provider(config: dict | Settings | None = None) -> StringStorage:
    """
    Factory resolver for the grant / public-key store.

        - sqlite (default)
        - memory

    When a storage key is configured the chosen backend is wrapped in
    EncryptedStorage.
    """
    if isinstance(config, Settings):
        config = config.storage_config()
    config = config or {}
    provider = config.get("provider") or os.getenv("FHEVM_STORAGE_PROVIDER", "sqlite")

    if provider == "memory":
        store = InMemoryStorage()
    elif provider == "sqlite":
        db_path = config.get("sqlite_path") or os.getenv("FHEVM_DB_PATH", "db/fhevm_state.db")
        store = SQLiteStorage(db_path)
    else:
        raise ConfigError(f"Unknown storage provider: {provider}")

    key_b64 = config.get("storage_key") or os.getenv("FHEVM_STORAGE_KEY")
    if key_b64:
        if isinstance(key_b64, Secret):
            key_b64 = key_b64.reveal()
        try:
            key = b64d(key_b64)
        except (binascii.Error, ValueError) as e:
            raise ConfigError("FHEVM_STORAGE_KEY is not valid base64") from e
        if len(key) != 32:
            raise ConfigError("FHEVM_STORAGE_KEY must decode to 32 bytes")
        store = EncryptedStorage(store, Secret(key))

    return store


__all__ = [
    "StringStorage",
    "InMemoryStorage",
    "SQLiteStorage",
    "EncryptedStorage",
    "PublicKeyCache",
    "PublicKeyRecord",
    "load_storage_provider",
]
