"""
fhevm_core
==========
Client-side decryption authorization for FHEVM confidential values.

Provides:
- Runtime bootstrap (local dev node mock vs. relayer SDK) with status and cancellation
- EIP-712 decryption grants: canonical storage keys, minting, caching, expiry
- Pluggable string storage (SQLite default, in-memory, AES-GCM sealed)
"""

from .bootstrap import BootstrapStatus, RuntimeMemo, acquire_runtime, probe_environment
from .decrypt import DecryptOutcome, decrypt_handles
from .errors import (
    BootstrapError,
    Cancelled,
    FhevmError,
    InitFailure,
    InvalidAddress,
    InvalidRuntimeObject,
    LoadFailure,
)
from .grants import DecryptionGrant, StorageKey, derive_key, obtain_grant
from .runtime import EncryptionRuntime, HandleRequest, KeyPair
from .sdk import RuntimeRegistry

__all__ = [
    "BootstrapStatus",
    "RuntimeMemo",
    "acquire_runtime",
    "probe_environment",
    "DecryptOutcome",
    "decrypt_handles",
    "BootstrapError",
    "Cancelled",
    "FhevmError",
    "InitFailure",
    "InvalidAddress",
    "InvalidRuntimeObject",
    "LoadFailure",
    "DecryptionGrant",
    "StorageKey",
    "derive_key",
    "obtain_grant",
    "EncryptionRuntime",
    "HandleRequest",
    "KeyPair",
    "RuntimeRegistry",
]
