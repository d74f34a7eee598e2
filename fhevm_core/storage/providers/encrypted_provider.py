from __future__ import annotations
from typing import Optional
import json

from cryptography.exceptions import InvalidTag

from fhevm_core.crypto import aead_decrypt, aead_encrypt
from fhevm_core.logger import get_logger
from fhevm_core.sensitive import Secret
from fhevm_core.storage.provider import StringStorage
from fhevm_core.utils import b64d, b64e

log = get_logger("FHEVM.Storage")


class EncryptedStorage(StringStorage):
    """
    AES-GCM sealing wrapper around any StringStorage.

    The storage key is bound as associated data, so a sealed value copied
    under another key fails to open. Values that fail to open read as
    absent, which callers already treat as a cache miss.
    """

    def __init__(self, inner: StringStorage, key: Secret):
        raw = key.reveal() if isinstance(key, Secret) else key
        if len(raw) != 32:
            raise ValueError("EncryptedStorage needs a 32-byte key")
        self.inner = inner
        self._key = Secret(raw)

    async def set_item(self, key: str, value: str) -> None:
        nonce, ct = aead_encrypt(self._key.reveal(), value.encode("utf-8"), aad=key.encode("utf-8"))
        await self.inner.set_item(key, json.dumps({"nonce": b64e(nonce), "ciphertext": b64e(ct)}))

    async def get_item(self, key: str) -> Optional[str]:
        sealed = await self.inner.get_item(key)
        if sealed is None:
            return None
        try:
            enc = json.loads(sealed)
            pt = aead_decrypt(self._key.reveal(), b64d(enc["nonce"]), b64d(enc["ciphertext"]), aad=key.encode("utf-8"))
        except (ValueError, KeyError, TypeError, InvalidTag) as e:
            log.warning(f"[STORE] unreadable sealed value for {key}: {type(e).__name__}")
            return None
        return pt.decode("utf-8")

    async def remove_item(self, key: str) -> None:
        await self.inner.remove_item(key)

    def close(self) -> None:
        self.inner.close()
