# fhevm_core/storage/provider.py
from __future__ import annotations
from typing import Optional


class StringStorage:
    """
    Async string key-value store.

    No eviction and no TTL: expiry lives in the stored payloads and is the
    caller's concern. Writes are last-write-wins per key.
    """

    async def get_item(self, key: str) -> Optional[str]: ...
    async def set_item(self, key: str, value: str) -> None: ...
    async def remove_item(self, key: str) -> None: ...

    def close(self) -> None:
        return
