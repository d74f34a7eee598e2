from typing import Dict, Optional
from fhevm_core.storage.provider import StringStorage


class InMemoryStorage(StringStorage):
    """Process-lifetime store. A cold store only forces a fresh mint."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    async def remove_item(self, key: str) -> None:
        self.items.pop(key, None)
