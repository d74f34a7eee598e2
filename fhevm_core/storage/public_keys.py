# fhevm_core/storage/public_keys.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional
import json

from fhevm_core.constants import PUBLIC_KEY_PREFIX
from fhevm_core.logger import get_logger
from fhevm_core.storage.provider import StringStorage

log = get_logger("FHEVM.Storage.PublicKeys")


@dataclass
class PublicKeyRecord:
    """
    Long-lived network public key and public params, keyed by the ACL
    contract address. Both may be None on a cold cache, letting the SDK
    fetch them itself.
    """
    public_key_id: Optional[str] = None
    public_key: Optional[str] = None
    public_params: Optional[Any] = None

    def to_dict(self):
        return {
            "publicKeyId": self.public_key_id,
            "publicKey": self.public_key,
            "publicParams": self.public_params,
        }

    @classmethod
    def from_dict(cls, data) -> "PublicKeyRecord":
        return cls(
            public_key_id=data.get("publicKeyId"),
            public_key=data.get("publicKey"),
            public_params=data.get("publicParams"),
        )


class PublicKeyCache:
    def __init__(self, storage: StringStorage):
        self.storage = storage

    @staticmethod
    def key_for(acl_address: str) -> str:
        return f"{PUBLIC_KEY_PREFIX}:{acl_address}"

    async def get(self, acl_address: str) -> PublicKeyRecord:
        raw = await self.storage.get_item(self.key_for(acl_address))
        if not raw:
            return PublicKeyRecord()
        try:
            data = json.loads(raw)
        except ValueError:
            log.warning(f"[PK CACHE] corrupt entry for {acl_address}, ignoring")
            return PublicKeyRecord()
        if not isinstance(data, dict):
            return PublicKeyRecord()
        return PublicKeyRecord.from_dict(data)

    async def set(self, acl_address: str, public_key: Any, public_params: Any) -> None:
        # SDK instances return {publicKeyId, publicKey} or None for the key
        if isinstance(public_key, dict):
            rec = PublicKeyRecord(public_key.get("publicKeyId"), public_key.get("publicKey"), public_params)
        else:
            rec = PublicKeyRecord(None, public_key, public_params)
        await self.storage.set_item(self.key_for(acl_address), json.dumps(rec.to_dict()))
        log.debug(f"[PK CACHE] stored public key for {acl_address}")
