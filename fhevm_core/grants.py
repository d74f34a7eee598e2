"""
fhevm_core.grants
-----------------
Reusable user-decryption grants.

A grant is an EIP-712 signature by the user over a UserDecryptRequestVerification
envelope (ephemeral public key, sorted contract addresses, start timestamp,
duration in days), together with the ephemeral private key needed to open
the relayer's re-encrypted answer.

Grants are cached in a StringStorage under
    "<userAddress>:<EIP-712 hash of the unsigned, zeroed envelope>"
so the same user and the same *set* of contracts always find the same entry.

Wire format of a stored grant (changing it is a breaking migration):
    {publicKey, privateKey, signature, startTimestamp, durationDays,
     userAddress, contractAddresses, eip712}
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
import copy
import json

from .constants import GRANT_DURATION_DAYS, SECONDS_PER_DAY, ZERO_ADDRESS
from .crypto import is_address
from .errors import InvalidAddress
from .logger import get_logger
from .runtime import EncryptionRuntime, KeyPair
from .sensitive import Secret
from .storage import StringStorage
from .utils import timestamp_now

log = get_logger("FHEVM.Grants")


class StorageKey:
    """
    Canonical cache key for (user, contract set, optional public key).

    Contract addresses are sorted lexicographically as given; no case
    normalization is applied, so callers must pass addresses consistently.
    """

    def __init__(self, runtime: EncryptionRuntime, contract_addresses: Sequence[str],
                 user_address: str, public_key: Optional[str] = None):
        if not is_address(user_address):
            raise InvalidAddress(user_address)

        sorted_addresses = sorted(contract_addresses)
        empty = runtime.create_eip712(public_key or ZERO_ADDRESS, sorted_addresses, 0, 0)
        digest = runtime.hash_eip712(empty)

        self._contract_addresses: Tuple[str, ...] = tuple(sorted_addresses)
        self._user_address = user_address
        self._public_key = public_key
        self._key = f"{user_address}:{digest}"

    @property
    def contract_addresses(self) -> List[str]:
        return list(self._contract_addresses)

    @property
    def user_address(self) -> str:
        return self._user_address

    @property
    def public_key(self) -> Optional[str]:
        return self._public_key

    @property
    def key(self) -> str:
        return self._key

    def __str__(self) -> str:
        return self._key

    def __repr__(self) -> str:
        return f"StorageKey({self._key!r})"


def derive_key(runtime, contract_addresses, user_address, public_key=None) -> StorageKey:
    return StorageKey(runtime, contract_addresses, user_address, public_key)


@dataclass(frozen=True)
class DecryptionGrant:
    public_key: str
    private_key: Secret = field(repr=False)
    signature: str
    start_timestamp: int
    duration_days: int
    user_address: str
    contract_addresses: Tuple[str, ...]
    eip712: Dict[str, Any] = field(repr=False)

    def __post_init__(self):
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "private_key", Secret(self.private_key))
        object.__setattr__(self, "contract_addresses", tuple(sorted(self.contract_addresses)))

    @property
    def expires_at(self) -> int:
        return self.start_timestamp + self.duration_days * SECONDS_PER_DAY

    def is_valid(self, now: Optional[int] = None) -> bool:
        if now is None:
            now = timestamp_now()
        return now < self.expires_at

    def equals(self, other: "DecryptionGrant") -> bool:
        """Same grant iff the signatures are identical. Diagnostic only."""
        return isinstance(other, DecryptionGrant) and other.signature == self.signature

    def to_dict(self) -> Dict[str, Any]:
        return {
            "publicKey": self.public_key,
            "privateKey": self.private_key.reveal(),
            "signature": self.signature,
            "startTimestamp": self.start_timestamp,
            "durationDays": self.duration_days,
            "userAddress": self.user_address,
            "contractAddresses": list(self.contract_addresses),
            "eip712": self.eip712,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecryptionGrant":
        return cls(
            public_key=data["publicKey"],
            private_key=Secret(data["privateKey"]),
            signature=data["signature"],
            start_timestamp=int(data["startTimestamp"]),
            duration_days=int(data["durationDays"]),
            user_address=data["userAddress"],
            contract_addresses=tuple(data["contractAddresses"]),
            eip712=data["eip712"],
        )

    @classmethod
    def from_json(cls, raw) -> "DecryptionGrant":
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        if not isinstance(data, dict):
            raise ValueError("serialized grant is not an object")
        return cls.from_dict(data)

    # --- storage ---

    async def save(self, storage: StringStorage, runtime: EncryptionRuntime, with_public_key: bool) -> StorageKey:
        key = StorageKey(
            runtime, self.contract_addresses, self.user_address,
            self.public_key if with_public_key else None,
        )
        await storage.set_item(key.key, self.to_json())
        return key

    @classmethod
    async def load(cls, storage: StringStorage, runtime: EncryptionRuntime, contract_addresses: Sequence[str],
                   user_address: str, public_key: Optional[str] = None) -> Optional["DecryptionGrant"]:
        """Cached grant or None. Unparseable or expired entries read as None."""
        key = StorageKey(runtime, contract_addresses, user_address, public_key)
        raw = await storage.get_item(key.key)
        if not raw:
            log.debug(f"[GRANT] miss key={key.key}")
            return None
        try:
            grant = cls.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            log.info(f"[GRANT] unreadable entry key={key.key}: {type(e).__name__}")
            return None
        if not grant.is_valid():
            log.info(f"[GRANT] expired key={key.key}")
            return None
        log.debug(f"[GRANT] hit key={key.key}")
        return grant

    @classmethod
    async def mint(cls, runtime: EncryptionRuntime, contract_addresses: Sequence[str],
                   key_pair: KeyPair, signer) -> "DecryptionGrant":
        """Sign a fresh envelope valid from now for GRANT_DURATION_DAYS."""
        user_address = await signer.get_address()
        start = timestamp_now()
        addresses = sorted(contract_addresses)
        eip712 = runtime.create_eip712(key_pair.public_key, addresses, start, GRANT_DURATION_DAYS)
        primary = eip712["primaryType"]
        signature = await signer.sign_typed_data(
            eip712["domain"],
            {primary: eip712["types"][primary]},
            eip712["message"],
        )
        log.info(f"[GRANT] minted user={user_address} contracts={len(addresses)}")
        return cls(
            public_key=key_pair.public_key,
            private_key=key_pair.private_key,
            signature=signature,
            start_timestamp=start,
            duration_days=GRANT_DURATION_DAYS,
            user_address=user_address,
            contract_addresses=tuple(addresses),
            eip712=copy.deepcopy(eip712),
        )


async def obtain_grant(runtime: EncryptionRuntime, contract_addresses: Sequence[str], signer,
                       storage: StringStorage, key_pair: Optional[KeyPair] = None) -> DecryptionGrant:
    """
    Return a valid grant for signer over contract_addresses, signing only on a cache miss.

    A caller-supplied key pair is cached under a key that includes its
    public key; an ephemeral pair is cached under the key-pair-agnostic key
    so later calls without a key pair find it.
    """
    user_address = await signer.get_address()
    cached = await DecryptionGrant.load(
        storage, runtime, contract_addresses, user_address,
        key_pair.public_key if key_pair else None,
    )
    if cached is not None:
        return cached

    pair = key_pair or runtime.generate_keypair()
    grant = await DecryptionGrant.mint(runtime, contract_addresses, pair, signer)
    await grant.save(storage, runtime, with_public_key=key_pair is not None)
    return grant


load_or_sign = obtain_grant
