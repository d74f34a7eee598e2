"""
fhevm_core.runtime
------------------
The encryption runtime handle: the ready-to-use capability produced by
bootstrap and shared by every grant and decrypt operation.

Two implementations:

- SdkRuntime: wraps an instance created by the relayer SDK namespace
  (production networks).
- MockRuntime: talks to a local development node directly; builds the
  decryption envelope locally and verifies grants before reading cleartexts.

Both are immutable after construction.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence
import os

from eth_utils import keccak, to_bytes, to_checksum_address

from .constants import (
    EIP712_DOMAIN_FIELDS,
    EIP712_DOMAIN_NAME,
    EIP712_DOMAIN_VERSION,
    EIP712_PRIMARY_TYPE,
    MOCK_DECRYPTION_VERIFIER,
    MOCK_GATEWAY_CHAIN_ID,
    MOCK_RPC_GET_CLEARTEXTS,
    MOCK_RPC_REGISTER_CLEARTEXTS,
    SECONDS_PER_DAY,
    USER_DECRYPT_FIELDS,
)
from .crypto import generate_keypair_hex, recover_typed_data_signer, typed_data_hash
from .errors import GrantVerificationError, InvalidRuntimeObject
from .logger import get_logger
from .sensitive import Secret
from .utils import parse_quantity, resolve, strip_0x, timestamp_now, with_0x

log = get_logger("FHEVM.Runtime")


@dataclass(frozen=True)
class KeyPair:
    public_key: str
    private_key: Secret

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "KeyPair":
        priv = data["privateKey"]
        return cls(public_key=data["publicKey"], private_key=Secret(priv))


@dataclass(frozen=True)
class HandleRequest:
    """A ciphertext handle and the contract that exposes it."""
    handle: str
    contract_address: str

    def to_dict(self) -> Dict[str, str]:
        return {"handle": self.handle, "contractAddress": self.contract_address}


class EncryptionRuntime(ABC):
    chain_id: Optional[int] = None
    kind: str = "base"

    @abstractmethod
    def generate_keypair(self) -> KeyPair: ...

    @abstractmethod
    def create_eip712(
        self,
        public_key: str,
        contract_addresses: Sequence[str],
        start_timestamp: int,
        duration_days: int,
    ) -> Dict[str, Any]: ...

    def hash_eip712(self, envelope: Dict[str, Any]) -> str:
        return typed_data_hash(envelope)

    @abstractmethod
    async def user_decrypt(self, requests: Sequence[HandleRequest], grant) -> Dict[str, Any]: ...

    @abstractmethod
    def create_encrypted_input(self, contract_address: str, user_address: str): ...

    def get_public_key(self) -> Any:
        return None

    def get_public_params(self, bits: int) -> Any:
        return None


# ---------------------------------------------------------------------------
# Production: SDK-created instance
# ---------------------------------------------------------------------------

SDK_INSTANCE_CAPABILITIES = (
    "generate_keypair",
    "create_eip712",
    "user_decrypt",
    "create_encrypted_input",
    "get_public_key",
    "get_public_params",
)


class SdkRuntime(EncryptionRuntime):
    kind = "sdk"

    def __init__(self, instance: Any, chain_id: Optional[int] = None):
        self._instance = instance
        self.chain_id = chain_id

    @classmethod
    def from_instance(cls, instance: Any, chain_id: Optional[int] = None) -> "SdkRuntime":
        """Validate the SDK instance once, up front, and wrap it."""
        if instance is None:
            raise InvalidRuntimeObject("SDK create_instance returned nothing", stage="creating")
        missing = [name for name in SDK_INSTANCE_CAPABILITIES if not callable(getattr(instance, name, None))]
        if missing:
            raise InvalidRuntimeObject(
                f"SDK instance lacks required capabilities: {', '.join(missing)}",
                stage="creating",
            )
        return cls(instance, chain_id)

    def generate_keypair(self) -> KeyPair:
        return KeyPair.from_mapping(self._instance.generate_keypair())

    def create_eip712(self, public_key, contract_addresses, start_timestamp, duration_days):
        return dict(self._instance.create_eip712(public_key, list(contract_addresses), start_timestamp, duration_days))

    async def user_decrypt(self, requests, grant):
        return await resolve(self._instance.user_decrypt(
            [r.to_dict() for r in requests],
            grant.private_key.reveal(),
            grant.public_key,
            grant.signature,
            list(grant.contract_addresses),
            grant.user_address,
            grant.start_timestamp,
            grant.duration_days,
        ))

    def create_encrypted_input(self, contract_address, user_address):
        return self._instance.create_encrypted_input(contract_address, user_address)

    def get_public_key(self):
        return self._instance.get_public_key()

    def get_public_params(self, bits):
        return self._instance.get_public_params(bits)


# ---------------------------------------------------------------------------
# Local development node
# ---------------------------------------------------------------------------

class MockRuntime(EncryptionRuntime):
    """
    Runtime for a local dev node that exposes relayer metadata.

    Cleartexts are kept by the node's mock coprocessor; this class only
    enforces the same grant checks a real relayer would before asking it.
    """

    kind = "mock"

    def __init__(self, rpc, chain_id: int, metadata: Mapping[str, Any]):
        self.rpc = rpc
        self.chain_id = chain_id
        self.metadata = dict(metadata)
        self.acl_address = self.metadata.get("ACLAddress")
        self.gateway_chain_id = int(self.metadata.get("gatewayChainId", MOCK_GATEWAY_CHAIN_ID))
        self.verifying_contract = self.metadata.get(
            "verifyingContractAddressDecryption", MOCK_DECRYPTION_VERIFIER
        )

    def generate_keypair(self) -> KeyPair:
        return KeyPair.from_mapping(generate_keypair_hex())

    def create_eip712(self, public_key, contract_addresses, start_timestamp, duration_days):
        return {
            "types": {
                "EIP712Domain": [dict(f) for f in EIP712_DOMAIN_FIELDS],
                EIP712_PRIMARY_TYPE: [dict(f) for f in USER_DECRYPT_FIELDS],
            },
            "primaryType": EIP712_PRIMARY_TYPE,
            "domain": {
                "name": EIP712_DOMAIN_NAME,
                "version": EIP712_DOMAIN_VERSION,
                "chainId": self.gateway_chain_id,
                "verifyingContract": self.verifying_contract,
            },
            "message": {
                "publicKey": with_0x(public_key),
                "contractAddresses": list(contract_addresses),
                "contractsChainId": self.chain_id,
                "startTimestamp": int(start_timestamp),
                "durationDays": int(duration_days),
            },
        }

    def _verify_grant(self, requests: Sequence[HandleRequest], grant) -> None:
        try:
            signer = recover_typed_data_signer(grant.eip712, grant.signature)
        except Exception as e:
            raise GrantVerificationError(f"Grant signature cannot be recovered: {e}") from e
        if signer.lower() != grant.user_address.lower():
            raise GrantVerificationError("Grant was not signed by its user address")

        # only the signed message is trusted from here on
        message = grant.eip712.get("message") or {}
        try:
            signed_contracts = list(message["contractAddresses"])
            signed_start = int(message["startTimestamp"])
            signed_days = int(message["durationDays"])
        except (KeyError, TypeError, ValueError) as e:
            raise GrantVerificationError("Signed envelope is incomplete") from e

        if strip_0x(message.get("publicKey", "")).lower() != strip_0x(grant.public_key).lower():
            raise GrantVerificationError("Grant public key does not match the signed envelope")
        if (sorted(grant.contract_addresses) != sorted(signed_contracts)
                or grant.start_timestamp != signed_start or grant.duration_days != signed_days):
            raise GrantVerificationError("Grant fields do not match the signed envelope")

        if timestamp_now() >= signed_start + signed_days * SECONDS_PER_DAY:
            raise GrantVerificationError("Decryption grant has expired")

        covered = {a.lower() for a in signed_contracts}
        for r in requests:
            if r.contract_address.lower() not in covered:
                raise GrantVerificationError(f"Grant does not cover contract {r.contract_address}")

    async def user_decrypt(self, requests, grant):
        self._verify_grant(requests, grant)
        handles = [r.handle for r in requests]
        result = await self.rpc.request(MOCK_RPC_GET_CLEARTEXTS, [handles])

        if isinstance(result, list):
            result = dict(zip(handles, result))
        if not isinstance(result, dict):
            raise GrantVerificationError(f"{MOCK_RPC_GET_CLEARTEXTS} returned {type(result).__name__}")

        out: Dict[str, Any] = {}
        for h in handles:
            v = result.get(h)
            if isinstance(v, str):
                v = parse_quantity(v)
            out[h] = v
        return out

    def create_encrypted_input(self, contract_address, user_address):
        return MockEncryptedInput(self, contract_address, user_address)

    async def _register(self, entries: List[Dict[str, Any]]) -> None:
        await self.rpc.request(MOCK_RPC_REGISTER_CLEARTEXTS, [entries])


class MockEncryptedInput:
    """Collects typed cleartexts, then registers them with the dev node."""

    def __init__(self, runtime: MockRuntime, contract_address: str, user_address: str):
        self.runtime = runtime
        self.contract_address = to_checksum_address(contract_address)
        self.user_address = to_checksum_address(user_address)
        self._values: List[Dict[str, Any]] = []

    def _add(self, value: int, bits: int) -> "MockEncryptedInput":
        if value < 0 or value >= 2 ** bits:
            raise ValueError(f"value out of range for {bits}-bit input: {value}")
        self._values.append({"value": value, "bits": bits})
        return self

    def add_bool(self, value: bool):
        return self._add(int(bool(value)), 1)

    def add8(self, value: int):
        return self._add(value, 8)

    def add16(self, value: int):
        return self._add(value, 16)

    def add32(self, value: int):
        return self._add(value, 32)

    def add64(self, value: int):
        return self._add(value, 64)

    def add128(self, value: int):
        return self._add(value, 128)

    def add256(self, value: int):
        return self._add(value, 256)

    def add_address(self, value: str):
        return self._add(int(to_checksum_address(value), 16), 160)

    def _handle(self, index: int, bits: int, salt: bytes) -> str:
        pre = (
            salt
            + to_bytes(hexstr=self.contract_address)
            + to_bytes(hexstr=self.user_address)
            + self.runtime.chain_id.to_bytes(32, "big")
            + index.to_bytes(1, "big")
            + bits.to_bytes(2, "big")
        )
        return "0x" + keccak(pre).hex()

    async def encrypt(self) -> Dict[str, Any]:
        if not self._values:
            raise ValueError("encrypted input is empty")
        salt = os.urandom(32)
        entries = []
        for i, v in enumerate(self._values):
            entries.append({
                "handle": self._handle(i, v["bits"], salt),
                "value": str(v["value"]),
                "bits": v["bits"],
                "contractAddress": self.contract_address,
                "userAddress": self.user_address,
            })
        await self.runtime._register(entries)
        handles = [e["handle"] for e in entries]
        proof = bytes([len(handles)]) + b"".join(to_bytes(hexstr=h) for h in handles)
        log.debug(f"[MOCK INPUT] {len(handles)} value(s) for {self.contract_address}")
        return {"handles": handles, "inputProof": "0x" + proof.hex()}
