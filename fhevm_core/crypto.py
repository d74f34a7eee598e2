"""
fhevm_core.crypto
-----------------
Cryptographic primitives used around the encryption runtime:

- X25519: ephemeral key pairs for user decryption requests
- AES-GCM: sealing values in the encrypted-at-rest store
- EIP-712: canonical typed-data hashing and signer recovery

The homomorphic scheme itself lives inside the runtime and is never touched here.
"""

from __future__ import annotations
from typing import Any, Dict, Optional, Tuple
import os

from cryptography.hazmat.primitives.asymmetric import x25519
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import is_address as _is_address, keccak

from .constants import EIP712_DOMAIN_FIELDS


# --------- X25519 (ephemeral decryption key pairs) ----------
def x25519_generate() -> Tuple[bytes, bytes]:
    sk = x25519.X25519PrivateKey.generate()
    pk = sk.public_key()
    return sk.private_bytes_raw(), pk.public_bytes_raw()


def generate_keypair_hex() -> Dict[str, str]:
    priv, pub = x25519_generate()
    return {"publicKey": pub.hex(), "privateKey": priv.hex()}


# --------- AES-GCM (storage sealing) ----------
def aead_encrypt(key: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    aes = AESGCM(key)
    nonce = os.urandom(12)
    ct = aes.encrypt(nonce, plaintext, aad)
    return nonce, ct


def aead_decrypt(key: bytes, nonce: bytes, ciphertext: bytes, aad: Optional[bytes] = None) -> bytes:
    aes = AESGCM(key)
    return aes.decrypt(nonce, ciphertext, aad)


# --------- Addresses ----------
def is_address(value: Any) -> bool:
    return isinstance(value, str) and _is_address(value)


# --------- EIP-712 ----------
def _message_types(envelope: Dict[str, Any]) -> Dict[str, Any]:
    # The domain type is derived from the domain fields, never taken from the envelope
    return {k: v for k, v in envelope["types"].items() if k != "EIP712Domain"}


def _full_message(envelope: Dict[str, Any]) -> Dict[str, Any]:
    types = dict(envelope["types"])
    if "EIP712Domain" not in types:
        types["EIP712Domain"] = [f for f in EIP712_DOMAIN_FIELDS if f["name"] in envelope["domain"]]
    return {
        "types": types,
        "primaryType": envelope["primaryType"],
        "domain": envelope["domain"],
        "message": envelope["message"],
    }


def typed_data_hash(envelope: Dict[str, Any]) -> str:
    """
    Compute the EIP-712 digest of a typed-data envelope as 0x-prefixed hex.

    keccak256(0x19 0x01 || domainSeparator || hashStruct(message)), the same
    value a wallet signs and a verifier recovers against.
    """
    signable = encode_typed_data(
        domain_data=envelope["domain"],
        message_types=_message_types(envelope),
        message_data=envelope["message"],
    )
    digest = keccak(b"\x19" + signable.version + signable.header + signable.body)
    return "0x" + digest.hex()


def recover_typed_data_signer(envelope: Dict[str, Any], signature: str) -> str:
    signable = encode_typed_data(full_message=_full_message(envelope))
    return Account.recover_message(signable, signature=signature)
