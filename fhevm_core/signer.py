"""Signer interfaces for decryption grants."""

from __future__ import annotations

from typing import Any, Dict, List, Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount


class Signer(Protocol):
    """Wallet-side capability: an address plus EIP-712 typed-data signing."""

    async def get_address(self) -> str:  # pragma: no cover - protocol
        """Return the signer's checksummed address."""

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        message: Dict[str, Any],
    ) -> str:  # pragma: no cover - protocol
        """Sign the typed-data triple and return a 0x-prefixed 65-byte signature."""


class LocalAccountSigner:
    """Signer backed by an in-process eth_account key. Used for scripts and tests."""

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_key(cls, private_key) -> "LocalAccountSigner":
        return cls(Account.from_key(private_key))

    @classmethod
    def create(cls) -> "LocalAccountSigner":
        return cls(Account.create())

    @property
    def address(self) -> str:
        return self._account.address

    async def get_address(self) -> str:
        return self._account.address

    async def sign_typed_data(self, domain, types, message) -> str:
        signed = self._account.sign_typed_data(
            domain_data=domain,
            message_types=types,
            message_data=message,
        )
        return "0x" + bytes(signed.signature).hex()
