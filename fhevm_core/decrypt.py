# fhevm_core/decrypt.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from .grants import obtain_grant
from .logger import get_logger
from .runtime import EncryptionRuntime, HandleRequest, KeyPair
from .storage import StringStorage
from .utils import strip_0x

log = get_logger("FHEVM.Decrypt")

MSG_NOT_SET = "No value has been set"
MSG_FAILED = "Decryption failed"
MSG_OK = "Value successfully decrypted"


@dataclass
class DecryptOutcome:
    """
    Result surfaced to a UI. Decrypt-time problems are reported through
    `message` with ok=False rather than raised.
    """
    ok: bool
    message: str
    values: Dict[str, Any] = field(default_factory=dict)

    def value(self, handle: str) -> Any:
        return self.values.get(handle)


def _is_unset(handle: Optional[str]) -> bool:
    digits = strip_0x(handle or "")
    return not digits or set(digits) == {"0"}


async def decrypt_handles(runtime: EncryptionRuntime, requests: Sequence[HandleRequest], signer,
                          storage: StringStorage, key_pair: Optional[KeyPair] = None) -> DecryptOutcome:
    """Obtain (or reuse) a grant for the requested contracts and decrypt the handles."""
    if not requests or any(_is_unset(r.handle) for r in requests):
        return DecryptOutcome(False, MSG_NOT_SET)

    contracts = sorted({r.contract_address for r in requests})
    grant = await obtain_grant(runtime, contracts, signer, storage, key_pair)
    result = await runtime.user_decrypt(requests, grant)

    values: Dict[str, Any] = {}
    for r in requests:
        v = (result or {}).get(r.handle)
        # False/None is the runtime's failure sentinel
        if v is None or v is False:
            log.info(f"[DECRYPT] no plaintext for handle={r.handle}")
            return DecryptOutcome(False, MSG_FAILED)
        values[r.handle] = v
    return DecryptOutcome(True, MSG_OK, values)
