# fhevm_core/errors.py
from __future__ import annotations
from typing import Optional


class FhevmError(Exception):
    pass


class ConfigError(FhevmError):
    pass


class InvalidAddress(FhevmError, ValueError):
    def __init__(self, address):
        super().__init__(f"Invalid address {address!r}")
        self.address = address


class Cancelled(FhevmError):
    """Cooperative cancellation was observed. Not a failure."""

    def __init__(self, stage: Optional[str] = None):
        msg = "FHEVM operation was cancelled"
        if stage:
            msg = f"{msg} (after {stage})"
        super().__init__(msg)
        self.stage = stage


class BootstrapError(FhevmError):
    """
    Runtime bootstrap could not proceed.

    - stage: bootstrap stage that failed (sdk-loading, sdk-initializing, ...)
    - cause: underlying exception, if any (also chained as __cause__)
    """
    stage: str = "bootstrap"

    def __init__(self, message: str, stage: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage
        self.cause = cause

    def __str__(self) -> str:
        base = super().__str__()
        if self.cause is not None:
            return f"[{self.stage}] {base}: {self.cause}"
        return f"[{self.stage}] {base}"


class ChainResolutionFailure(BootstrapError):
    stage = "resolving"


class LoadFailure(BootstrapError):
    stage = "sdk-loading"


class InvalidRuntimeObject(BootstrapError):
    stage = "sdk-loading"


class InitFailure(BootstrapError):
    stage = "sdk-initializing"


class CreateFailure(BootstrapError):
    stage = "creating"


class GrantError(FhevmError):
    pass


class GrantVerificationError(GrantError):
    pass
