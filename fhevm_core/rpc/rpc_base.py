from __future__ import annotations
from typing import Any, List, Optional, Protocol, runtime_checkable

from fhevm_core.errors import FhevmError


class RpcError(FhevmError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class RpcTransportError(RpcError):
    """The request never produced a JSON-RPC answer (network, HTTP status, bad body)."""
    pass


@runtime_checkable
class Eip1193Provider(Protocol):
    """
    Anything that answers JSON-RPC requests, e.g. a wallet bridge.

    request() must raise on error and return the bare `result` value.
    """

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any: ...


class BaseRpcProvider:
    name: str = "base"

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        raise NotImplementedError

    def close(self) -> None:
        return

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()
