# fhevm_core/rpc/__init__.py
from fhevm_core.rpc.rpc_base import BaseRpcProvider, Eip1193Provider, RpcError, RpcTransportError
from fhevm_core.rpc.rpc_http import RpcClient


def rpc_provider(provider_or_url, timeout=None):
    """
    Normalize a provider argument:
      - str      → RpcClient for that endpoint URL
      - provider → returned unchanged (must expose async request())
    """
    if isinstance(provider_or_url, str):
        return RpcClient(provider_or_url, timeout=timeout)
    if not callable(getattr(provider_or_url, "request", None)):
        raise TypeError(f"Not an RPC provider: {type(provider_or_url).__name__}")
    return provider_or_url


__all__ = [
    "BaseRpcProvider",
    "Eip1193Provider",
    "RpcClient",
    "RpcError",
    "RpcTransportError",
    "rpc_provider",
]
