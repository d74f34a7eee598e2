"""
fhevm_core.bootstrap
--------------------
Resolve which encryption runtime a provider needs and bring it to a ready state.

Stages (production path, cold):
    sdk-loading → sdk-loaded → sdk-initializing → sdk-initialized → creating
Mock path (local dev node with relayer metadata):
    creating

The cancellation signal is polled after every await. Once it is observed
the call raises Cancelled and any half-built runtime is dropped. Global SDK
load/init state is left as is; it is idempotent.
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .config import Settings, merge_mock_chains
from .constants import DEV_NODE_MARKER, PUBLIC_PARAMS_BITS
from .errors import (
    BootstrapError,
    Cancelled,
    ChainResolutionFailure,
    CreateFailure,
    InvalidRuntimeObject,
)
from .logger import get_logger
from .rpc import rpc_provider
from .runtime import EncryptionRuntime, MockRuntime, SdkRuntime
from .sdk import RuntimeRegistry, default_registry
from .storage import InMemoryStorage, PublicKeyCache
from .utils import parse_quantity

log = get_logger("FHEVM.Bootstrap")


class BootstrapStatus(str, Enum):
    SDK_LOADING = "sdk-loading"
    SDK_LOADED = "sdk-loaded"
    SDK_INITIALIZING = "sdk-initializing"
    SDK_INITIALIZED = "sdk-initialized"
    CREATING = "creating"


StatusCallback = Callable[[BootstrapStatus], None]


@dataclass(frozen=True)
class ChainResolution:
    chain_id: int
    is_mock: bool
    rpc_url: Optional[str] = None


@dataclass(frozen=True)
class MockEnvironment:
    rpc_url: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProductionEnvironment:
    reason: str = ""


Environment = Union[MockEnvironment, ProductionEnvironment]


def _close(rpc) -> None:
    close = getattr(rpc, "close", None)
    if callable(close):
        close()


async def resolve_chain(provider_or_url, mock_chains: Optional[Mapping[int, str]] = None,
                        rpc_factory: Callable[[Any], Any] = rpc_provider) -> ChainResolution:
    """Ask the provider for its chain id and look it up in the known mock chains."""
    chains = merge_mock_chains(mock_chains)
    rpc = rpc_factory(provider_or_url)
    try:
        raw = await rpc.request("eth_chainId", [])
        chain_id = parse_quantity(raw)
    except Exception as e:
        raise ChainResolutionFailure("Unable to resolve chain id", cause=e) from e
    finally:
        if isinstance(provider_or_url, str):
            _close(rpc)

    rpc_url = provider_or_url if isinstance(provider_or_url, str) else None
    if chain_id in chains:
        return ChainResolution(chain_id, True, rpc_url or chains[chain_id])
    return ChainResolution(chain_id, False, rpc_url)


async def probe_environment(rpc_url: str, rpc_factory: Callable[[Any], Any] = rpc_provider) -> Environment:
    """
    Decide whether rpc_url is a local dev node able to back a mock runtime.

    Returns MockEnvironment only when the client version contains the dev
    node marker AND the node answers fhevm_relayer_metadata with an object.
    Every other outcome, including any exception raised while probing, is
    ProductionEnvironment. This function never raises.
    """
    rpc = None
    try:
        rpc = rpc_factory(rpc_url)
        version = await rpc.request("web3_clientVersion", [])
        if not isinstance(version, str) or DEV_NODE_MARKER not in version.lower():
            return ProductionEnvironment(f"client {version!r} is not a development node")
        metadata = await rpc.request("fhevm_relayer_metadata", [])
        if not isinstance(metadata, dict):
            return ProductionEnvironment("relayer metadata missing or malformed")
        return MockEnvironment(rpc_url, metadata)
    except Exception as e:
        return ProductionEnvironment(f"probe failed: {type(e).__name__}: {e}")
    finally:
        if rpc is not None:
            _close(rpc)


_default_pk_cache: Optional[PublicKeyCache] = None


def _shared_public_key_cache() -> PublicKeyCache:
    global _default_pk_cache
    if _default_pk_cache is None:
        _default_pk_cache = PublicKeyCache(InMemoryStorage())
    return _default_pk_cache


async def acquire_runtime(
    provider_or_url,
    mock_chains: Optional[Mapping[int, str]] = None,
    signal=None,
    on_status: Optional[StatusCallback] = None,
    *,
    registry: Optional[RuntimeRegistry] = None,
    public_key_cache: Optional[PublicKeyCache] = None,
    rpc_factory: Callable[[Any], Any] = rpc_provider,
) -> EncryptionRuntime:
    """
    Bootstrap a runtime for provider_or_url (endpoint URL or EIP-1193 provider).

    Raises BootstrapError subclasses for real failures and Cancelled when
    signal.is_set() is observed at any await boundary.
    """
    resolution = await resolve_chain(provider_or_url, mock_chains, rpc_factory)
    _raise_if_cancelled(signal, "resolving")
    return await _bootstrap(
        provider_or_url, resolution, signal, on_status,
        registry=registry, public_key_cache=public_key_cache, rpc_factory=rpc_factory,
    )


def _raise_if_cancelled(signal, stage: str) -> None:
    if signal is not None and signal.is_set():
        log.warning(f"[BOOT] cancelled after {stage}")
        raise Cancelled(stage)


async def _bootstrap(provider_or_url, resolution: ChainResolution, signal, on_status,
                     *, registry, public_key_cache, rpc_factory) -> EncryptionRuntime:
    registry = registry or default_registry()
    public_key_cache = public_key_cache or _shared_public_key_cache()

    def notify(status: BootstrapStatus) -> None:
        log.info(f"[BOOT] chain={resolution.chain_id} status={status.value}")
        if on_status is not None:
            on_status(status)

    if resolution.is_mock and resolution.rpc_url:
        env = await probe_environment(resolution.rpc_url, rpc_factory)
        _raise_if_cancelled(signal, "probing")
        if isinstance(env, MockEnvironment):
            notify(BootstrapStatus.CREATING)
            runtime = MockRuntime(rpc_factory(env.rpc_url), resolution.chain_id, env.metadata)
            try:
                _raise_if_cancelled(signal, "creating")
            except Cancelled:
                _close(runtime.rpc)
                raise
            return runtime
        log.info(f"[BOOT] chain={resolution.chain_id} falling back to production: {env.reason}")

    if not registry.is_loaded():
        notify(BootstrapStatus.SDK_LOADING)
        await registry.ensure_loaded()
        _raise_if_cancelled(signal, "sdk-loading")
        notify(BootstrapStatus.SDK_LOADED)

    if not registry.is_initialized():
        notify(BootstrapStatus.SDK_INITIALIZING)
        await registry.ensure_initialized()
        _raise_if_cancelled(signal, "sdk-initializing")
        notify(BootstrapStatus.SDK_INITIALIZED)

    ns = registry.namespace
    config = ns.config
    acl_address = config.get("aclContractAddress")
    if not acl_address:
        raise InvalidRuntimeObject("SDK network config has no aclContractAddress", stage="creating")

    cached = await public_key_cache.get(acl_address)
    _raise_if_cancelled(signal, "public-key-cache")

    config.update({
        "network": provider_or_url,
        "publicKey": cached.public_key,
        "publicParams": cached.public_params,
    })

    notify(BootstrapStatus.CREATING)
    try:
        instance = await ns.create_instance(config)
    except BootstrapError:
        raise
    except Exception as e:
        raise CreateFailure("relayer SDK create_instance raised", cause=e) from e
    _raise_if_cancelled(signal, "creating")

    runtime = SdkRuntime.from_instance(instance, resolution.chain_id)
    await public_key_cache.set(
        acl_address, runtime.get_public_key(), runtime.get_public_params(PUBLIC_PARAMS_BITS)
    )
    _raise_if_cancelled(signal, "creating")
    return runtime


class RuntimeMemo:
    """
    Share one bootstrap per chain id between concurrent callers.

    The shared bootstrap itself is never cancelled by a single caller;
    each caller's own signal is checked when its await returns. Every
    joined caller's on_status receives the statuses emitted after it
    joined. Failed bootstraps are evicted so the next caller retries.
    """

    def __init__(self, mock_chains: Optional[Mapping[int, str]] = None, *,
                 registry: Optional[RuntimeRegistry] = None,
                 public_key_cache: Optional[PublicKeyCache] = None,
                 rpc_factory: Callable[[Any], Any] = rpc_provider):
        self.mock_chains = dict(mock_chains or {})
        self.registry = registry
        self.public_key_cache = public_key_cache
        self.rpc_factory = rpc_factory
        self._tasks: Dict[int, Tuple[asyncio.Future, List[StatusCallback]]] = {}

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "RuntimeMemo":
        kwargs.setdefault("registry", RuntimeRegistry(settings.sdk_module))
        kwargs.setdefault("rpc_factory", partial(rpc_provider, timeout=settings.rpc_timeout))
        return cls(settings.mock_chains, **kwargs)

    def _finished(self, chain_id: int, task: asyncio.Future) -> None:
        entry = self._tasks.get(chain_id)
        if entry is None or entry[0] is not task:
            return
        entry[1].clear()
        if task.cancelled() or task.exception() is not None:
            del self._tasks[chain_id]

    async def acquire(self, provider_or_url, signal=None, on_status: Optional[StatusCallback] = None) -> EncryptionRuntime:
        resolution = await resolve_chain(provider_or_url, self.mock_chains, self.rpc_factory)
        _raise_if_cancelled(signal, "resolving")

        entry = self._tasks.get(resolution.chain_id)
        if entry is None:
            listeners: List[StatusCallback] = []

            def fan_out(status: BootstrapStatus) -> None:
                for cb in list(listeners):
                    cb(status)

            task = asyncio.ensure_future(_bootstrap(
                provider_or_url, resolution, None, fan_out,
                registry=self.registry, public_key_cache=self.public_key_cache,
                rpc_factory=self.rpc_factory,
            ))
            entry = self._tasks[resolution.chain_id] = (task, listeners)
            task.add_done_callback(partial(self._finished, resolution.chain_id))
        else:
            log.debug(f"[BOOT] chain={resolution.chain_id} joining existing bootstrap")

        task, listeners = entry
        if on_status is not None and not task.done():
            listeners.append(on_status)

        runtime = await asyncio.shield(task)
        _raise_if_cancelled(signal, "waiting")
        return runtime

    def invalidate(self, chain_id: Optional[int] = None) -> None:
        """Forget the runtime for chain_id (all chains when None), e.g. on chain change."""
        if chain_id is None:
            self._tasks.clear()
        else:
            self._tasks.pop(chain_id, None)
