# fhevm_core/sdk.py
"""
Relayer SDK namespace loading and initialization.

The SDK is an importable module (FHEVM_SDK_MODULE). A valid namespace exposes:

- init_sdk(options=None) -> bool        (sync or async)
- create_instance(config) -> instance   (sync or async)
- SEPOLIA_CONFIG: mapping               (default network configuration)
- __initialized__: bool                 (optional, set once init succeeded)

RuntimeRegistry owns the loaded/initialized state so tests can build a fresh
one per case instead of touching process-wide globals.
"""

from __future__ import annotations
import asyncio
import importlib
import os
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional

from .constants import DEFAULT_SDK_MODULE, SDK_CONFIG_ATTR
from .errors import InitFailure, InvalidRuntimeObject, LoadFailure
from .logger import get_logger
from .utils import resolve

log = get_logger("FHEVM.SDK")


class SdkNamespace:
    def __init__(self, module: Any):
        self.module = module

    @classmethod
    def validate(cls, module: Any) -> "SdkNamespace":
        """Check the whole capability set once; fail with the first problem found."""
        if module is None:
            raise InvalidRuntimeObject("relayer SDK namespace is None")
        for name in ("init_sdk", "create_instance"):
            value = getattr(module, name, None)
            if value is None:
                raise InvalidRuntimeObject(f"relayer SDK is missing {name}")
            if not callable(value):
                raise InvalidRuntimeObject(f"relayer SDK {name} is not callable")
        config = getattr(module, SDK_CONFIG_ATTR, None)
        if not isinstance(config, Mapping):
            raise InvalidRuntimeObject(f"relayer SDK {SDK_CONFIG_ATTR} is missing or not a mapping")
        flag = getattr(module, "__initialized__", None)
        if flag is not None and not isinstance(flag, bool):
            raise InvalidRuntimeObject("relayer SDK __initialized__ is not a bool")
        return cls(module)

    @property
    def config(self) -> Dict[str, Any]:
        return dict(getattr(self.module, SDK_CONFIG_ATTR))

    @property
    def initialized(self) -> bool:
        return getattr(self.module, "__initialized__", False) is True

    def mark_initialized(self, value: bool) -> None:
        try:
            setattr(self.module, "__initialized__", bool(value))
        except (AttributeError, TypeError):
            # read-only namespaces keep their state in the registry only
            pass

    async def init(self, options: Optional[dict] = None) -> Any:
        return await resolve(self.module.init_sdk(options))

    async def create_instance(self, config: Dict[str, Any]) -> Any:
        return await resolve(self.module.create_instance(config))


class RuntimeRegistry:
    """
    Load/initialize state of the relayer SDK.

    check → act-if-absent → mark, with no locking: racing initializers are
    tolerated because loading and init_sdk are themselves idempotent.
    """

    def __init__(self, module_name: Optional[str] = None, importer: Optional[Callable[[str], Any]] = None):
        self.module_name = module_name or os.getenv("FHEVM_SDK_MODULE", DEFAULT_SDK_MODULE)
        self._importer = importer or importlib.import_module
        self.namespace: Optional[SdkNamespace] = None
        self.loaded = False
        self.initialized = False

    def is_loaded(self) -> bool:
        return self.loaded and self.namespace is not None

    def is_initialized(self) -> bool:
        if not self.is_loaded():
            return False
        return self.initialized or self.namespace.initialized

    async def ensure_loaded(self) -> SdkNamespace:
        if self.is_loaded():
            return self.namespace
        log.info(f"[SDK] loading {self.module_name}")
        try:
            module = await asyncio.to_thread(self._importer, self.module_name)
        except Exception as e:
            raise LoadFailure(f"Failed to load relayer SDK from {self.module_name}", cause=e) from e
        self.namespace = SdkNamespace.validate(module)
        self.loaded = True
        return self.namespace

    async def ensure_initialized(self, options: Optional[dict] = None) -> SdkNamespace:
        ns = await self.ensure_loaded()
        if self.is_initialized():
            self.initialized = True
            return ns
        log.info("[SDK] initializing")
        try:
            result = await ns.init(options)
        except Exception as e:
            raise InitFailure("relayer SDK init_sdk raised", cause=e) from e
        ns.mark_initialized(bool(result))
        if not result:
            raise InitFailure("relayer SDK init_sdk failed")
        self.initialized = True
        return ns

    def reset(self) -> None:
        self.namespace = None
        self.loaded = False
        self.initialized = False


_default_registry: Optional[RuntimeRegistry] = None


def default_registry() -> RuntimeRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = RuntimeRegistry()
    return _default_registry
