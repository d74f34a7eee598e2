"""
fhevm_core.utils
----------------
Small helpers for timestamps, hex/base64 conversion and
awaiting values that may or may not be coroutines.
"""

from __future__ import annotations
import base64, inspect, time
from typing import Any


def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")


def b64d(s: str) -> bytes:
    return base64.b64decode(s.encode("ascii"))


def timestamp_now() -> int:
    # Unix seconds, floor
    return int(time.time())


def strip_0x(s: str) -> str:
    return s[2:] if s.startswith(("0x", "0X")) else s


def with_0x(s: str) -> str:
    return s if s.startswith(("0x", "0X")) else "0x" + s


def parse_quantity(value: Any) -> int:
    """Parse a JSON-RPC quantity ("0x7a69", 31337, "31337") into an int."""
    if isinstance(value, bool):
        raise ValueError(f"not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip()
        if v.lower().startswith("0x"):
            return int(v, 16)
        return int(v)
    raise ValueError(f"not a quantity: {value!r}")


async def resolve(value: Any) -> Any:
    """SDK entrypoints may be sync or async; await only when needed."""
    if inspect.isawaitable(value):
        return await value
    return value
