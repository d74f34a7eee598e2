"""
fhevm_core.sensitive
--------------------
Wrapper for credential material (ephemeral private keys, storage keys).

A Secret never renders its value through repr/str/format, so it can travel
through log calls and exception messages safely. The value is only
available through reveal(), which makes every access point greppable.
"""

from __future__ import annotations
from typing import Generic, TypeVar

T = TypeVar("T")

_MASK = "********"


class Secret(Generic[T]):
    __slots__ = ("_value",)

    def __init__(self, value: T):
        if isinstance(value, Secret):
            value = value.reveal()
        self._value = value

    def reveal(self) -> T:
        return self._value

    def __repr__(self) -> str:
        return f"Secret({_MASK!r})"

    __str__ = __repr__

    def __format__(self, format_spec: str) -> str:
        return repr(self)

    def __eq__(self, other) -> bool:
        if isinstance(other, Secret):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)

    def __reduce__(self):
        raise TypeError("Secret values cannot be pickled; serialize explicitly via reveal()")
