from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class NotFound:
    """Nothing matched. Not an error: callers decide whether it is one."""

    reason: str = ""

    def __bool__(self) -> bool:
        return False


Lookup = Union[Found[T], NotFound]
