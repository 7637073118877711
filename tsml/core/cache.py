# tsml/core/cache.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")


class Stale:
    """Marker state: the cached value must be recomputed on next read."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "STALE"


STALE = Stale()


@dataclass(frozen=True, slots=True)
class Fresh:
    value: Any


class Memo(Generic[T]):
    """
    Lazily computed, memoized value.

    The cell is either STALE or Fresh(value); `get()` computes on the first
    read after `invalidate()` and returns the stored value afterwards.
    Not thread-safe (single writer).
    """

    __slots__ = ("_compute", "_state")

    def __init__(self, compute: Callable[[], T]) -> None:
        self._compute = compute
        self._state: Union[Stale, Fresh] = STALE

    def get(self) -> T:
        state = self._state
        if isinstance(state, Fresh):
            return state.value
        value = self._compute()
        self._state = Fresh(value)
        return value

    def invalidate(self) -> None:
        self._state = STALE

    @property
    def is_fresh(self) -> bool:
        return isinstance(self._state, Fresh)

    def __repr__(self) -> str:
        return f"Memo({self._state!r})"


def invalidate_all(*memos: Memo) -> None:
    for memo in memos:
        memo.invalidate()
