# tsml/core/events.py
"""
Change kinds and the listener registry shared by all containers.

Each container level has its own flag enum. A single mutation fires exactly
one notification; when it touches several metadata groups at once (e.g.
inserting a value into a time-stamped series) the flags are combined.
"""
from __future__ import annotations

import inspect
import weakref
from enum import Flag, auto
from typing import Callable, Generic, TypeVar


class SeriesChange(Flag):
    VALUES = auto()
    TIME_STAMPS = auto()


class InstanceChange(Flag):
    CLASS = auto()
    VALUES = auto()
    TIME_STAMPS = auto()
    # dimensions added / removed / replaced
    DIMENSIONS = auto()


class DatasetChange(Flag):
    CLASS = auto()
    VALUES = auto()
    TIME_STAMPS = auto()
    DIMENSIONS = auto()
    # instances added / removed / replaced
    INSTANCES = auto()
    # vocabulary replaced or edited
    LABELS = auto()


class LabelChange(Flag):
    INSERT = auto()
    REMOVE = auto()
    RENAME = auto()
    # vocabulary rebuilt by fit() or cleared
    RESET = auto()


E = TypeVar("E")
Listener = Callable[..., None]


class _WeakListener:
    """Registry entry holding a listener by weak reference."""

    __slots__ = ("ref",)

    def __init__(self, listener: Listener) -> None:
        if inspect.ismethod(listener):
            self.ref: weakref.ref = weakref.WeakMethod(listener)
        else:
            self.ref = weakref.ref(listener)

    def resolve(self) -> Listener | None:
        return self.ref()


class ChangeNotifier(Generic[E]):
    """
    Mixin keeping an ordered list of change listeners.

    Listeners are called synchronously, in registration order, on a snapshot
    of the registry. A listener added with `weak=True` does not keep its
    owner alive; it is dropped once the owner is garbage collected.
    """

    _listeners: list[Listener | _WeakListener]

    def _init_notifier(self) -> None:
        self._listeners = []

    def add_listener(self, listener: Listener, *, weak: bool = False) -> None:
        if not callable(listener):
            raise TypeError("listener must be callable")
        self._live_listeners()
        self._listeners.append(_WeakListener(listener) if weak else listener)

    def remove_listener(self, listener: Listener) -> bool:
        """Unsubscribe `listener`; returns False when it was not registered."""
        for i, entry in enumerate(self._listeners):
            registered = entry.resolve() if isinstance(entry, _WeakListener) else entry
            # bound methods are rebuilt on each attribute access, compare by ==
            if registered is not None and registered == listener:
                del self._listeners[i]
                return True
        return False

    @property
    def num_listeners(self) -> int:
        return len(self._live_listeners())

    def _live_listeners(self) -> list[Listener]:
        live: list[Listener] = []
        kept: list[Listener | _WeakListener] = []
        for entry in self._listeners:
            listener = entry.resolve() if isinstance(entry, _WeakListener) else entry
            if listener is not None:
                live.append(listener)
                kept.append(entry)
        self._listeners = kept
        return live

    def _notify(self, change: E, *args: object) -> None:
        for listener in self._live_listeners():
            listener(change, *args)
