"""Computed values: cached results of a getter, recomputed on demand.

A Computed wraps a lazy Watcher. When any dependency changes the watcher
is only marked dirty; the function re-runs on the next read.

Reading a Computed inside another watcher's evaluation makes that watcher
depend on everything the computed read, so a render that uses a computed
re-runs when the computed's inputs change.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from depflow._tracking import current_watcher
from depflow.errors import warn
from depflow.watcher import Watcher

T = TypeVar("T")


class Computed(Generic[T]):
    """Cached result of fn, invalidated when anything fn read changes."""

    __slots__ = ("_watcher", "_setter")

    def __init__(
        self,
        fn: Callable[[], T],
        setter: Callable[[T], None] | None = None,
        *,
        owner=None,
    ) -> None:
        self._watcher = Watcher(fn, None, lazy=True, owner=owner)
        self._setter = setter

    @property
    def watcher(self) -> Watcher:
        return self._watcher

    @property
    def dirty(self) -> bool:
        return self._watcher.dirty

    def get(self) -> T:
        """Return the cached value, re-evaluating first if an input changed."""
        watcher = self._watcher
        if watcher.dirty:
            watcher.evaluate()
        if current_watcher.get() is not None:
            watcher.depend()
        return watcher.value

    @property
    def value(self) -> T:
        return self.get()

    @value.setter
    def value(self, new_value: T) -> None:
        self.set(new_value)

    def set(self, new_value: T) -> None:
        if self._setter is None:
            warn(
                f'Computed property "{self._watcher.expression}" was assigned to but it has no setter.',
                self._watcher.owner,
            )
            return
        self._setter(new_value)

    def dispose(self) -> None:
        """Disconnect from all dependencies. The computed stops updating."""
        self._watcher.teardown()

    def __repr__(self) -> str:
        watcher = self._watcher
        state = "dirty" if watcher.dirty else f"cached={watcher.value!r}"
        return f"Computed({watcher.expression}, {state})"


def computed(fn: Callable[[], T]) -> Computed[T]:
    """Wrap fn in a Computed. Works as a decorator.

    Usage:
        state = reactive({"count": 0})

        @computed
        def doubled():
            return state["count"] * 2

        doubled.get()  # 0
        state["count"] = 5
        doubled.get()  # 10
    """
    return Computed(fn)
