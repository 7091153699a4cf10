"""Deps: observable attachment points.

A Dep is attached to every reactive cell and to every reactive collection.
Watchers subscribe to it while evaluating and are notified when it changes.

All subscriber state lives in _anchor; instances are thin handles holding
an _id, and subscribers are watcher ids rather than watcher references.
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING

from depflow import _anchor
from depflow._tracking import current_watcher
from depflow.config import config

if TYPE_CHECKING:
    from depflow.watcher import Watcher


class Dep:
    """An observable that can have multiple watchers subscribing to it."""

    __slots__ = ("_id", "__weakref__")

    def __init__(self) -> None:
        self._id = _anchor.new_dep_id()
        _anchor.subscribers[self._id] = {}
        weakref.finalize(self, _anchor.drop_subscribers, self._id)

    @property
    def id(self) -> int:
        return self._id

    @property
    def subs(self) -> list[Watcher]:
        """Live subscribers in subscription order."""
        live = _anchor.watchers
        return [live[i] for i in _anchor.subscribers[self._id] if i in live]

    def add_sub(self, sub: Watcher) -> None:
        _anchor.subscribers[self._id][sub.id] = None

    def remove_sub(self, sub: Watcher) -> None:
        _anchor.subscribers[self._id].pop(sub.id, None)

    def depend(self) -> None:
        """Let the active watcher decide whether to subscribe."""
        watcher = current_watcher.get()
        if watcher is not None:
            watcher.add_dep(self)

    def notify(self) -> None:
        # Snapshot first: updates may subscribe or unsubscribe watchers.
        subs = self.subs
        if not config.async_mode:
            # No queue sorts them later, so fire in creation order now.
            subs.sort(key=lambda s: s.id)
        for sub in subs:
            sub.update()

    def __repr__(self) -> str:
        return f"Dep(id={self._id}, subs={list(_anchor.subscribers[self._id])})"
