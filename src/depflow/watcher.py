"""Watchers — computations that subscribe to what they read.

A Watcher evaluates a getter with itself as the current watcher, so every
reactive read made by the getter subscribes it. When any of those Deps
notify, the watcher reacts according to its mode:

- lazy:  mark dirty; the next reader re-evaluates (computed values).
- sync:  re-run right away.
- default: queue for the next scheduler flush (batched, ordered by id).

After every evaluation the subscriptions are reconciled: Deps read this
round are kept or added, Deps no longer read are dropped.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from depflow import _anchor
from depflow._tracking import current_watcher, pop_target, push_target
from depflow.dep import Dep
from depflow.errors import handle_error, invoke_with_error_handling, warn
from depflow.observer import ReactiveDict, ReactiveList, has_changed, is_object
from depflow.scheduler import queue_watcher

_BAIL_RE = re.compile(r"[^\w.$]")


def _noop(*args: Any) -> None:
    return None


def parse_path(path: str) -> Callable[[Any], Any] | None:
    """Compile a dotted path like ``"user.address.city"`` into a reader.

    Returns None for anything that is not a simple dotted path.
    """
    if not path or _BAIL_RE.search(path):
        return None
    segments = path.split(".")

    def read(obj: Any) -> Any:
        for segment in segments:
            if obj is None:
                return None
            if isinstance(obj, Mapping):
                obj = obj.get(segment)
            elif isinstance(obj, Sequence) and segment.isdigit():
                index = int(segment)
                obj = obj[index] if index < len(obj) else None
            else:
                obj = getattr(obj, segment, None)
        return obj

    return read


def traverse(value: Any) -> None:
    """Touch everything reachable from value so a deep watcher tracks it."""
    _traverse(value, set())


def _traverse(value: Any, seen: set) -> None:
    if isinstance(value, (ReactiveDict, ReactiveList)):
        dep = value.__ob__.dep
        if dep.id in seen:
            return
        seen.add(dep.id)
        dep.depend()
        if isinstance(value, ReactiveDict):
            for cell in list(value._cells.values()):
                _traverse(cell.get(), seen)
        else:
            for item in list(value._items):
                _traverse(item, seen)
    elif isinstance(value, (list, tuple, dict)):
        # Plain containers can still hold reactive ones.
        key = ("raw", id(value))
        if key in seen:
            return
        seen.add(key)
        for item in value.values() if isinstance(value, dict) else value:
            _traverse(item, seen)


class Watcher:
    """Evaluates a getter, tracks its Deps, and fires a callback on change."""

    __slots__ = (
        "id",
        "owner",
        "getter",
        "callback",
        "before",
        "expression",
        "deep",
        "user",
        "lazy",
        "sync",
        "dirty",
        "active",
        "value",
        "deps",
        "new_deps",
        "_failed",
    )

    def __init__(
        self,
        expr_or_fn: str | Callable[[], Any],
        callback: Callable[[Any, Any], None] | None = None,
        *,
        deep: bool = False,
        user: bool = False,
        lazy: bool = False,
        sync: bool = False,
        before: Callable[[], None] | None = None,
        owner=None,
        render: bool = False,
    ) -> None:
        self.owner = owner
        if owner is not None:
            if render:
                owner._watcher = self
            owner._watchers.append(self)
        self.deep = deep
        self.user = user
        self.lazy = lazy
        self.sync = sync
        self.before = before
        self.callback = callback or _noop
        self.id = _anchor.new_watcher_id()
        self.active = True
        self.dirty = lazy
        self.deps: dict[int, Dep] = {}
        self.new_deps: dict[int, Dep] = {}
        self._failed = False
        if callable(expr_or_fn):
            self.getter = expr_or_fn
            self.expression = getattr(expr_or_fn, "__qualname__", repr(expr_or_fn))
        else:
            self.expression = expr_or_fn
            read = parse_path(expr_or_fn)
            if read is None:
                self.getter = _noop
                warn(
                    f'Failed watching path: "{expr_or_fn}" Watcher only accepts simple '
                    "dot-delimited paths. For full control, use a function instead.",
                    owner,
                )
            else:
                self.getter = lambda: read(owner.data if owner is not None else None)
        _anchor.watchers[self.id] = self
        self.value = None
        if not lazy:
            self.value = self.get()

    def get(self) -> Any:
        """Evaluate the getter and re-collect dependencies."""
        token = push_target(self)
        value = None
        self._failed = False
        try:
            value = self.getter()
        except Exception as e:
            if not self.user:
                raise
            self._failed = True
            value = self.value
            handle_error(e, self.owner, f'getter for watcher "{self.expression}"')
        finally:
            if self.deep:
                traverse(value)
            pop_target(token)
            self.cleanup_deps()
        return value

    def add_dep(self, dep: Dep) -> None:
        dep_id = dep.id
        if dep_id not in self.new_deps:
            self.new_deps[dep_id] = dep
            if dep_id not in self.deps:
                dep.add_sub(self)

    def cleanup_deps(self) -> None:
        for dep_id, dep in self.deps.items():
            if dep_id not in self.new_deps:
                dep.remove_sub(self)
        self.deps, self.new_deps = self.new_deps, self.deps
        self.new_deps.clear()

    def update(self) -> None:
        """Called by a Dep when something this watcher read has changed."""
        if self.lazy:
            self.dirty = True
        elif self.sync:
            self.run()
        else:
            queue_watcher(self)

    def run(self) -> None:
        """Re-evaluate and fire the callback if the result changed.

        Objects always count as changed: they may have been mutated in place.
        """
        if not self.active:
            return
        value = self.get()
        if self._failed:
            return
        if has_changed(self.value, value) or is_object(value) or self.deep:
            old_value = self.value
            self.value = value
            if self.user:
                info = f'callback for watcher "{self.expression}"'
                invoke_with_error_handling(self.callback, (value, old_value), self.owner, info)
            else:
                self.callback(value, old_value)

    def evaluate(self) -> None:
        """Compute the value now. Only lazy watchers need this."""
        self.value = self.get()
        self.dirty = False

    def depend(self) -> None:
        """Make the active watcher depend on everything this one depends on."""
        if current_watcher.get() is None:
            return
        for dep in list(self.deps.values()):
            dep.depend()

    def teardown(self) -> None:
        """Unsubscribe from every Dep. The watcher is inert afterwards."""
        if not self.active:
            return
        owner = self.owner
        # Skipped while the owner tears down all of its watchers at once.
        if owner is not None and not owner.is_being_destroyed:
            try:
                owner._watchers.remove(self)
            except ValueError:
                pass
        for dep in self.deps.values():
            dep.remove_sub(self)
        _anchor.watchers.pop(self.id, None)
        self.active = False

    def __repr__(self) -> str:
        flags = [name for name in ("deep", "user", "lazy", "sync") if getattr(self, name)]
        if not self.active:
            flags.append("inactive")
        suffix = f", {'|'.join(flags)}" if flags else ""
        return f"Watcher(id={self.id}, {self.expression!r}{suffix})"
