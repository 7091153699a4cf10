"""Scope: an owner of root reactive data and the watchers built on it.

A Scope is the minimal stand-in for a component instance: it holds the
root data, every watcher created on its behalf, at most one render
watcher, and named lifecycle hooks. The scheduler uses it to decide which
``updated`` and ``activated`` hooks fire after a flush; the error sink
walks the ``parent`` chain for ``error_captured`` hooks.

destroy() tears down every watcher at once and marks the scope dead, so
watchers still queued in a running flush become inert.
"""

from __future__ import annotations

from typing import Any, Callable

from depflow._tracking import untracked
from depflow.computed import Computed
from depflow.errors import invoke_with_error_handling
from depflow.observer import ReactiveDict, observe
from depflow.watch import watch
from depflow.watcher import Watcher


class Scope:
    """Root data plus watcher lifecycle."""

    def __init__(self, data: dict | ReactiveDict | None = None, *, name: str | None = None, parent: Scope | None = None) -> None:
        ob = observe({} if data is None else data, as_root=True)
        if ob is None or not isinstance(ob.value, ReactiveDict):
            raise TypeError(f"Scope data must be a dict, got {type(data).__name__}")
        self.data: ReactiveDict = ob.value
        self.name = name
        self.parent = parent
        self._watchers: list[Watcher] = []
        self._watcher: Watcher | None = None  # the render watcher
        self._hooks: dict[str, list[Callable[..., Any]]] = {}
        self.is_mounted = False
        self.is_being_destroyed = False
        self.is_destroyed = False
        self.inactive = False

    # --- Hooks ---

    def on(self, hook: str, fn: Callable[..., Any]) -> Callable[..., Any]:
        """Register fn under hook and return it."""
        self._hooks.setdefault(hook, []).append(fn)
        return fn

    def hooks(self, hook: str) -> list[Callable[..., Any]]:
        return list(self._hooks.get(hook, ()))

    def call_hook(self, hook: str) -> None:
        # Hooks must not become dependencies of whatever is evaluating.
        with untracked():
            for fn in self.hooks(hook):
                invoke_with_error_handling(fn, (), self, f"{hook} hook")

    # --- Watchers ---

    def mount(self, render: Callable[[], Any]) -> Watcher:
        """Create the render watcher and mark the scope mounted."""

        def before() -> None:
            if self.is_mounted and not self.is_destroyed:
                self.call_hook("before_update")

        self.call_hook("before_mount")
        Watcher(render, None, before=before, owner=self, render=True)
        self.is_mounted = True
        self.call_hook("mounted")
        return self._watcher

    def watch(self, source, callback, **options) -> Callable[[], None]:
        return watch(source, callback, owner=self, **options)

    def computed(self, fn: Callable[[], Any], setter: Callable[[Any], None] | None = None) -> Computed:
        return Computed(fn, setter, owner=self)

    @property
    def watchers(self) -> list[Watcher]:
        return list(self._watchers)

    # --- Lifecycle ---

    def activate(self) -> None:
        if self.inactive:
            self.inactive = False
            self.call_hook("activated")

    def destroy(self) -> None:
        if self.is_being_destroyed:
            return
        self.call_hook("before_destroy")
        self.is_being_destroyed = True
        for watcher in self._watchers:
            watcher.teardown()
        self._watchers.clear()
        self.data.__ob__.root_count -= 1
        self.is_destroyed = True
        self.call_hook("destroyed")

    def __repr__(self) -> str:
        state = "destroyed" if self.is_destroyed else "mounted" if self.is_mounted else "created"
        return f"Scope({self.name or 'anonymous'}, {state}, watchers={len(self._watchers)})"
