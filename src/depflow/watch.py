"""The user-facing ways to react to state.

- watch(source, callback): track source (a function or a dotted path),
  call callback(new, old) after it changes. Errors are reported, not raised.
- autorun(fn): run fn now, re-run it whenever anything it read changes.
  This is the shape of a render computation.

Both are batched through the scheduler unless sync=True.
"""

from __future__ import annotations

from typing import Any, Callable

from depflow._tracking import untracked
from depflow.errors import invoke_with_error_handling
from depflow.watcher import Watcher


def watch(
    source: str | Callable[[], Any],
    callback: Callable[[Any, Any], None],
    *,
    deep: bool = False,
    sync: bool = False,
    immediate: bool = False,
    owner=None,
) -> Callable[[], None]:
    """Call callback(new, old) whenever source's value changes.

    Returns an unwatch function; the underlying Watcher is available as
    ``unwatch.__watcher__``.

    Usage:
        state = reactive({"user": {"name": "Ann"}})
        log = []

        unwatch = watch(lambda: state["user"]["name"], lambda new, old: log.append((old, new)))
        state["user"]["name"] = "Bob"
        # after the next tick: log == [("Ann", "Bob")]

        unwatch()
    """
    watcher = Watcher(source, callback, user=True, deep=deep, sync=sync, owner=owner)
    if immediate:
        # Reads made by the callback must not become the watcher's deps.
        with untracked():
            info = f'callback for immediate watcher "{watcher.expression}"'
            invoke_with_error_handling(callback, (watcher.value, None), owner, info)

    def unwatch() -> None:
        watcher.teardown()

    unwatch.__watcher__ = watcher
    return unwatch


def autorun(fn: Callable[[], Any], *, sync: bool = False, owner=None) -> Watcher:
    """Run fn immediately, then re-run it whenever anything it read changes.

    Returns the Watcher (call .teardown() to stop).
    """
    return Watcher(fn, None, sync=sync, owner=owner)
