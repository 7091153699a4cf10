"""Which watcher is evaluating right now.

Uses contextvars to track the watcher whose getter is running, so every
reactive read made during the evaluation registers a dependency on it.
Token-based set/reset makes nested evaluations stack: when an inner
watcher (a computed read inside a render) finishes, the outer one becomes
current again. Each asyncio task or thread sees its own context.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from depflow.watcher import Watcher

# The currently-evaluating watcher.
# When set, any reactive read calls Dep.depend() against it.
current_watcher: contextvars.ContextVar[Watcher | None] = contextvars.ContextVar(
    "current_watcher", default=None
)


def push_target(watcher: Watcher | None) -> contextvars.Token:
    """Make ``watcher`` the active target. Pass None to suspend tracking."""
    return current_watcher.set(watcher)


def pop_target(token: contextvars.Token) -> None:
    """Restore whichever watcher was active before the matching push."""
    current_watcher.reset(token)


def active_watcher() -> Watcher | None:
    return current_watcher.get()


@contextmanager
def untracked():
    """Run a block without collecting dependencies.

    Usage:
        with untracked():
            callback(watcher.value)  # reads here subscribe nothing
    """
    token = push_target(None)
    try:
        yield
    finally:
        pop_target(token)
