"""Update queue. Runs invalidated watchers once per tick, in id order.

Watchers created earlier have lower ids, so sorting by id gives:
1. parents update before children (parents are created first);
2. an owner's user watchers run before its render watcher;
3. a watcher whose owner was destroyed by an earlier watcher in the same
   flush is inert by the time its turn comes.

A watcher queued while the flush is running is spliced into its sorted
position after the cursor, so it still runs in this flush.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from depflow.config import config
from depflow.errors import handle_error, warn
from depflow.tick import next_tick

if TYPE_CHECKING:
    from depflow.scope import Scope
    from depflow.watcher import Watcher

_queue: list[Watcher] = []
_activated_children: list[Scope] = []
_has: dict[int, bool] = {}
_circular: dict[int, int] = {}
_waiting: bool = False
_flushing: bool = False
_index: int = 0

# Monotonic time at which the current (or last) flush started.
current_flush_timestamp: float = 0.0


def reset_scheduler_state() -> None:
    global _waiting, _flushing, _index
    _queue.clear()
    _activated_children.clear()
    _has.clear()
    _circular.clear()
    _index = 0
    _waiting = _flushing = False


def get_pending_count() -> int:
    """Number of watchers waiting to run. Useful for testing."""
    return len(_queue) - _index if _flushing else len(_queue)


def is_flushing() -> bool:
    return _flushing


def _describe(watcher: Watcher) -> str:
    if watcher.user:
        return f'watcher with expression "{watcher.expression}"'
    return "a render function"


def flush_scheduler_queue() -> None:
    """Run every queued watcher, then fire the post-flush hooks."""
    global current_flush_timestamp, _flushing, _index
    current_flush_timestamp = time.monotonic()
    _flushing = True

    _queue.sort(key=lambda w: w.id)

    # Length is re-read every pass: running a watcher may queue more.
    _index = 0
    while _index < len(_queue):
        watcher = _queue[_index]
        watcher_id = watcher.id
        if watcher.before is not None:
            try:
                watcher.before()
            except Exception as e:
                handle_error(e, watcher.owner, f"before hook of {_describe(watcher)}")
        _has.pop(watcher_id, None)
        try:
            watcher.run()
        except Exception as e:
            # Report and keep flushing.
            handle_error(e, watcher.owner, _describe(watcher))
        if watcher_id in _has:
            _circular[watcher_id] = _circular.get(watcher_id, 0) + 1
            if _circular[watcher_id] > config.max_update_count:
                warn(f"You may have an infinite update loop in {_describe(watcher)}.", watcher.owner)
                break
        _index += 1

    # Keep copies of the post queues before resetting state. A curtailed
    # flush only reports the watchers that actually ran.
    activated_queue = _activated_children[:]
    updated_queue = _queue[:_index + 1]

    reset_scheduler_state()

    _call_activated_hooks(activated_queue)
    _call_updated_hooks(updated_queue)


def _call_updated_hooks(queue: list[Watcher]) -> None:
    for watcher in reversed(queue):
        owner = watcher.owner
        if owner is not None and owner._watcher is watcher and owner.is_mounted and not owner.is_destroyed:
            owner.call_hook("updated")


def queue_activated_component(owner: Scope) -> None:
    """Queue an owner re-entering the active state for the post-flush hook.

    ``inactive`` is cleared at once so render functions running in this
    flush already see the owner as active.
    """
    owner.inactive = False
    _activated_children.append(owner)


def _call_activated_hooks(queue: list[Scope]) -> None:
    for owner in queue:
        owner.inactive = True
        owner.activate()


def queue_watcher(watcher: Watcher) -> None:
    """Push a watcher into the queue; duplicates are skipped.

    A watcher already run in this flush is accepted again (its entry was
    cleared before it ran).
    """
    global _waiting
    watcher_id = watcher.id
    if watcher_id in _has:
        return
    _has[watcher_id] = True
    if not _flushing:
        _queue.append(watcher)
    else:
        # Already flushing: splice in by id; if already past its id,
        # it runs next.
        i = len(_queue) - 1
        while i > _index and _queue[i].id > watcher_id:
            i -= 1
        _queue.insert(i + 1, watcher)

    if not _waiting:
        _waiting = True
        if not config.async_mode:
            flush_scheduler_queue()
            return
        next_tick(flush_scheduler_queue)
