"""Plain Python structures that hold the dependency graph.

Deps and Watchers never hold references to each other's objects for
subscriptions. A Dep's subscribers are kept here as an ordered set of
watcher ids, and ids are resolved through the live watcher registry.
A torn-down watcher leaves the registry, so stale ids resolve to nothing.
"""

import itertools

# Dep state
subscribers: dict[int, dict[int, None]] = {}  # dep_id -> ordered set of watcher ids

# Watcher state
watchers: dict[int, object] = {}  # watcher_id -> live Watcher

# ID generation. itertools.count is atomic under the GIL.
# Watcher ids start at 1 and only grow: creation order is flush order.
_dep_ids = itertools.count()
_watcher_ids = itertools.count(1)


def new_dep_id() -> int:
    return next(_dep_ids)


def new_watcher_id() -> int:
    return next(_watcher_ids)


def drop_subscribers(dep_id: int) -> None:
    """Forget a collected Dep's subscriber set."""
    subscribers.pop(dep_id, None)
