"""depflow: dependency-tracking reactive state with a batched update scheduler."""

from importlib.metadata import version as _version

__version__ = _version("depflow")

from depflow.config import config
from depflow.errors import handle_error, warn
from depflow.dep import Dep
from depflow.observer import (
    Observer,
    ReactiveDict,
    ReactiveList,
    define_reactive,
    delete,
    is_reactive,
    observe,
    observing,
    reactive,
    set,
    to_raw,
    toggle_observing,
)
from depflow.tick import flush_callbacks, next_tick
from depflow.scheduler import get_pending_count, queue_watcher
from depflow.watcher import Watcher
from depflow.computed import Computed, computed
from depflow.watch import autorun, watch
from depflow.scope import Scope

__all__ = [
    "config",
    "handle_error",
    "warn",
    "Dep",
    "Observer",
    "ReactiveDict",
    "ReactiveList",
    "define_reactive",
    "delete",
    "is_reactive",
    "observe",
    "observing",
    "reactive",
    "set",
    "to_raw",
    "toggle_observing",
    "flush_callbacks",
    "next_tick",
    "get_pending_count",
    "queue_watcher",
    "Watcher",
    "Computed",
    "computed",
    "autorun",
    "watch",
    "Scope",
]
