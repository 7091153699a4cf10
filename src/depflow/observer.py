"""Reactive collections — containers that track their readers.

``observe()`` converts plain dicts and lists into ReactiveDict and
ReactiveList. Every dict key is a Cell holding its own Dep; every
collection also carries an Observer whose Dep fires on structural change
(new or deleted keys, any list mutation).

Reads made while a watcher is evaluating subscribe it:
- ``d[k]`` depends on k's cell, plus the nested value's own Dep, plus every
  element's Dep when the value is a list.
- iteration, ``len``, ``in`` and missing-key reads depend on the
  collection's own Dep.

Writes notify:
- assigning a cell notifies only if the value actually changed;
- any ReactiveList mutation notifies the list's Dep exactly once per call.

``set()`` and ``delete()`` are the lenient out-of-band entry points: they
never raise for bad targets, they warn and do nothing.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, MutableMapping, MutableSequence
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from depflow._tracking import current_watcher
from depflow.dep import Dep
from depflow.errors import warn

_PRIMITIVES = (type(None), bool, int, float, complex, str, bytes)
_MISSING = object()

# Observation can be paused, e.g. while copying values that must stay raw.
_should_observe = True

# Raw container id -> (raw, Observer) for the conversion in progress. Kept
# until the outermost conversion finishes, so a plain container reached
# twice (an alias or a cycle) maps to one reactive collection.
_converting: dict[int, tuple[Any, Observer]] = {}
_conversion_depth = 0


@contextmanager
def _conversion():
    global _conversion_depth
    _conversion_depth += 1
    try:
        yield _converting
    finally:
        _conversion_depth -= 1
        if not _conversion_depth:
            _converting.clear()


def toggle_observing(value: bool) -> None:
    global _should_observe
    _should_observe = value


@contextmanager
def observing(value: bool):
    """Temporarily enable or disable creation of new Observers."""
    previous = _should_observe
    toggle_observing(value)
    try:
        yield
    finally:
        toggle_observing(previous)


def is_object(value: Any) -> bool:
    """True for anything that may be mutated in place."""
    return not isinstance(value, _PRIMITIVES)


def has_changed(old: Any, new: Any) -> bool:
    """Identity test for values: NaN matches NaN, and 1, 1.0 and True differ."""
    if new is old:
        return False
    if is_object(old) or is_object(new):
        return True
    if type(old) is not type(new):
        return True
    if isinstance(old, float) and math.isnan(old) and math.isnan(new):
        return False
    return old != new


class Observer:
    """Metadata attached to every reactive collection as ``__ob__``."""

    __slots__ = ("value", "dep", "root_count")

    def __init__(self, value: ReactiveDict | ReactiveList) -> None:
        self.value = value
        self.dep = Dep()
        # Number of scopes using this collection as their root data.
        self.root_count = 0

    def __repr__(self) -> str:
        return f"Observer({type(self.value).__name__}, dep={self.dep.id}, root_count={self.root_count})"


def observe(value: Any, as_root: bool = False) -> Observer | None:
    """Return the Observer for value, converting plain containers.

    Already-reactive values return their existing Observer. Within one
    conversion, every reference to the same plain container becomes the
    same reactive collection; each new call on a plain value builds a new
    one. Non-containers return None.
    """
    if isinstance(value, (ReactiveDict, ReactiveList)):
        ob = value.__ob__
    elif _should_observe and type(value) in (dict, list):
        with _conversion() as memo:
            entry = memo.get(id(value))
            if entry is not None and entry[0] is value:
                ob = entry[1]
            else:
                reactive_value = ReactiveDict() if type(value) is dict else ReactiveList()
                ob = reactive_value.__ob__
                memo[id(value)] = (value, ob)
                reactive_value._populate(value)
    else:
        return None
    if as_root:
        ob.root_count += 1
    return ob


def reactive(value: Any) -> Any:
    """Return the reactive version of value (or value itself if it has none)."""
    ob = observe(value)
    return ob.value if ob is not None else value


def is_reactive(value: Any) -> bool:
    return isinstance(value, (ReactiveDict, ReactiveList))


def to_raw(value: Any) -> Any:
    """Deep-copy a reactive structure back into plain dicts and lists."""
    return _to_raw(value, {})


def _to_raw(value, memo):
    if not is_reactive(value):
        return value
    if id(value) in memo:
        return memo[id(value)]
    if isinstance(value, ReactiveDict):
        raw: Any = {}
        memo[id(value)] = raw
        for key, cell in value._cells.items():
            raw[key] = _to_raw(cell.value, memo)
    else:
        raw = []
        memo[id(value)] = raw
        raw.extend(_to_raw(item, memo) for item in value._items)
    return raw


def _wrap(value: Any, shallow: bool = False) -> tuple[Any, Observer | None]:
    if shallow:
        return value, None
    ob = observe(value)
    if ob is None:
        return value, None
    return ob.value, ob


def depend_array(items: ReactiveList, seen: set | None = None) -> None:
    """Depend on every reactive element, since element access is not a cell."""
    if seen is None:
        seen = {items.__ob__.dep.id}
    for e in items._items:
        ob = getattr(e, "__ob__", None)
        if ob is None or ob.dep.id in seen:
            continue
        seen.add(ob.dep.id)
        ob.dep.depend()
        if isinstance(e, ReactiveList):
            depend_array(e, seen)


class Cell:
    """One reactive property: a Dep plus the boxed value."""

    __slots__ = ("dep", "value", "child_ob", "shallow")

    def __init__(self, value: Any, shallow: bool = False) -> None:
        self.dep = Dep()
        self.shallow = shallow
        self.value, self.child_ob = _wrap(value, shallow)

    def get(self) -> Any:
        if current_watcher.get() is not None:
            self.dep.depend()
            if self.child_ob is not None:
                self.child_ob.dep.depend()
                if isinstance(self.value, ReactiveList):
                    depend_array(self.value)
        return self.value

    def set(self, new_value: Any) -> None:
        if not has_changed(self.value, new_value):
            return
        self.value, self.child_ob = _wrap(new_value, self.shallow)
        self.dep.notify()

    def __repr__(self) -> str:
        return f"Cell({self.value!r}, dep={self.dep.id})"


def define_reactive(container: ReactiveDict, key: Any, value: Any = _MISSING, shallow: bool = False) -> Cell:
    """Create (or recreate) the reactive cell for container[key].

    Does not notify the container's own Dep. Callers adding a brand new
    key do that themselves.
    """
    if not isinstance(container, ReactiveDict):
        raise TypeError(f"define_reactive() needs a ReactiveDict, got {type(container).__name__}")
    if value is _MISSING:
        existing = container._cells.get(key)
        value = existing.value if existing is not None else None
    cell = Cell(value, shallow)
    container._cells[key] = cell
    return cell


class ReactiveDict(MutableMapping):
    """A dict whose every key is a reactive cell."""

    __slots__ = ("_cells", "__ob__", "__weakref__")

    def __init__(self, data: Mapping | Iterable | None = None, **kwargs: Any) -> None:
        self._cells: dict[Any, Cell] = {}
        self.__ob__ = Observer(self)
        if data is not None or kwargs:
            self._populate(dict(data or (), **kwargs))

    def _populate(self, data: Mapping) -> None:
        with _conversion():
            for key, value in data.items():
                define_reactive(self, key, value)

    def _track(self) -> None:
        self.__ob__.dep.depend()

    def _notify(self) -> None:
        self.__ob__.dep.notify()

    # --- Read operations (track) ---

    def __getitem__(self, key: Any) -> Any:
        cell = self._cells.get(key)
        if cell is None:
            # The key may be added later; that is a structural change.
            self._track()
            raise KeyError(key)
        return cell.get()

    def get(self, key: Any, default: Any = None) -> Any:
        cell = self._cells.get(key)
        if cell is None:
            self._track()
            return default
        return cell.get()

    def __contains__(self, key: object) -> bool:
        self._track()
        return key in self._cells

    def __len__(self) -> int:
        self._track()
        return len(self._cells)

    def __iter__(self) -> Iterator:
        self._track()
        return iter(self._cells)

    def keys(self):
        self._track()
        return self._cells.keys()

    def values(self) -> list:
        self._track()
        return [cell.get() for cell in self._cells.values()]

    def items(self) -> list:
        self._track()
        return [(key, cell.get()) for key, cell in self._cells.items()]

    def __bool__(self) -> bool:
        self._track()
        return bool(self._cells)

    # --- Write operations (notify) ---

    def __setitem__(self, key: Any, value: Any) -> None:
        cell = self._cells.get(key)
        if cell is not None:
            cell.set(value)
        else:
            define_reactive(self, key, value)
            self._notify()

    def __delitem__(self, key: Any) -> None:
        del self._cells[key]
        self._notify()

    def pop(self, key: Any, *default: Any) -> Any:
        if key in self._cells:
            value = self._cells.pop(key).value
            self._notify()
            return value
        if default:
            return default[0]
        raise KeyError(key)

    def popitem(self) -> tuple:
        key, cell = self._cells.popitem()
        self._notify()
        return key, cell.value

    def update(self, other=(), /, **kwargs: Any) -> None:
        added = False
        with _conversion():
            for key, value in dict(other, **kwargs).items():
                cell = self._cells.get(key)
                if cell is not None:
                    cell.set(value)
                else:
                    define_reactive(self, key, value)
                    added = True
        if added:
            self._notify()

    def clear(self) -> None:
        if self._cells:
            self._cells.clear()
            self._notify()

    def setdefault(self, key: Any, default: Any = None) -> Any:
        if key not in self._cells:
            self[key] = default
        return self[key]

    def __repr__(self) -> str:
        return f"ReactiveDict({ {k: c.value for k, c in self._cells.items()}!r})"


class ReactiveList(MutableSequence):
    """A list that tracks reads and notifies once per mutating call.

    Every mutation goes through the same splice layer, which observes newly
    inserted elements before notifying.
    """

    __slots__ = ("_items", "__ob__", "__weakref__")

    def __init__(self, items: Iterable | None = None) -> None:
        self._items: list = []
        self.__ob__ = Observer(self)
        if items is not None:
            self._populate(items)

    def _populate(self, items: Iterable) -> None:
        self._items.extend(self._observe_items(items))

    @staticmethod
    def _observe_items(items: Iterable) -> list:
        with _conversion():
            return [_wrap(item)[0] for item in items]

    def _track(self) -> None:
        self.__ob__.dep.depend()

    def _notify(self) -> None:
        self.__ob__.dep.notify()

    # --- Read operations (track) ---

    def __getitem__(self, index):
        self._track()
        return self._items[index]

    def __len__(self) -> int:
        self._track()
        return len(self._items)

    def __iter__(self) -> Iterator:
        self._track()
        return iter(self._items)

    def __reversed__(self) -> Iterator:
        self._track()
        return reversed(self._items)

    def __contains__(self, item: object) -> bool:
        self._track()
        return item in self._items

    def __bool__(self) -> bool:
        self._track()
        return bool(self._items)

    def index(self, item: Any, *args: Any) -> int:
        self._track()
        return self._items.index(item, *args)

    def count(self, item: Any) -> int:
        self._track()
        return self._items.count(item)

    def __eq__(self, other: object) -> bool:
        self._track()
        if isinstance(other, ReactiveList):
            return self._items == other._items
        if isinstance(other, list):
            return self._items == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    # --- Write operations (notify) ---

    def splice(self, start: int, delete_count: int | None = None, *items: Any) -> list:
        """Remove delete_count items at start, insert items there.

        Negative start counts from the end; both bounds are clamped.
        Returns the removed items.
        """
        length = len(self._items)
        if start < 0:
            start = max(length + start, 0)
        else:
            start = min(start, length)
        if delete_count is None:
            delete_count = length - start
        delete_count = min(max(delete_count, 0), length - start)
        removed = self._items[start:start + delete_count]
        self._items[start:start + delete_count] = self._observe_items(items)
        self._notify()
        return removed

    def append(self, item: Any) -> None:
        self._items.append(_wrap(item)[0])
        self._notify()

    def extend(self, items: Iterable) -> None:
        self._items.extend(self._observe_items(items))
        self._notify()

    def insert(self, index: int, item: Any) -> None:
        self._items.insert(index, _wrap(item)[0])
        self._notify()

    def pop(self, index: int = -1) -> Any:
        result = self._items.pop(index)
        self._notify()
        return result

    def remove(self, item: Any) -> None:
        self._items.remove(item)
        self._notify()

    def clear(self) -> None:
        self._items.clear()
        self._notify()

    def sort(self, *, key=None, reverse: bool = False) -> None:
        self._items.sort(key=key, reverse=reverse)
        self._notify()

    def reverse(self) -> None:
        self._items.reverse()
        self._notify()

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            self._items[index] = self._observe_items(value)
        else:
            self._items[index] = _wrap(value)[0]
        self._notify()

    def __delitem__(self, index) -> None:
        del self._items[index]
        self._notify()

    def __iadd__(self, items: Iterable) -> ReactiveList:
        self.extend(items)
        return self

    def __repr__(self) -> str:
        return f"ReactiveList({self._items!r})"


def _is_valid_index(key: Any) -> bool:
    return isinstance(key, int) and not isinstance(key, bool) and key >= 0


def set(target: Any, key: Any, value: Any) -> Any:
    """Set target[key], creating a reactive cell if the key is new.

    Adding a key to a reactive dict notifies the dict's own Dep, so
    watchers that iterate it (or read it through a parent cell) re-run.
    """
    if isinstance(target, _PRIMITIVES):
        warn(f"Cannot set reactive property on None or primitive value: {target!r}")
        return value
    if isinstance(target, (ReactiveList, list)):
        if not _is_valid_index(key):
            warn(f"Cannot set non-index key {key!r} on a sequence")
            return value
        if len(target._items if isinstance(target, ReactiveList) else target) < key:
            _pad(target, key)
        if isinstance(target, ReactiveList):
            target.splice(key, 1, value)
        elif key == len(target):
            target.append(value)
        else:
            target[key] = value
        return value
    if isinstance(target, ReactiveDict):
        cell = target._cells.get(key)
        if cell is not None:
            cell.set(value)
            return value
        ob = target.__ob__
        if ob.root_count:
            warn(
                "Avoid adding reactive properties to a scope's root data at runtime "
                "- declare it upfront instead."
            )
            return value
        define_reactive(target, key, value)
        ob.dep.notify()
        return value
    if isinstance(target, MutableMapping):
        target[key] = value
        return value
    warn(f"Cannot set property {key!r} on non-extensible value of type {type(target).__name__}")
    return value


def _pad(target: ReactiveList | list, length: int) -> None:
    items = target._items if isinstance(target, ReactiveList) else target
    items.extend([None] * (length - len(items)))


def delete(target: Any, key: Any) -> None:
    """Delete target[key] and notify; a missing key is silently ignored."""
    if isinstance(target, _PRIMITIVES):
        warn(f"Cannot delete reactive property on None or primitive value: {target!r}")
        return
    if isinstance(target, (ReactiveList, list)):
        if not _is_valid_index(key):
            warn(f"Cannot delete non-index key {key!r} on a sequence")
            return
        if isinstance(target, ReactiveList):
            target.splice(key, 1)
        elif key < len(target):
            del target[key]
        return
    if isinstance(target, ReactiveDict):
        ob = target.__ob__
        if ob.root_count:
            warn("Avoid deleting properties on a scope's root data - just set it to None.")
            return
        if key not in target._cells:
            return
        del target._cells[key]
        ob.dep.notify()
        return
    if isinstance(target, MutableMapping):
        target.pop(key, None)
        return
    warn(f"Cannot delete property {key!r} on non-extensible value of type {type(target).__name__}")
