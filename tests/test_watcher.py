"""Tests for Watcher: dependency collection, modes, and teardown."""

import pytest

from depflow import Scope, Watcher, flush_callbacks, get_pending_count, reactive
from depflow.watcher import parse_path, traverse


class TestDependencyCollection:
    def test_subscribes_to_what_it_reads(self):
        r = reactive({"a": 1, "b": 2})
        w = Watcher(lambda: r["a"])
        assert w in r._cells["a"].dep.subs
        assert w not in r._cells["b"].dep.subs

    def test_reading_twice_subscribes_once(self):
        r = reactive({"a": 1})
        w = Watcher(lambda: r["a"] + r["a"])
        assert r._cells["a"].dep.subs == [w]
        r["a"] = 2
        flush_callbacks()
        assert r._cells["a"].dep.subs == [w]

    def test_dropped_branch_is_unsubscribed(self):
        r = reactive({"flag": True, "a": 1, "b": 2})
        w = Watcher(lambda: r["a"] if r["flag"] else r["b"])
        r["flag"] = False
        flush_callbacks()
        assert w.value == 2
        assert w not in r._cells["a"].dep.subs
        assert w in r._cells["b"].dep.subs

        r["a"] = 100
        assert get_pending_count() == 0

    def test_nested_evaluation_restores_outer_watcher(self):
        r = reactive({"inner": 1, "outer": 2})
        inner = Watcher(lambda: r["inner"], lazy=True)

        def outer_fn():
            inner.evaluate()
            return r["outer"]

        outer = Watcher(outer_fn)
        assert outer in r._cells["outer"].dep.subs
        assert outer not in r._cells["inner"].dep.subs
        assert inner in r._cells["inner"].dep.subs


class TestRun:
    def test_callback_receives_new_and_old(self):
        r = reactive({"a": 1})
        calls = []
        w = Watcher(lambda: r["a"] * 2, lambda new, old: calls.append((new, old)))
        r["a"] = 2
        flush_callbacks()
        assert w.value == 4
        assert calls == [(4, 2)]

    def test_unchanged_primitive_does_not_fire(self):
        r = reactive({"a": 1})
        calls = []
        Watcher(lambda: r["a"] % 2, lambda new, old: calls.append(new))
        r["a"] = 3
        flush_callbacks()
        assert calls == []

    def test_equal_number_of_another_type_fires(self):
        r = reactive({"a": 1})
        calls = []
        Watcher(lambda: r["a"], lambda new, old: calls.append((new, old)))
        r["a"] = 1.0
        flush_callbacks()
        assert calls == [(1.0, 1)]
        assert type(calls[0][0]) is float

    def test_objects_always_fire(self):
        r = reactive({"obj": {"x": 1}})
        calls = []
        Watcher(lambda: r["obj"], lambda new, old: calls.append(new is old))
        r["obj"]["y"] = 2  # structural change: same object, new key
        flush_callbacks()
        assert calls == [True]

    def test_sync_runs_immediately(self):
        r = reactive({"a": 1})
        calls = []
        Watcher(lambda: r["a"], lambda new, old: calls.append(new), sync=True)
        r["a"] = 2
        assert calls == [2]
        assert get_pending_count() == 0

    def test_default_mode_waits_for_flush(self):
        r = reactive({"a": 1})
        calls = []
        Watcher(lambda: r["a"], lambda new, old: calls.append(new))
        r["a"] = 2
        assert calls == []
        assert get_pending_count() == 1
        flush_callbacks()
        assert calls == [2]


class TestLazy:
    def test_lazy_lifecycle(self):
        r = reactive({"a": 1})
        calls = []

        def fn():
            calls.append(1)
            return r["a"] + 1

        c = Watcher(fn, lazy=True)
        assert c.dirty is True
        assert c.value is None
        assert calls == []

        c.evaluate()
        assert c.value == 2
        assert c.dirty is False

        r["a"] = 5
        assert c.dirty is True
        assert c.value == 2
        assert len(calls) == 1
        assert get_pending_count() == 0

    def test_depend_passes_deps_to_outer_watcher(self):
        r = reactive({"a": 1})
        c = Watcher(lambda: r["a"], lazy=True)

        def outer_fn():
            c.evaluate()
            c.depend()
            return c.value

        outer = Watcher(outer_fn)
        assert outer in r._cells["a"].dep.subs

    def test_depend_outside_evaluation_is_noop(self):
        r = reactive({"a": 1})
        c = Watcher(lambda: r["a"], lazy=True)
        c.evaluate()
        c.depend()
        assert r._cells["a"].dep.subs == [c]


class TestDeep:
    def test_deep_fires_three_levels_down(self):
        r = reactive({"a": {"b": {"c": {"d": 1}}}})
        deep_calls, shallow_calls = [], []
        Watcher(lambda: r, lambda new, old: deep_calls.append(1), deep=True)
        Watcher(lambda: r["a"], lambda new, old: shallow_calls.append(1))

        r["a"]["b"]["c"]["d"] = 2
        flush_callbacks()
        assert deep_calls == [1]
        assert shallow_calls == []

    def test_shallow_fires_when_reference_changes(self):
        r = reactive({"a": {"b": 1}})
        calls = []
        Watcher(lambda: r["a"], lambda new, old: calls.append(1))
        r["a"] = {"b": 1}
        flush_callbacks()
        assert calls == [1]

    def test_deep_tracks_list_elements(self):
        r = reactive({"items": [{"n": 1}]})
        calls = []
        Watcher(lambda: r["items"], lambda new, old: calls.append(1), deep=True)
        r["items"][0]["n"] = 2
        flush_callbacks()
        assert calls == [1]

    def test_traverse_terminates_on_cycles(self):
        raw = {"a": {"b": 1}}
        raw["a"]["parent"] = raw
        r = reactive(raw)
        w = Watcher(lambda: traverse(r))
        assert w in r._cells["a"].value._cells["b"].dep.subs


class TestErrors:
    def test_non_user_getter_error_propagates(self):
        with pytest.raises(ZeroDivisionError):
            Watcher(lambda: 1 / 0)

    def test_user_getter_error_is_reported(self, errors_log):
        r = reactive({"a": 1})
        calls = []
        w = Watcher(lambda: 10 // r["a"], lambda new, old: calls.append(new), user=True)
        r["a"] = 0
        flush_callbacks()
        assert w.value == 10
        assert calls == []
        err, info = errors_log[0]
        assert isinstance(err, ZeroDivisionError)
        assert info.startswith("getter for watcher")

    def test_user_getter_error_keeps_subscriptions(self, errors_log):
        r = reactive({"a": 1})
        w = Watcher(lambda: 10 // r["a"], user=True)
        r["a"] = 0
        flush_callbacks()
        r["a"] = 5
        flush_callbacks()
        assert w.value == 2

    def test_user_callback_error_is_reported(self, errors_log):
        r = reactive({"a": 1})

        def boom(new, old):
            raise ValueError("bad callback")

        Watcher(lambda: r["a"], boom, user=True)
        r["a"] = 2
        flush_callbacks()
        assert isinstance(errors_log[0][0], ValueError)
        assert errors_log[0][1].startswith("callback for watcher")


class TestTeardown:
    def test_teardown_unsubscribes(self):
        r = reactive({"a": 1})
        calls = []
        w = Watcher(lambda: r["a"], lambda new, old: calls.append(new))
        w.teardown()
        assert r._cells["a"].dep.subs == []
        r["a"] = 2
        flush_callbacks()
        assert calls == []
        assert w.active is False

    def test_teardown_is_idempotent(self):
        w = Watcher(lambda: None)
        w.teardown()
        w.teardown()
        assert w.active is False

    def test_run_after_teardown_is_inert(self):
        r = reactive({"a": 1})
        calls = []
        w = Watcher(lambda: r["a"], lambda new, old: calls.append(new))
        r["a"] = 2
        w.teardown()
        flush_callbacks()
        assert calls == []
        assert w.value == 1

    def test_teardown_removes_from_owner(self):
        scope = Scope({"a": 1})
        w = Watcher(lambda: scope.data["a"], owner=scope)
        assert scope.watchers == [w]
        w.teardown()
        assert scope.watchers == []


class TestPathExpressions:
    def test_parse_path(self):
        read = parse_path("user.tags.0")
        assert read({"user": {"tags": ["x"]}}) == "x"
        assert read({"user": None}) is None
        assert parse_path("a[0]") is None
        assert parse_path("a + b") is None

    def test_path_watcher_reads_owner_data(self):
        scope = Scope({"user": {"name": "Ann"}})
        calls = []
        w = Watcher("user.name", lambda new, old: calls.append((new, old)), owner=scope)
        assert w.value == "Ann"
        scope.data["user"]["name"] = "Bob"
        flush_callbacks()
        assert calls == [("Bob", "Ann")]

    def test_invalid_path_warns(self, warnings_log):
        w = Watcher("a[0]", owner=None)
        assert w.value is None
        assert "Failed watching path" in warnings_log[0]
