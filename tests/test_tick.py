"""Tests for next_tick() and the callback drain."""

import asyncio

import pytest

from depflow import Watcher, config, flush_callbacks, next_tick, reactive
from depflow.tick import pending_count


class TestDrain:
    def test_callbacks_wait_for_the_drain(self):
        log = []
        next_tick(lambda: log.append(1))
        next_tick(lambda: log.append(2))
        assert log == []
        assert pending_count() == 2
        flush_callbacks()
        assert log == [1, 2]
        assert pending_count() == 0

    def test_callbacks_queued_while_draining_wait_for_next_drain(self):
        log = []

        def outer():
            log.append("outer")
            next_tick(lambda: log.append("inner"))

        next_tick(outer)
        flush_callbacks()
        assert log == ["outer"]
        flush_callbacks()
        assert log == ["outer", "inner"]

    def test_errors_go_to_the_sink(self, errors_log):
        log = []

        def boom():
            raise KeyError("nope")

        next_tick(boom)
        next_tick(lambda: log.append("after"))
        flush_callbacks()
        assert log == ["after"]
        err, info = errors_log[0]
        assert isinstance(err, KeyError)
        assert info == "next_tick"

    def test_awaitable_needs_a_running_loop(self):
        with pytest.raises(RuntimeError):
            next_tick()


class TestEventLoop:
    def test_drain_runs_on_the_loop(self):
        log = []

        async def main():
            next_tick(lambda: log.append("tick"))
            assert log == []
            await asyncio.sleep(0)
            return list(log)

        assert asyncio.run(main()) == ["tick"]

    def test_await_next_tick_sees_applied_updates(self):
        state = reactive({"a": 1})
        calls = []
        w = Watcher(lambda: state["a"] * 2, lambda new, old: calls.append((new, old)))

        async def main():
            state["a"] = 2
            assert calls == []
            await next_tick()
            return w.value

        assert asyncio.run(main()) == 4
        assert calls == [(4, 2)]

    def test_pending_drain_from_outside_loop_is_picked_up(self):
        state = reactive({"a": 1})
        calls = []
        Watcher(lambda: state["a"], lambda new, old: calls.append(new))
        state["a"] = 2  # no loop running: the flush waits

        async def main():
            await next_tick()

        asyncio.run(main())
        assert calls == [2]

    def test_one_flush_per_tick(self):
        state = reactive({"a": 0})
        runs = []
        Watcher(lambda: runs.append(state["a"]))
        runs.clear()

        async def main():
            for i in range(1, 6):
                state["a"] = i
            await next_tick()

        asyncio.run(main())
        assert runs == [5]

    def test_sync_mode_needs_no_loop(self):
        config.async_mode = False
        state = reactive({"a": 1})
        calls = []
        Watcher(lambda: state["a"], lambda new, old: calls.append(new))
        state["a"] = 2
        assert calls == [2]
        assert pending_count() == 0
