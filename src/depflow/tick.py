"""Defer callbacks to one drain on the event loop.

Callbacks queued with ``next_tick`` accumulate in a FIFO. The first one
requests a single ``loop.call_soon`` drain; later ones ride along. The
drain copies and clears the FIFO before running it, so callbacks queued
while draining wait for the next drain instead of extending this one.

Outside a running asyncio loop the drain stays pending until either a
``next_tick`` call is made from inside a loop, or ``flush_callbacks()``
is called explicitly (synchronous harnesses).
"""

from __future__ import annotations

import asyncio
from typing import Callable

from depflow.errors import handle_error

_callbacks: list[Callable[[], None]] = []
_pending: bool = False

# The scheduled drain, if one has actually been handed to a loop.
_handle: asyncio.Handle | None = None
_loop: asyncio.AbstractEventLoop | None = None


def flush_callbacks() -> None:
    """Run every queued callback now, in order."""
    global _pending, _handle, _loop
    if _handle is not None:
        _handle.cancel()
    _pending = False
    _handle = None
    _loop = None
    copies = _callbacks[:]
    _callbacks.clear()
    for cb in copies:
        cb()


def _request_drain() -> None:
    global _handle, _loop
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    _loop = loop
    _handle = loop.call_soon(flush_callbacks)


def _drain_unscheduled() -> bool:
    return _handle is None or _loop is None or _loop.is_closed()


def next_tick(callback: Callable[[], None] | None = None) -> asyncio.Future | None:
    """Run callback on the next drain, or return a future for that drain.

    Usage:
        state["count"] += 1
        await next_tick()   # watchers affected by the change have re-run

    Exceptions from callback go to the error sink, never to the drain.
    """
    global _pending
    future = None
    if callback is None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError(
                "next_tick() without a callback must be awaited inside a running event loop"
            ) from None
        future = loop.create_future()

        def entry() -> None:
            if not future.done():
                future.set_result(None)
    else:

        def entry() -> None:
            try:
                callback()
            except Exception as e:
                handle_error(e, None, "next_tick")

    _callbacks.append(entry)
    if not _pending:
        _pending = True
        _request_drain()
    elif _drain_unscheduled():
        _request_drain()
    return future


def pending_count() -> int:
    """Number of callbacks waiting for the next drain."""
    return len(_callbacks)


def reset_tick_state() -> None:
    """Drop every queued callback without running it."""
    global _pending, _handle, _loop
    if _handle is not None:
        _handle.cancel()
    _callbacks.clear()
    _pending = False
    _handle = None
    _loop = None
