"""Global configuration for the reactive core.

A single module-level ``config`` object. Set attributes directly:

    from depflow import config

    config.async_mode = False        # flush synchronously (test harnesses)
    config.error_handler = my_sink   # (error, owner, info) -> None
"""

from __future__ import annotations

from typing import Callable


class Config:
    """Runtime switches consumed by the scheduler and the error sink."""

    __slots__ = (
        "async_mode",
        "error_handler",
        "warn_handler",
        "silent",
        "max_update_count",
    )

    def __init__(self) -> None:
        # Batch watcher runs into one flush per tick. When False, every
        # queued watcher flushes immediately and Dep.notify sorts by id.
        self.async_mode: bool = True
        self.error_handler: Callable[[BaseException, object, str], None] | None = None
        self.warn_handler: Callable[[str, object], None] | None = None
        # Suppress warnings that have no warn_handler.
        self.silent: bool = False
        # Re-entries of a single watcher tolerated within one flush.
        self.max_update_count: int = 100

    def snapshot(self) -> dict:
        return {name: getattr(self, name) for name in self.__slots__}

    def restore(self, values: dict) -> None:
        for name, value in values.items():
            setattr(self, name, value)

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.snapshot().items())
        return f"Config({fields})"


config = Config()
