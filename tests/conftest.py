"""Shared fixtures: every test starts with an empty queue and default config."""

import pytest

import depflow.scheduler as scheduler
import depflow.tick as tick
from depflow import config, toggle_observing


@pytest.fixture(autouse=True)
def _clean_reactive_state():
    saved = config.snapshot()
    scheduler.reset_scheduler_state()
    tick.reset_tick_state()
    yield
    config.restore(saved)
    scheduler.reset_scheduler_state()
    tick.reset_tick_state()
    toggle_observing(True)


@pytest.fixture
def sync_mode():
    """Flush synchronously, as a deterministic harness would."""
    config.async_mode = False


@pytest.fixture
def warnings_log():
    log = []
    config.warn_handler = lambda msg, owner: log.append(msg)
    return log


@pytest.fixture
def errors_log():
    log = []
    config.error_handler = lambda err, owner, info: log.append((err, info))
    return log
