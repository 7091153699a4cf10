"""Error sink and warnings.

Nothing reactive crashes the host: getter and callback failures in user
watchers, tick callbacks, and flushed watchers are routed to
``handle_error``; invalid mutations and runaway flushes go to ``warn``.
Both fall back to logging when no handler is configured.
"""

from __future__ import annotations

import logging

from depflow.config import config

logger = logging.getLogger("depflow.errors")


def handle_error(err: BaseException, owner, info: str) -> None:
    """Report ``err`` raised in ``info`` on behalf of ``owner``.

    Walks the owner chain first: every ``error_captured`` hook receives
    (err, owner, info). A hook returning False stops propagation.
    """
    scope = owner
    while scope is not None:
        hooks = getattr(scope, "hooks", None)
        for hook in hooks("error_captured") if hooks is not None else ():
            try:
                capture = hook(err, owner, info) is False
            except Exception as hook_err:
                _global_handle_error(hook_err, scope, "error_captured hook")
                continue
            if capture:
                return
        scope = getattr(scope, "parent", None)
    _global_handle_error(err, owner, info)


def _global_handle_error(err: BaseException, owner, info: str) -> None:
    if config.error_handler is not None:
        try:
            config.error_handler(err, owner, info)
            return
        except Exception as handler_err:
            # The handler itself failed; log it, then the original below.
            if handler_err is not err:
                _log_error(handler_err, owner, "config.error_handler")
    _log_error(err, owner, info)


def _log_error(err: BaseException, owner, info: str) -> None:
    logger.error("Error in %s%s", info, _format_owner(owner), exc_info=err)


def warn(msg: str, owner=None) -> None:
    """Emit a non-fatal diagnostic."""
    if config.warn_handler is not None:
        config.warn_handler(msg, owner)
    elif not config.silent:
        logger.warning("%s%s", msg, _format_owner(owner))


def invoke_with_error_handling(fn, args, owner, info: str):
    """Call fn(*args); report instead of raising. Returns None on failure."""
    try:
        return fn(*args)
    except Exception as e:
        handle_error(e, owner, info)
        return None


def _format_owner(owner) -> str:
    if owner is None:
        return ""
    name = getattr(owner, "name", None)
    return f" (found in {name or type(owner).__name__})"
