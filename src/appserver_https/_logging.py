"""
Process wide logging for the appserver-https console entry points.

The pipeline log is the only record of a run, so every entry point calls
`setup_logging` before importing anything else and `setup_global_exception_logging`
right after it. Errors that escape a flow are reported with the same
``"<code>: <message>"`` layout as the errors the flows raise themselves.

Environment Variables:
    APPSERVER_HTTPS_LOG_LEVEL: Root log level. Falls back to PYTHONLOGLEVEL, then INFO.
"""

import asyncio
import logging
import os
import sys
from types import TracebackType
from typing import Any

from appserver_https._exceptions import InternalError, format_error

__all__ = ["setup_logging", "setup_global_exception_logging", "LOG_FORMAT", "LOG_LEVEL_ENV"]

_LOGGER = logging.getLogger(__name__)

LOG_LEVEL_ENV = "APPSERVER_HTTPS_LOG_LEVEL"

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

# httpx logs every management request at INFO, including the URL
_CHATTY_LOGGERS = ("httpx", "httpcore")


def _configured_level() -> str:
    return (os.getenv(LOG_LEVEL_ENV) or os.getenv("PYTHONLOGLEVEL") or "INFO").upper()


def setup_logging() -> None:
    """
    Configure the root logger to write to stderr.

    Any configuration made earlier (for example by an imported library) is replaced.
    Unless the level is DEBUG, the HTTP client libraries only log warnings.
    """
    level = _configured_level()
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    if level != "DEBUG":
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


_GLOBAL_HANDLERS_INSTALLED = False


def _log_uncaught(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_traceback: TracebackType | None,
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        return
    _LOGGER.error(
        format_error(InternalError.code, f"Uncaught exception: {exc_value!r}"),
        exc_info=(exc_type, exc_value, exc_traceback),
    )


def _log_uncaught_async(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    exception = context.get("exception")
    exc_info = None
    if exception is not None:
        exc_info = (type(exception), exception, exception.__traceback__)
    _LOGGER.error(
        format_error(
            InternalError.code, f"Uncaught exception in the event loop: {context.get('message')}"
        ),
        exc_info=exc_info,
    )


def setup_global_exception_logging() -> None:
    """
    Log exceptions nobody handled, in plain code and in event loops.

    ``sys.excepthook`` is replaced, and every loop created through
    ``asyncio.new_event_loop`` from now on gets an exception handler. KeyboardInterrupt
    is not logged. Calling this more than once has no further effect.
    """
    global _GLOBAL_HANDLERS_INSTALLED
    if _GLOBAL_HANDLERS_INSTALLED:
        return
    _GLOBAL_HANDLERS_INSTALLED = True

    sys.excepthook = _log_uncaught

    new_event_loop = asyncio.new_event_loop

    def _new_event_loop_with_handler(*args: Any, **kwargs: Any) -> asyncio.AbstractEventLoop:
        loop = new_event_loop(*args, **kwargs)
        loop.set_exception_handler(_log_uncaught_async)
        return loop

    asyncio.new_event_loop = _new_event_loop_with_handler
