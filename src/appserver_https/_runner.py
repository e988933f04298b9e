"""
Process boundary shared by the console entry points.

Runs one flow on a fresh event loop and maps its outcome to an exit code. Every error
surfaced here is logged as ``"<code>: <message>"`` so it can be found in pipeline logs.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from appserver_https._exceptions import HttpsConvergeError, InternalError, format_error

__all__ = ["run_flow", "EXIT_SUCCESS", "EXIT_TOMCAT_HTTPS", "EXIT_WILDFLY_HTTPS", "EXIT_WILDFLY_STATE"]

_LOGGER = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_TOMCAT_HTTPS = 2
EXIT_WILDFLY_HTTPS = 3
EXIT_WILDFLY_STATE = 4


def run_flow(flow: Callable[[], Awaitable[object]], *, name: str, exit_code: int) -> int:
    """
    Run `flow` to completion and return the process exit code.

    Args:
        flow: Creates the coroutine to run.
        name: Flow name used in the log lines.
        exit_code: The code returned when the flow fails.

    Returns:
        int: 0 on success, `exit_code` on any failure.
    """
    _LOGGER.info(f"Starting {name}")
    try:
        # new_event_loop is looked up here so the exception handler patch applies
        with asyncio.Runner(loop_factory=asyncio.new_event_loop) as runner:
            runner.run(flow())
    except HttpsConvergeError as e:
        _LOGGER.error(format_error(e.code, str(e)))
        return exit_code
    except Exception as e:
        _LOGGER.exception(format_error(InternalError.code, f"Unexpected failure in {name}: {e}"))
        return exit_code
    _LOGGER.info(f"{name} completed successfully")
    return EXIT_SUCCESS
