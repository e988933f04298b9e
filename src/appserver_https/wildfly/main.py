"""
CLI entrypoints for the WildFly / JBoss EAP flows.

``wildfly-https`` configures the Elytron HTTPS chain and ``wildfly-state`` enables or
disables a deployment. Both read their options from environment variables (see
`appserver_https.config._wildfly`), always log out and shut the session down, and exit
with 0 on success or a flow specific code on failure.
"""

from .._logging import setup_global_exception_logging, setup_logging  # noqa: E402

# Ensure logging is set up before any other imports
setup_logging()
# Ensure global exception logging is set up before any flow code runs
setup_global_exception_logging()

import argparse  # noqa: E402
import logging  # noqa: E402
import sys  # noqa: E402

from .._runner import EXIT_WILDFLY_HTTPS, EXIT_WILDFLY_STATE, run_flow  # noqa: E402
from ..config import WildflyHttpsOptions, WildflyOptions  # noqa: E402
from ..management import ManagementSession  # noqa: E402
from ._convergence import configure_https  # noqa: E402
from ._state import set_deployment_state  # noqa: E402

_LOGGER = logging.getLogger(__name__)


def _session_for(options: WildflyOptions) -> ManagementSession:
    return ManagementSession(options.endpoint, login_timeout=options.login_timeout)


async def _close(session: ManagementSession) -> None:
    try:
        await session.close()
    except Exception as e:
        # The outcome of the flow is reported, not the close failure
        _LOGGER.error(
            f"Failed to close the session to {session.endpoint.display_name}: {e!r}",
            exc_info=True,
        )


async def run_https(options: WildflyHttpsOptions) -> None:
    """Log in, configure HTTPS and always close the session."""
    options.validate()
    session = _session_for(options)
    try:
        await session.login()
        await configure_https(options, session)
    finally:
        await _close(session)


async def run_state(options: WildflyOptions) -> None:
    """Log in, set the deployment state and always close the session."""
    options.validate_deployment()
    session = _session_for(options)
    try:
        await session.login()
        await set_deployment_state(options, session)
    finally:
        await _close(session)


def _parse_args(description: str) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=description,
        epilog="Options are read from WILDFLY_* environment variables.",
    )
    return parser.parse_args()


def https_main() -> None:
    """Command-line entry point of ``wildfly-https``."""
    _parse_args("Configure HTTPS on a WildFly or JBoss EAP server.")
    sys.exit(
        run_flow(
            lambda: run_https(WildflyHttpsOptions.from_environment()),
            name="WildFly HTTPS configuration",
            exit_code=EXIT_WILDFLY_HTTPS,
        )
    )


def state_main() -> None:
    """Command-line entry point of ``wildfly-state``."""
    _parse_args("Enable or disable a deployment on a WildFly or JBoss EAP server.")
    sys.exit(
        run_flow(
            lambda: run_state(WildflyOptions.from_environment()),
            name="WildFly deployment state",
            exit_code=EXIT_WILDFLY_STATE,
        )
    )


if __name__ == "__main__":
    https_main()
