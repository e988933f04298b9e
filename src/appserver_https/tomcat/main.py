"""
CLI entrypoint for ``tomcat-https``.

Reads the options from TOMCAT_HTTPS_* environment variables, installs or updates the
HTTPS connector in ``$CATALINA_BASE/conf/server.xml`` and exits with 0 on success or 2
on failure.
"""

from .._logging import setup_global_exception_logging, setup_logging  # noqa: E402

# Ensure logging is set up before any other imports
setup_logging()
# Ensure global exception logging is set up before any flow code runs
setup_global_exception_logging()

import argparse  # noqa: E402
import logging  # noqa: E402
import sys  # noqa: E402

from .._runner import EXIT_TOMCAT_HTTPS, run_flow  # noqa: E402
from ..config import TomcatHttpsOptions  # noqa: E402
from ._configurator import configure_https  # noqa: E402

_LOGGER = logging.getLogger(__name__)


def main() -> None:
    """Command-line entry point of ``tomcat-https``."""
    parser = argparse.ArgumentParser(
        description="Install or update an HTTPS connector in a Tomcat server.xml file.",
        epilog="Options are read from TOMCAT_HTTPS_* environment variables.",
    )
    parser.parse_args()
    sys.exit(
        run_flow(
            lambda: configure_https(TomcatHttpsOptions.from_environment()),
            name="Tomcat HTTPS configuration",
            exit_code=EXIT_TOMCAT_HTTPS,
        )
    )


if __name__ == "__main__":
    main()
