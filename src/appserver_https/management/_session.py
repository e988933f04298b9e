"""
ManagementSession: one logical connection to a management interface.

The session owns a ManagementClient and adds the behavior the flows depend on:

- A bounded-time login. The connect (with its retries) runs in a background task while
  the caller waits at most ``timeout`` seconds. When the caller gives up the task keeps
  running; if it later succeeds the session becomes connected and the next login fails
  with AlreadyConnected.
- Commands executed strictly one at a time through a single ``asyncio.Lock``, each
  attempt logged with its ordinal, the (redacted) command text and the JSON result.
- An explicit logout/shutdown lifecycle with precondition errors.
"""

import asyncio
import json
import logging
from collections.abc import Callable

from appserver_https._exceptions import (
    AlreadyConnected,
    CommandFailure,
    LoginError,
    LoginTimeout,
    NotConnected,
    StillConnected,
    format_error,
)
from appserver_https._retry import DEFAULT_RETRY_POLICY, RetryPolicy

from ._client import ManagementClient, ManagementEndpoint
from ._commands import Command, CommandResult, redact_command

__all__ = ["ManagementSession", "LOGIN_TIMEOUT_SECONDS", "SNAPSHOT_COMMAND"]

_LOGGER = logging.getLogger(__name__)

LOGIN_TIMEOUT_SECONDS = 120.0
"""Default number of seconds a caller waits for login to complete."""

SNAPSHOT_COMMAND = Command(
    text="/:take-snapshot",
    description="take a snapshot of the server configuration",
    expect_success=True,
    error_code="WILDFLY-DEPLOY-ERROR-0001",
    error_message="There was an error taking a snapshot of the current configuration",
)


class ManagementSession:
    """
    A serialized, retrying session against one management endpoint.

    Example:
        >>> session = ManagementSession(ManagementEndpoint("localhost", 9990, username="admin", password="pw"))
        >>> await session.login()
        >>> await session.run_command_expect_success(SNAPSHOT_COMMAND)
        >>> await session.close()
    """

    def __init__(
        self,
        endpoint: ManagementEndpoint,
        *,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        login_timeout: float = LOGIN_TIMEOUT_SECONDS,
        client_factory: Callable[[ManagementEndpoint], ManagementClient] = ManagementClient,
    ):
        """
        Initialize the session. Nothing is connected until `login` is called.

        Args:
            endpoint (ManagementEndpoint): The management interface.
            retry_policy (RetryPolicy): Policy applied to the connect, every command and the disconnect.
            login_timeout (float): Default number of seconds `login` waits for the connect.
            client_factory (Callable): Creates the connection handle; tests pass fakes here.
        """
        self._endpoint = endpoint
        self._retry = retry_policy
        self._login_timeout = login_timeout
        self._client = client_factory(endpoint)
        self._connected = False
        self._lock = asyncio.Lock()
        self._login_task: asyncio.Task[None] | None = None

    @property
    def endpoint(self) -> ManagementEndpoint:
        return self._endpoint

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_domain_mode(self) -> bool:
        """True when the connected server is a domain controller."""
        if not self._connected:
            raise NotConnected("Can not query the server mode of a session that is not connected")
        return (self._client.launch_type or "").upper() == "DOMAIN"

    # --- Login ----------------------------------------------------------------

    async def _connect_worker(self) -> None:
        async def attempt(number: int) -> None:
            if self._connected:
                raise AlreadyConnected("The session is already connected")
            _LOGGER.info(
                f"Attempt {number} to connect to {self._endpoint.display_name}."
            )
            await self._client.connect()
            self._connected = True

        try:
            await self._retry.execute(
                attempt, f"connect to {self._endpoint.display_name}"
            )
        except AlreadyConnected:
            raise
        except Exception as e:
            message = (
                f"There was an error logging into the management API on "
                f"{self._endpoint.display_name}: {e}"
            )
            _LOGGER.error(format_error(LoginError.code, message))
            raise LoginError(message) from e

    def _on_login_done(self, task: "asyncio.Task[None]") -> None:
        # Retrieve the outcome so an abandoned worker never logs "exception was never retrieved"
        if task.cancelled():
            _LOGGER.debug("The login worker was cancelled")
            return
        error = task.exception()
        if error is not None:
            _LOGGER.debug(f"The login worker finished with an error: {error}")
        else:
            _LOGGER.info(f"Logged into {self._endpoint.display_name}")

    async def login(self, timeout: float | None = None) -> "ManagementSession":
        """
        Connect to the management interface, waiting at most `timeout` seconds.

        Args:
            timeout (float | None): Seconds to wait. Defaults to the session login timeout.

        Returns:
            ManagementSession: self, to allow chaining.

        Raises:
            AlreadyConnected: If the session is connected or a previous login is still running.
            LoginTimeout: If the connect did not finish in time. The worker keeps retrying.
            LoginError: If the connect failed after all retries.
        """
        wait = self._login_timeout if timeout is None else timeout
        async with self._lock:
            if self._connected:
                raise AlreadyConnected(
                    f"The session to {self._endpoint.display_name} is already connected"
                )
            if self._login_task is not None and not self._login_task.done():
                raise AlreadyConnected(
                    f"A previous login to {self._endpoint.display_name} is still in progress"
                )

            task = asyncio.create_task(
                self._connect_worker(), name=f"login-{self._endpoint.display_name}"
            )
            task.add_done_callback(self._on_login_done)
            self._login_task = task

            try:
                await asyncio.wait_for(asyncio.shield(task), wait)
            except TimeoutError:
                message = (
                    f"Failed to log into {self._endpoint.display_name} "
                    f"within {wait} seconds"
                )
                _LOGGER.error(format_error(LoginTimeout.code, message))
                raise LoginTimeout(message) from None
        return self

    # --- Commands -------------------------------------------------------------

    async def run_command(self, command: Command) -> CommandResult:
        """
        Execute one command through the retry policy.

        A transport failure is retried. An unsuccessful server result is returned as is,
        unless ``command.expect_success`` is set, in which case it raises CommandFailure
        inside the retry loop so that it is retried as well.

        Raises:
            NotConnected: If the session is not connected.
            CommandSyntaxError: If the command text can not be parsed.
            CommandFailure: If success was required and the last attempt still failed.
            ManagementConnectionError: If the last attempt failed in transport.
        """
        async with self._lock:
            if not self._connected:
                raise NotConnected(
                    f"Can not {command.description}: the session is not connected"
                )
            operation = command.operation

            async def attempt(number: int) -> CommandResult:
                _LOGGER.info(f"Attempt {number} to {command.description}.")
                _LOGGER.info(f"Command: {command.redacted_text}")
                result = await self._client.execute(operation)
                _LOGGER.info(
                    "Result as JSON: "
                    + redact_command(json.dumps(result.response, default=str))
                )
                if command.expect_success and not result.success:
                    raise CommandFailure(
                        command.error_message
                        or f"Failed to {command.description}: {result.failure_description}",
                        command=command.redacted_text,
                        failure_description=result.failure_description,
                        code=command.error_code,
                    )
                return result

            try:
                return await self._retry.execute(attempt, command.description)
            except CommandFailure as e:
                _LOGGER.error(format_error(e.code, f"{e} ({e.failure_description})"))
                raise

    async def run_command_expect_success(self, command: Command) -> CommandResult:
        """Execute `command`, raising CommandFailure when it does not succeed."""
        if not command.expect_success:
            command = Command(
                text=command.text,
                description=command.description,
                expect_success=True,
                error_code=command.error_code,
                error_message=command.error_message,
            )
        return await self.run_command(command)

    async def take_snapshot(self) -> CommandResult:
        """Take a point-in-time snapshot of the server configuration."""
        return await self.run_command_expect_success(SNAPSHOT_COMMAND)

    # --- Lifecycle ------------------------------------------------------------

    async def logout(self) -> None:
        """
        Disconnect from the management interface.

        Raises:
            NotConnected: If the session is not connected.
        """
        async with self._lock:
            if not self._connected:
                raise NotConnected(
                    f"Can not log out of {self._endpoint.display_name}: the session is not connected"
                )

            async def attempt(number: int) -> None:
                _LOGGER.info(
                    f"Attempt {number} to disconnect from {self._endpoint.display_name}."
                )
                await self._client.disconnect()

            await self._retry.execute(
                attempt, f"disconnect from {self._endpoint.display_name}"
            )
            self._connected = False

    async def shutdown(self) -> None:
        """
        Terminate the connection handle and stop any login still running.

        Raises:
            StillConnected: If the session is connected; log out first.
        """
        async with self._lock:
            if self._connected:
                raise StillConnected(
                    f"The session to {self._endpoint.display_name} must be logged out before shutdown"
                )
            task, self._login_task = self._login_task, None
            if task is not None and not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            await self._client.terminate()
            # A cancelled worker may have connected while it was being cancelled
            self._connected = False
            _LOGGER.info(f"Shut down the session to {self._endpoint.display_name}")

    async def close(self) -> None:
        """
        Log out when connected, then shut down. Used in the ``finally`` of every flow.

        The connection handle is terminated even when logging out fails. The logout
        error is raised after that.
        """
        try:
            if self._connected:
                await self.logout()
        finally:
            async with self._lock:
                # terminate() drops whatever a failed logout left open
                self._connected = False
            await self.shutdown()
