"""
Asynchronous client for the WildFly / JBoss EAP HTTP management API.

The client posts management-model operations as JSON to ``/management`` using HTTP
digest authentication. It holds no session state beyond the open ``httpx.AsyncClient``;
ManagementSession adds the login watchdog, the mutex and the retries on top.
"""

import dataclasses
import json
import logging
from typing import Any

import httpx

from appserver_https._exceptions import ManagementConnectionError

from ._commands import CommandResult

__all__ = ["ManagementEndpoint", "ManagementClient"]

_LOGGER = logging.getLogger(__name__)

_TLS_PROTOCOLS = frozenset({"remote+https", "https-remoting", "https"})

_LAUNCH_TYPE_OPERATION = {"operation": "read-attribute", "address": [], "name": "launch-type"}


@dataclasses.dataclass(frozen=True)
class ManagementEndpoint:
    """
    Where and how to reach a management interface.

    Attributes:
        host (str): Host name or IP address of the controller.
        port (int): Management port, usually 9990.
        protocol (str): The jboss-cli protocol name, e.g. "remote+http" or "remote+https".
        username (str | None): Management user, or None for an unsecured interface.
        password (str | None): Password of the management user.
    """

    host: str
    port: int = 9990
    protocol: str = "remote+http"
    username: str | None = None
    password: str | None = dataclasses.field(default=None, repr=False)

    @property
    def scheme(self) -> str:
        return "https" if self.protocol.lower() in _TLS_PROTOCOLS else "http"

    @property
    def url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host and not self.host.startswith("[") else self.host
        return f"{self.scheme}://{host}:{self.port}/management"

    @property
    def display_name(self) -> str:
        return f"{self.host}:{self.port} ({self.protocol})"


class ManagementClient:
    """
    One HTTP connection handle to a management interface.

    Example:
        >>> client = ManagementClient(ManagementEndpoint("localhost", 9990))
        >>> await client.connect()
        >>> result = await client.execute({"operation": "read-resource", "address": []})
        >>> await client.disconnect()
    """

    def __init__(
        self,
        endpoint: ManagementEndpoint,
        *,
        timeout: float = 60.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client. No connection is made until `connect` is called.

        Args:
            endpoint (ManagementEndpoint): The management interface to talk to.
            timeout (float): Timeout in seconds of a single HTTP request.
            verify (bool): Verify the server certificate for TLS protocols.
            transport (httpx.AsyncBaseTransport | None): Custom transport, used by tests.
        """
        self._endpoint = endpoint
        self._timeout = timeout
        self._verify = verify
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._launch_type: str | None = None

    @property
    def endpoint(self) -> ManagementEndpoint:
        return self._endpoint

    @property
    def is_open(self) -> bool:
        return self._http is not None

    @property
    def launch_type(self) -> str | None:
        """The launch type reported by the server during `connect` ("STANDALONE" or "DOMAIN")."""
        return self._launch_type

    def _create_http_client(self) -> httpx.AsyncClient:
        auth = None
        if self._endpoint.username:
            auth = httpx.DigestAuth(self._endpoint.username, self._endpoint.password or "")
        return httpx.AsyncClient(
            auth=auth,
            timeout=self._timeout,
            verify=self._verify,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    async def connect(self) -> None:
        """
        Open the HTTP client and verify reachability and credentials.

        Raises:
            ManagementConnectionError: If the server can not be reached, rejects the
                credentials or fails to report its launch type.
        """
        if self._http is None:
            self._http = self._create_http_client()
        try:
            result = await self.execute(_LAUNCH_TYPE_OPERATION)
            if not result.success:
                raise ManagementConnectionError(
                    f"Failed to read the launch type from {self._endpoint.display_name}: "
                    f"{result.failure_description}"
                )
        except Exception:
            await self.terminate()
            raise
        self._launch_type = str(result.result).upper()
        _LOGGER.info(
            f"Connected to {self._endpoint.display_name}, launch type {self._launch_type}"
        )

    async def execute(self, operation: dict[str, Any]) -> CommandResult:
        """
        Post one operation and return its outcome.

        A server side failure is not an exception: it is reported through
        ``CommandResult.success``. WildFly answers failed operations with HTTP 500
        and a JSON body describing the failure.

        Raises:
            ManagementConnectionError: On transport failures, authentication failures and
                responses that are not management results.
        """
        if self._http is None:
            raise ManagementConnectionError(
                f"The connection to {self._endpoint.display_name} is not open"
            )
        try:
            response = await self._http.post(self._endpoint.url, json=operation)
        except httpx.HTTPError as e:
            raise ManagementConnectionError(
                f"Request to {self._endpoint.display_name} failed: {e}"
            ) from e

        if response.status_code in (401, 403):
            raise ManagementConnectionError(
                f"Authentication to {self._endpoint.display_name} failed "
                f"with HTTP {response.status_code}"
            )
        try:
            body = response.json()
        except json.JSONDecodeError:
            body = None
        if not isinstance(body, dict) or "outcome" not in body:
            raise ManagementConnectionError(
                f"Unexpected HTTP {response.status_code} response from "
                f"{self._endpoint.display_name}: {response.text[:200]}"
            )
        return CommandResult.from_response(body)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._http is None:
            raise ManagementConnectionError(
                f"The connection to {self._endpoint.display_name} is not open"
            )
        http, self._http = self._http, None
        await http.aclose()
        _LOGGER.info(f"Disconnected from {self._endpoint.display_name}")

    async def terminate(self) -> None:
        """Release the HTTP client unconditionally. Never raises."""
        http, self._http = self._http, None
        self._launch_type = None
        if http is None:
            return
        try:
            await http.aclose()
        except Exception as e:
            _LOGGER.warning(f"Ignoring failure while closing the HTTP client: {e}")
