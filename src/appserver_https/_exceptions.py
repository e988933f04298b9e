"""Custom exception types for appserver-https.

Defines the exception hierarchy shared by the Tomcat connector configurator, the
WildFly management session and the resource convergence engine. Every exception
carries a stable, greppable error code (``code``) that entry points log verbatim
so that deployment pipelines can match on it.

Exception Hierarchy:
    - Base: HttpsConvergeError (base for all errors), InternalError (extends HttpsConvergeError and RuntimeError)
    - Validation: ValidationError (extends HttpsConvergeError and ValueError), CommandSyntaxError (extends ValidationError)
    - Session: SessionError, LoginTimeout, LoginError, AlreadyConnected, NotConnected, StillConnected (all extend SessionError)
    - Remote: ManagementConnectionError, CommandFailure (extend HttpsConvergeError)
    - Document: ConnectorConfigurationError, HostAlreadyConfigured, UnsafeImplementationSwap, XmlStructureError

Usage Example:
    ```python
    from appserver_https._exceptions import HttpsConvergeError, format_error

    try:
        await configure_https(options)
    except HttpsConvergeError as e:
        logger.error(format_error(e.code, str(e)))
        raise
    ```
"""

__all__ = [
    "format_error",
    # Base exceptions
    "HttpsConvergeError",
    "InternalError",
    # Validation exceptions
    "ValidationError",
    "CommandSyntaxError",
    # Session exceptions
    "SessionError",
    "LoginTimeout",
    "LoginError",
    "AlreadyConnected",
    "NotConnected",
    "StillConnected",
    # Remote exceptions
    "ManagementConnectionError",
    "CommandFailure",
    # Document exceptions
    "ConnectorConfigurationError",
    "HostAlreadyConfigured",
    "UnsafeImplementationSwap",
    "XmlStructureError",
]


def format_error(code: str, message: str) -> str:
    """Build the log line used for every surfaced error.

    Args:
        code (str): The stable error code, e.g. ``"TOMCAT-HTTPS-ERROR-0005"``.
        message (str): The human readable description.

    Returns:
        str: ``"<code>: <message>"``.
    """
    return f"{code}: {message}"


# Base Exceptions


class HttpsConvergeError(Exception):
    """Base exception for all appserver-https errors.

    Subclasses override the class level ``code``. A specific code can also be
    passed per instance, which is how remote command failures report the code
    of the step that failed.

    Examples:
        ```python
        try:
            await set_deployment_state(options)
        except HttpsConvergeError as e:
            print(e.code)
        ```
    """

    code: str = "HTTPS-ERROR-0001"

    def __init__(self, message: str = "", *, code: str | None = None):
        """Initialize the exception.

        Args:
            message (str): The error description.
            code (str | None): Overrides the class level error code when given.
        """
        super().__init__(message)
        if code is not None:
            self.code = code


class InternalError(HttpsConvergeError, RuntimeError):
    """Internal errors indicating bugs in appserver-https itself.

    Raised when an internal invariant is broken, never for bad user input.
    """

    code = "HTTPS-ERROR-0002"


# Validation Exceptions


class ValidationError(HttpsConvergeError, ValueError):
    """Malformed or contradictory options, detected before any I/O happens.

    Inherits from ValueError so callers validating user input can catch it as
    either type. Validation errors are deterministic and are never retried.
    """

    code = "HTTPS-ERROR-0003"


class CommandSyntaxError(ValidationError):
    """A management command could not be parsed into a management operation."""

    code = "WILDFLY-ERROR-0020"


# Session Exceptions


class SessionError(HttpsConvergeError):
    """Base exception for management session errors.

    The precondition subclasses (AlreadyConnected, NotConnected,
    StillConnected) are raised before any remote call is made and are never
    retried.
    """

    code = "WILDFLY-DEPLOY-ERROR-0014"


class LoginTimeout(SessionError):
    """The login was not completed within the configured time bound.

    The background connect worker may still be running when this is raised and
    may establish the connection later. A subsequent login attempt must then be
    expected to fail with AlreadyConnected.
    """

    code = "WILDFLY-DEPLOY-ERROR-0013"


class LoginError(SessionError):
    """The connect worker exhausted its retries without connecting."""

    code = "WILDFLY-DEPLOY-ERROR-0009"


class AlreadyConnected(SessionError):
    """A login was requested while the session is connected or still connecting."""

    code = "WILDFLY-DEPLOY-ERROR-0015"


class NotConnected(SessionError):
    """A command or logout was requested on a disconnected session."""

    code = "WILDFLY-DEPLOY-ERROR-0016"


class StillConnected(SessionError):
    """A shutdown was requested before logging out."""

    code = "WILDFLY-DEPLOY-ERROR-0011"


# Remote Exceptions


class ManagementConnectionError(HttpsConvergeError):
    """A request to the management endpoint failed at the transport level.

    This wraps httpx transport errors and unexpected HTTP statuses. It is the
    failure that the retry policy is designed to absorb.
    """

    code = "WILDFLY-DEPLOY-ERROR-0018"


class CommandFailure(HttpsConvergeError):
    """A remote command ran but reported failure after all retries.

    Attributes:
        command (str): The (redacted) command text.
        failure_description (str | None): The description returned by the server.
    """

    code = "WILDFLY-DEPLOY-ERROR-0019"

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        failure_description: str | None = None,
        code: str | None = None,
    ):
        super().__init__(message, code=code)
        self.command = command
        self.failure_description = failure_description


# Document Exceptions


class ConnectorConfigurationError(HttpsConvergeError):
    """Base class for errors raised while converging a server.xml document."""

    code = "TOMCAT-HTTPS-ERROR-0002"


class HostAlreadyConfigured(ConnectorConfigurationError):
    """The requested host is already configured and overwrite was not requested.

    This is intentionally fatal. The operator must explicitly request overwrite.
    """

    code = "TOMCAT-HTTPS-ERROR-0003"


class UnsafeImplementationSwap(ConnectorConfigurationError):
    """Switching the connector implementation would leave inconsistent TLS settings.

    Raised when an attribute belonging to the previous implementation family
    (for example a JSSE ``keystoreFile``) would survive next to the material of
    the new family (for example APR ``certificateFile``). The document is left
    untouched.
    """

    code = "TOMCAT-HTTPS-ERROR-0004"


class XmlStructureError(ConnectorConfigurationError):
    """The configuration document is missing an expected anchor element."""

    code = "TOMCAT-HTTPS-ERROR-0005"
