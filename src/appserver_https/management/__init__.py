"""
Remote administration of WildFly and JBoss EAP through the HTTP management API.

- `ManagementEndpoint` describes where the management interface lives.
- `ManagementClient` posts single operations with httpx.
- `ManagementSession` adds the bounded-time login, serialized retried commands and
  the logout/shutdown lifecycle.
- `Command` and `parse_command` translate jboss-cli syntax into management operations.
"""

from ._client import ManagementClient, ManagementEndpoint
from ._commands import (
    Command,
    CommandResult,
    format_address,
    format_value,
    operation_text,
    parse_command,
    redact_command,
)
from ._session import LOGIN_TIMEOUT_SECONDS, SNAPSHOT_COMMAND, ManagementSession

__all__ = [
    "Command",
    "CommandResult",
    "LOGIN_TIMEOUT_SECONDS",
    "ManagementClient",
    "ManagementEndpoint",
    "ManagementSession",
    "SNAPSHOT_COMMAND",
    "format_address",
    "format_value",
    "operation_text",
    "parse_command",
    "redact_command",
]
