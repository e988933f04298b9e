"""
WildFly and JBoss EAP flows driven through a ManagementSession.

- `converge_resources` converges the Elytron key-store -> key-manager ->
  server-ssl-context chain.
- `configure_https` builds the chain (and the keystore file) from WildflyHttpsOptions.
- `set_deployment_state` enables or disables a deployment.
"""

from ._convergence import (
    RELOAD_COMMAND,
    ConvergenceReport,
    ResourceAction,
    build_resource_chain,
    configure_https,
    converge_resource,
    converge_resources,
    resolve_server_path,
)
from ._resources import (
    KEY_MANAGER_NAME,
    KEY_STORE_NAME,
    SERVER_SSL_CONTEXT_NAME,
    RemoteResource,
    ResourceChain,
    ResourceKind,
    key_manager,
    key_store,
    server_ssl_context,
)
from ._state import deployment_commands, set_deployment_state

__all__ = [
    "ConvergenceReport",
    "KEY_MANAGER_NAME",
    "KEY_STORE_NAME",
    "RELOAD_COMMAND",
    "RemoteResource",
    "ResourceAction",
    "ResourceChain",
    "ResourceKind",
    "SERVER_SSL_CONTEXT_NAME",
    "build_resource_chain",
    "configure_https",
    "converge_resource",
    "converge_resources",
    "deployment_commands",
    "key_manager",
    "key_store",
    "resolve_server_path",
    "server_ssl_context",
    "set_deployment_state",
]
