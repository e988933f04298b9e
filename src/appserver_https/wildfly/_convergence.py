"""
Idempotent convergence of the Elytron HTTPS resource chain.

Each run goes through the same steps:

1. Take a snapshot of the server configuration.
2. For the key-store, the key-manager and the server-ssl-context, in that order, read
   the resource. When the read fails the resource is absent and is added with its full
   attribute set. Otherwise each managed attribute is written once.
3. Reload the server so the changes take effect.

Any failure aborts every later step. Nothing is rolled back; the snapshot is the
operator's recovery point.
"""

import dataclasses
import enum
import logging
from pathlib import Path

from appserver_https import _material
from appserver_https._exceptions import ValidationError
from appserver_https.config import WildflyHttpsOptions
from appserver_https.management import Command, ManagementSession, operation_text

from ._resources import (
    KEY_MANAGER_NAME,
    KEY_STORE_NAME,
    SERVER_SSL_CONTEXT_NAME,
    RemoteResource,
    ResourceChain,
    key_manager,
    key_store,
    server_ssl_context,
)

__all__ = [
    "ResourceAction",
    "ConvergenceReport",
    "RELOAD_COMMAND",
    "converge_resource",
    "converge_resources",
    "build_resource_chain",
    "resolve_server_path",
    "configure_https",
]

_LOGGER = logging.getLogger(__name__)

RELOAD_COMMAND = Command(
    text="reload",
    description="reload the server",
    expect_success=True,
    error_code="WILDFLY-HTTPS-ERROR-0008",
    error_message="There was an error reloading the server configuration",
)


class ResourceAction(str, enum.Enum):
    ADDED = "added"
    UPDATED = "updated"


@dataclasses.dataclass
class ConvergenceReport:
    """What a convergence run did, in order."""

    actions: list[tuple[RemoteResource, ResourceAction]] = dataclasses.field(
        default_factory=list
    )
    reloaded: bool = False

    def action_for(self, name: str) -> ResourceAction | None:
        for resource, action in self.actions:
            if resource.name == name:
                return action
        return None


async def converge_resource(
    session: ManagementSession, resource: RemoteResource
) -> ResourceAction:
    """Add `resource` when it is absent, otherwise write each of its managed attributes."""
    read = await session.run_command(resource.read_command())
    if not read.success:
        _LOGGER.info(f"The {resource.kind.label} {resource.name} does not exist, adding it")
        await session.run_command_expect_success(resource.add_command())
        return ResourceAction.ADDED

    _LOGGER.info(f"The {resource.kind.label} {resource.name} exists, updating it")
    for command in resource.write_commands():
        await session.run_command_expect_success(command)
    return ResourceAction.UPDATED


async def converge_resources(
    session: ManagementSession, chain: ResourceChain, *, reload: bool = True
) -> ConvergenceReport:
    """
    Converge the whole chain: snapshot, store, manager, context, reload.

    Args:
        session (ManagementSession): A logged in session.
        chain (ResourceChain): The desired resources.
        reload (bool): Reload the server after the resources converged.

    Returns:
        ConvergenceReport: The action taken for each resource.

    Raises:
        NotConnected: If the session is not logged in.
        CommandFailure: If any step failed after its retries. Later steps are not run.
    """
    report = ConvergenceReport()
    await session.take_snapshot()
    for resource in chain:
        report.actions.append((resource, await converge_resource(session, resource)))
    if reload:
        await session.run_command_expect_success(RELOAD_COMMAND)
        report.reloaded = True
    return report


def build_resource_chain(options: WildflyHttpsOptions) -> ResourceChain:
    """Build the desired chain for `options`."""
    password = options.effective_keystore_password
    return ResourceChain(
        key_store=key_store(
            KEY_STORE_NAME,
            path=options.keystore_path,
            password=password,
            relative_to=options.relative_to or None,
        ),
        key_manager=key_manager(KEY_MANAGER_NAME, key_store=KEY_STORE_NAME, password=password),
        server_ssl_context=server_ssl_context(
            SERVER_SSL_CONTEXT_NAME, key_manager=KEY_MANAGER_NAME
        ),
    )


async def resolve_server_path(session: ManagementSession, name: str) -> str:
    """Resolve a named server path such as ``jboss.server.config.dir`` to a directory."""
    result = await session.run_command_expect_success(
        Command(
            text=operation_text([("path", name)], "read-attribute", {"name": "path"}),
            description=f"read the path {name}",
            error_code="WILDFLY-HTTPS-ERROR-0004",
            error_message=f"There was an error reading the server path {name}",
        )
    )
    return str(result.result)


async def _write_keystore(session: ManagementSession, options: WildflyHttpsOptions) -> None:
    if options.relative_to:
        directory = await resolve_server_path(session, options.relative_to)
        target = Path(directory) / options.keystore_name
    else:
        target = Path(options.keystore_name)

    data = _material.build_pkcs12(
        options.private_key or "",
        options.certificate or "",
        options.effective_keystore_password,
        private_key_password=options.private_key_password,
    )
    # The management controller runs on this host, so its config directory is local
    await _material.write_material_file(target, data)


async def configure_https(
    options: WildflyHttpsOptions, session: ManagementSession
) -> ConvergenceReport:
    """
    Configure HTTPS on a standalone server.

    Writes the keystore when PEM material is supplied, then converges the Elytron chain.

    Raises:
        ValidationError: If the options are invalid or the server is a domain controller.
        CommandFailure: If a management step failed.
    """
    options.validate()
    _LOGGER.info(f"Configuring HTTPS with options {options.redacted()}")
    chain = build_resource_chain(options)

    if session.is_domain_mode:
        raise ValidationError(
            "Configuring HTTPS on a domain controller is not supported, "
            "run against a standalone server"
        )

    if options.uses_pem:
        await _write_keystore(session, options)

    report = await converge_resources(session, chain)
    for resource, action in report.actions:
        _LOGGER.info(f"The {resource.kind.label} {resource.name} was {action.value}")
    return report
