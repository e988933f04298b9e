"""Enable or disable an existing deployment on a standalone server or in server groups."""

import logging

from appserver_https.config import WildflyOptions
from appserver_https.management import Command, ManagementSession, operation_text

__all__ = ["deployment_commands", "set_deployment_state"]

_LOGGER = logging.getLogger(__name__)


def _cli_escape(name: str) -> str:
    return "".join(f"\\{c}" if c.isspace() or c in "\\\"'" else c for c in name)


def deployment_commands(options: WildflyOptions, is_domain_mode: bool) -> list[Command]:
    """
    Build the commands that put the deployment into the desired state.

    In domain mode the deployment is deployed to every enabled server group and
    undeployed from every disabled one. A standalone server is deployed, or undeployed
    while keeping its content, depending on ``options.enabled``.
    """
    name = options.package_name
    if is_domain_mode:
        commands = [
            Command(
                text=operation_text(
                    [("server-group", group), ("deployment", name)], "deploy"
                ),
                description=f"enable the deployment {name} in the server group {group}",
                expect_success=True,
                error_code="WILDFLY-DEPLOY-ERROR-0004",
                error_message=f"There was an error enabling the deployment {name} in {group}",
            )
            for group in options.enabled_server_groups
        ]
        commands += [
            Command(
                text=operation_text(
                    [("server-group", group), ("deployment", name)], "undeploy"
                ),
                description=f"disable the deployment {name} in the server group {group}",
                expect_success=True,
                error_code="WILDFLY-DEPLOY-ERROR-0005",
                error_message=f"There was an error disabling the deployment {name} in {group}",
            )
            for group in options.disabled_server_groups
        ]
        return commands

    if options.enabled:
        return [
            Command(
                text=f"deploy --name={_cli_escape(name)}",
                description=f"enable the deployment {name}",
                expect_success=True,
                error_code="WILDFLY-DEPLOY-ERROR-0002",
                error_message=f"There was an error enabling the deployment {name}",
            )
        ]
    return [
        Command(
            text=f"undeploy --keep-content --name={_cli_escape(name)}",
            description=f"disable the deployment {name}",
            expect_success=True,
            error_code="WILDFLY-DEPLOY-ERROR-0003",
            error_message=f"There was an error disabling the deployment {name}",
        )
    ]


async def set_deployment_state(
    options: WildflyOptions, session: ManagementSession
) -> list[Command]:
    """
    Enable or disable the deployment named by `options`.

    Args:
        options (WildflyOptions): The deployment and server group options.
        session (ManagementSession): A logged in session.

    Returns:
        list[Command]: The state changing commands that were executed.

    Raises:
        ValidationError: If no deployment name can be determined.
        CommandFailure: If the snapshot or a state change failed.
    """
    options.validate_deployment()
    domain = session.is_domain_mode
    options.warn_about_mismatch(domain)

    commands = deployment_commands(options, domain)
    if domain and not commands:
        _LOGGER.warning(
            f"No server groups were supplied, the deployment {options.package_name} is unchanged"
        )

    await session.take_snapshot()
    for command in commands:
        await session.run_command_expect_success(command)
    return commands
