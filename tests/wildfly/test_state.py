import logging

import pytest

from appserver_https._exceptions import CommandFailure, ValidationError
from appserver_https.config import WildflyOptions
from appserver_https.management import ManagementEndpoint, ManagementSession
from appserver_https.wildfly import deployment_commands, set_deployment_state

ENDPOINT = ManagementEndpoint("localhost", 9990)


async def _login(server, retry_policy) -> ManagementSession:
    session = ManagementSession(ENDPOINT, retry_policy=retry_policy, client_factory=server.factory)
    return await session.login()


def test_standalone_commands():
    enable = deployment_commands(WildflyOptions(name="my app.war"), False)
    assert [command.text for command in enable] == [r"deploy --name=my\ app.war"]
    assert enable[0].error_code == "WILDFLY-DEPLOY-ERROR-0002"

    disable = deployment_commands(WildflyOptions(name="app.war", enabled=False), False)
    assert [command.text for command in disable] == ["undeploy --keep-content --name=app.war"]
    assert disable[0].error_code == "WILDFLY-DEPLOY-ERROR-0003"


def test_domain_commands_follow_server_groups():
    options = WildflyOptions(
        name="app.war",
        enabled_server_groups=("main-server-group", "other-server-group"),
        disabled_server_groups=("legacy",),
    )
    commands = deployment_commands(options, True)
    assert [command.text for command in commands] == [
        "/server-group=main-server-group/deployment=app.war:deploy",
        "/server-group=other-server-group/deployment=app.war:deploy",
        "/server-group=legacy/deployment=app.war:undeploy",
    ]
    assert [command.error_code for command in commands] == [
        "WILDFLY-DEPLOY-ERROR-0004",
        "WILDFLY-DEPLOY-ERROR-0004",
        "WILDFLY-DEPLOY-ERROR-0005",
    ]


@pytest.mark.asyncio
async def test_enable_on_standalone(fake_server, fast_retry):
    session = await _login(fake_server, fast_retry)
    await set_deployment_state(WildflyOptions(application="/tmp/app.war"), session)

    assert fake_server.operation_names() == ["take-snapshot", "deploy"]
    assert fake_server.operations[1]["address"] == [{"deployment": "app.war"}]
    await session.close()


@pytest.mark.asyncio
async def test_disable_keeps_content(fake_server, fast_retry):
    session = await _login(fake_server, fast_retry)
    await set_deployment_state(WildflyOptions(name="app.war", enabled=False), session)

    # A composite undeploy+remove would delete the content
    assert fake_server.operation_names() == ["take-snapshot", "undeploy"]
    await session.close()


@pytest.mark.asyncio
async def test_domain_server_groups(domain_server, fast_retry):
    session = await _login(domain_server, fast_retry)
    options = WildflyOptions(
        name="app.war", enabled_server_groups=("a",), disabled_server_groups=("b",)
    )
    await set_deployment_state(options, session)

    assert domain_server.operation_names() == ["take-snapshot", "deploy", "undeploy"]
    assert domain_server.operations[1]["address"] == [
        {"server-group": "a"},
        {"deployment": "app.war"},
    ]
    await session.close()


@pytest.mark.asyncio
async def test_domain_without_groups_only_warns(domain_server, fast_retry, caplog):
    caplog.set_level(logging.WARNING)
    session = await _login(domain_server, fast_retry)

    assert await set_deployment_state(WildflyOptions(name="app.war"), session) == []
    assert "No server groups were supplied" in caplog.text
    assert domain_server.operation_names() == ["take-snapshot"]
    await session.close()


@pytest.mark.asyncio
async def test_missing_name_is_rejected_before_any_command(fake_server, fast_retry):
    session = await _login(fake_server, fast_retry)
    with pytest.raises(ValidationError):
        await set_deployment_state(WildflyOptions(), session)
    assert fake_server.operations == []
    await session.close()


@pytest.mark.asyncio
async def test_failed_deploy_raises_with_code(fake_server, fast_retry):
    fake_server.failures["deploy"] = 10
    session = await _login(fake_server, fast_retry)

    with pytest.raises(CommandFailure) as exc_info:
        await set_deployment_state(WildflyOptions(name="app.war"), session)
    assert exc_info.value.code == "WILDFLY-DEPLOY-ERROR-0002"
    await session.close()
