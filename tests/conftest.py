import asyncio
import datetime
from typing import Any

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from appserver_https._exceptions import ManagementConnectionError
from appserver_https._retry import RetryPolicy
from appserver_https.management import CommandResult


def _make_pem_pair(common_name: str) -> tuple[str, str]:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    certificate_pem = certificate.public_bytes(serialization.Encoding.PEM).decode()
    return key_pem, certificate_pem


@pytest.fixture(scope="session")
def pem_pair() -> tuple[str, str]:
    """A PEM (private key, certificate) pair for localhost."""
    return _make_pem_pair("localhost")


@pytest.fixture(scope="session")
def other_pem_pair() -> tuple[str, str]:
    return _make_pem_pair("example.com")


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """A retry policy that never sleeps."""
    return RetryPolicy(max_attempts=3, initial_delay=0.0, max_delay=0.0)


class FakeManagementServer:
    """
    In-memory stand-in for a WildFly management interface.

    Keeps Elytron resources keyed by address, records every operation, and can be told
    to fail connects or specific operations a number of times.
    """

    def __init__(self, launch_type: str = "STANDALONE"):
        self.launch_type = launch_type
        self.resources: dict[tuple[tuple[str, str], ...], dict[str, Any]] = {}
        self.paths = {"jboss.server.config.dir": "/opt/wildfly/standalone/configuration"}
        self.operations: list[dict[str, Any]] = []
        self.value_changes = 0
        self.connect_calls = 0
        self.connect_failures = 0
        self.disconnect_failures = 0
        self.connect_delay = 0.0
        self.failures: dict[str, int] = {}
        self.transport_failures: dict[str, int] = {}
        self.clients: list[FakeManagementClient] = []

    def factory(self, endpoint) -> "FakeManagementClient":
        client = FakeManagementClient(self, endpoint)
        self.clients.append(client)
        return client

    def operation_names(self) -> list[str]:
        return [op["operation"] for op in self.operations]

    @staticmethod
    def _address(operation: dict[str, Any]) -> tuple[tuple[str, str], ...]:
        return tuple(next(iter(node.items())) for node in operation.get("address", []))

    def handle(self, operation: dict[str, Any]) -> CommandResult:
        self.operations.append(operation)
        name = operation["operation"]

        if self.transport_failures.get(name, 0) > 0:
            self.transport_failures[name] -= 1
            raise ManagementConnectionError(f"simulated transport failure in {name}")
        if self.failures.get(name, 0) > 0:
            self.failures[name] -= 1
            return self._failed(f"simulated failure of {name}")

        address = self._address(operation)
        params = {k: v for k, v in operation.items() if k not in ("operation", "address")}

        if name == "take-snapshot":
            return self._success("/opt/wildfly/standalone/configuration/standalone_xml_history/snapshot/1.xml")
        if name in ("reload", "deploy", "undeploy", "composite"):
            return self._success(None)
        if name == "read-attribute" and address and address[0][0] == "path":
            path = self.paths.get(address[0][1])
            return self._success(path) if path else self._failed("path not found")
        if name == "read-attribute":
            return self._success(self.launch_type)
        if name == "read-resource":
            if address in self.resources:
                return self._success(dict(self.resources[address]))
            return self._failed(f"WFLYCTL0216: Management resource '{address}' not found")
        if name == "add":
            if address in self.resources:
                return self._failed("WFLYCTL0212: Duplicate resource")
            self.resources[address] = params
            return self._success(None)
        if name == "write-attribute":
            if address not in self.resources:
                return self._failed("not found")
            resource = self.resources[address]
            if resource.get(params["name"]) != params["value"]:
                self.value_changes += 1
            resource[params["name"]] = params["value"]
            return self._success(None)
        if name == "undefine-attribute":
            if address not in self.resources:
                return self._failed("not found")
            if self.resources[address].pop(params["name"], None) is not None:
                self.value_changes += 1
            return self._success(None)
        return self._failed(f"unknown operation {name}")

    @staticmethod
    def _success(result: Any) -> CommandResult:
        return CommandResult.from_response({"outcome": "success", "result": result})

    @staticmethod
    def _failed(description: str) -> CommandResult:
        return CommandResult.from_response(
            {"outcome": "failed", "failure-description": description}
        )


class FakeManagementClient:
    def __init__(self, server: FakeManagementServer, endpoint):
        self.server = server
        self.endpoint = endpoint
        self.open = False
        self.launch_type = None
        self.terminated = 0

    async def connect(self) -> None:
        self.server.connect_calls += 1
        if self.server.connect_delay:
            await asyncio.sleep(self.server.connect_delay)
        if self.server.connect_failures > 0:
            self.server.connect_failures -= 1
            raise ManagementConnectionError("connection refused")
        self.open = True
        self.launch_type = self.server.launch_type

    async def execute(self, operation: dict[str, Any]) -> CommandResult:
        if not self.open:
            raise ManagementConnectionError("not open")
        return self.server.handle(operation)

    async def disconnect(self) -> None:
        if self.server.disconnect_failures > 0:
            self.server.disconnect_failures -= 1
            raise ManagementConnectionError("connection reset during logout")
        self.open = False

    async def terminate(self) -> None:
        self.open = False
        self.launch_type = None
        self.terminated += 1


@pytest.fixture
def fake_server() -> FakeManagementServer:
    return FakeManagementServer()


@pytest.fixture
def domain_server() -> FakeManagementServer:
    return FakeManagementServer(launch_type="DOMAIN")


SERVER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<!-- Licensed to the Apache Software Foundation (ASF) -->
<Server port="8005" shutdown="SHUTDOWN">
  <Listener className="org.apache.catalina.startup.VersionLoggerListener" />
  <Service name="Catalina">
    <!-- The plain HTTP connector -->
    <Connector port="8080" protocol="HTTP/1.1"
               connectionTimeout="20000"
               redirectPort="8443" />
    <Connector port="8443" maxThreads="150" connectionTimeout="20000" compression="on" />
    <Engine name="Catalina" defaultHost="localhost">
      <Host name="localhost" appBase="webapps" unpackWARs="true" autoDeploy="true" />
    </Engine>
  </Service>
</Server>
"""


@pytest.fixture
def catalina_base(tmp_path):
    """A Tomcat base directory holding a typical conf/server.xml."""
    conf = tmp_path / "conf"
    conf.mkdir()
    (conf / "server.xml").write_text(SERVER_XML, encoding="utf-8")
    return tmp_path


@pytest.fixture
def server_xml() -> str:
    return SERVER_XML
