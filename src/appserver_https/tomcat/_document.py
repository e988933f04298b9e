"""
Typed views over the server.xml element tree.

The views wrap ElementTree elements rather than copying them, so every change made
through a view is a change to the document. Only the elements this package manages
get a view: Server, Service, Connector, SSLHostConfig and Certificate.
"""

import logging
import xml.etree.ElementTree as ET

from appserver_https._exceptions import XmlStructureError
from appserver_https.config import DEFAULT_HOST_NAME, TomcatImplementation

from ._xml import (
    DEFAULT_ENCODING,
    decode_xml,
    detect_indent,
    document_prolog,
    find_child,
    insert_child,
    parse_xml,
    serialize_xml,
)

__all__ = ["ServerDocument", "ServiceNode", "ConnectorNode", "PROTOCOL_CLASSES"]

_LOGGER = logging.getLogger(__name__)

PROTOCOL_CLASSES = {
    TomcatImplementation.BIO: "org.apache.coyote.http11.Http11Protocol",
    TomcatImplementation.NIO: "org.apache.coyote.http11.Http11NioProtocol",
    TomcatImplementation.APR: "org.apache.coyote.http11.Http11AprProtocol",
}
"""The connector ``protocol`` attribute value selecting each implementation."""

_IMPLEMENTATIONS_BY_CLASS = {value: key for key, value in PROTOCOL_CLASSES.items()}

# Element depths in server.xml: Server/Service/Connector/SSLHostConfig/Certificate
_SERVICE_DEPTH = 1
_CONNECTOR_DEPTH = 2
_HOST_DEPTH = 3


class ConnectorNode:
    """A ``<Connector>`` element, unique by port within its service."""

    def __init__(self, element: ET.Element, indent: str):
        self.element = element
        self._indent = indent

    @property
    def port(self) -> str:
        return self.element.get("port", "")

    def get(self, name: str) -> str | None:
        return self.element.get(name)

    def set(self, name: str, value: str) -> None:
        self.element.set(name, value)

    @property
    def implementation(self) -> TomcatImplementation | None:
        """The implementation selected by the ``protocol`` attribute, when it names one."""
        return _IMPLEMENTATIONS_BY_CLASS.get(self.element.get("protocol", ""))

    @property
    def default_host_name(self) -> str:
        return self.element.get("defaultSSLHostConfigName", DEFAULT_HOST_NAME)

    def host_configs(self) -> list[ET.Element]:
        return [child for child in self.element if child.tag == "SSLHostConfig"]

    def find_host_config(self, host_name: str) -> ET.Element | None:
        """
        Find the SSLHostConfig for `host_name`.

        Tomcat treats an SSLHostConfig without a hostName as the default host, so that
        element is returned for the ``_default_`` name.
        """
        for host in self.host_configs():
            name = host.get("hostName", DEFAULT_HOST_NAME)
            if name.lower() == host_name.lower():
                return host
        return None

    def add_host_config(self, host_name: str) -> ET.Element:
        host = ET.Element("SSLHostConfig", {"hostName": host_name})
        return insert_child(self.element, host, depth=_CONNECTOR_DEPTH, indent=self._indent)

    def certificates(self, host: ET.Element) -> list[ET.Element]:
        return [child for child in host if child.tag == "Certificate"]

    def certificate(self, host: ET.Element) -> ET.Element:
        """Return the first Certificate of `host`, creating it when there is none."""
        existing = self.certificates(host)
        if existing:
            return existing[0]
        return insert_child(
            host, ET.Element("Certificate"), depth=_HOST_DEPTH, indent=self._indent
        )


class ServiceNode:
    """A ``<Service>`` element, unique by name."""

    def __init__(self, element: ET.Element, indent: str):
        self.element = element
        self._indent = indent

    @property
    def name(self) -> str:
        return self.element.get("name", "")

    def connectors(self) -> list[ConnectorNode]:
        return [
            ConnectorNode(child, self._indent)
            for child in self.element
            if child.tag == "Connector"
        ]

    def find_connector(self, port: int | str) -> ConnectorNode | None:
        element = find_child(self.element, "Connector", {"port": str(port)})
        return None if element is None else ConnectorNode(element, self._indent)

    def connector(self, port: int | str) -> tuple[ConnectorNode, bool]:
        """Find the connector listening on `port`, or create one with only the port set."""
        existing = self.find_connector(port)
        if existing is not None:
            return existing, False

        # Connectors come before the Engine
        children = list(self.element)
        connector_positions = [i for i, child in enumerate(children) if child.tag == "Connector"]
        engine_positions = [i for i, child in enumerate(children) if child.tag == "Engine"]
        if connector_positions:
            index: int | None = connector_positions[-1] + 1
        elif engine_positions:
            index = engine_positions[0]
        else:
            index = None

        element = ET.Element("Connector", {"port": str(port)})
        insert_child(self.element, element, depth=_SERVICE_DEPTH, indent=self._indent, index=index)
        _LOGGER.info(f"Created a Connector on port {port} in the service {self.name}")
        return ConnectorNode(element, self._indent), True


class ServerDocument:
    """
    The server.xml document rooted at the ``<Server>`` element.

    Raises:
        XmlStructureError: If the root element is not ``<Server>``.
    """

    def __init__(self, root: ET.Element, prolog: str = "", encoding: str = DEFAULT_ENCODING):
        if root.tag != "Server":
            raise XmlStructureError(
                f"The root element of the configuration document must be <Server>, not <{root.tag}>"
            )
        self.root = root
        self.prolog = prolog
        self.encoding = encoding
        self.indent = detect_indent(root)

    @classmethod
    def parse(cls, text: str, encoding: str = DEFAULT_ENCODING) -> "ServerDocument":
        root = parse_xml(text)
        return cls(root, document_prolog(text, root.tag), encoding)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ServerDocument":
        """Parse the file contents in the encoding the document declares."""
        text, encoding = decode_xml(data)
        return cls.parse(text, encoding)

    def to_xml(self) -> str:
        return serialize_xml(self.root, self.prolog, self.encoding)

    def to_bytes(self) -> bytes:
        """
        Serialize in the document's own encoding.

        Characters the encoding cannot represent become character references.
        """
        return self.to_xml().encode(self.encoding, errors="xmlcharrefreplace")

    def find_service(self, name: str) -> ServiceNode | None:
        element = find_child(self.root, "Service", {"name": name})
        return None if element is None else ServiceNode(element, self.indent)

    def service(self, name: str) -> tuple[ServiceNode, bool]:
        """Find the service called `name`, or create it."""
        existing = self.find_service(name)
        if existing is not None:
            return existing, False
        element = ET.Element("Service", {"name": name})
        insert_child(self.root, element, depth=0, indent=self.indent)
        _LOGGER.warning(
            f"Created the service {name}. Tomcat needs an Engine in every service "
            "before it will start it"
        )
        return ServiceNode(element, self.indent), True
