"""
The Elytron resources that make up an HTTPS configuration.

A RemoteResource is one of three kinds (key-store, key-manager, server-ssl-context)
with a name and an ordered map of desired attributes. The kinds form a chain: the
key-manager references the key-store by name and the server-ssl-context references the
key-manager by name. A ResourceChain holds one resource of each kind and checks those
references when it is built.
"""

import dataclasses
import enum
from collections.abc import Iterator, Mapping
from typing import Any

from appserver_https._exceptions import ValidationError
from appserver_https.management import Command, operation_text

__all__ = [
    "ResourceKind",
    "RemoteResource",
    "ResourceChain",
    "key_store",
    "key_manager",
    "server_ssl_context",
    "KEY_STORE_NAME",
    "KEY_MANAGER_NAME",
    "SERVER_SSL_CONTEXT_NAME",
]

KEY_STORE_NAME = "appserverHttpsKS"
KEY_MANAGER_NAME = "appserverHttpsKM"
SERVER_SSL_CONTEXT_NAME = "appserverHttpsSSC"


class ResourceKind(str, enum.Enum):
    KEY_STORE = "key-store"
    KEY_MANAGER = "key-manager"
    SERVER_SSL_CONTEXT = "server-ssl-context"

    @property
    def reference_attribute(self) -> str | None:
        """The attribute naming the resource this kind depends on."""
        return _REFERENCES.get(self)

    @property
    def label(self) -> str:
        return self.value.replace("-", " ")


_REFERENCES = {
    ResourceKind.KEY_MANAGER: "key-store",
    ResourceKind.SERVER_SSL_CONTEXT: "key-manager",
}

# (add, configure) error codes per kind
_ERROR_CODES = {
    ResourceKind.KEY_STORE: ("WILDFLY-HTTPS-ERROR-0009", "WILDFLY-HTTPS-ERROR-0010"),
    ResourceKind.KEY_MANAGER: ("WILDFLY-HTTPS-ERROR-0011", "WILDFLY-HTTPS-ERROR-0012"),
    ResourceKind.SERVER_SSL_CONTEXT: ("WILDFLY-HTTPS-ERROR-0013", "WILDFLY-HTTPS-ERROR-0014"),
}


@dataclasses.dataclass(frozen=True)
class RemoteResource:
    """
    One Elytron resource and its desired attributes.

    An attribute whose desired value is None must be undefined on an existing resource
    and is left out when the resource is added.
    """

    kind: ResourceKind
    name: str
    attributes: Mapping[str, Any]

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValidationError(f"The {self.kind.label} name must not be blank")

    @property
    def address(self) -> tuple[tuple[str, str], ...]:
        return (("subsystem", "elytron"), (self.kind.value, self.name))

    @property
    def reference(self) -> str | None:
        attribute = self.kind.reference_attribute
        return None if attribute is None else self.attributes.get(attribute)

    def read_command(self) -> Command:
        return Command(
            text=operation_text(self.address, "read-resource"),
            description=f"read the {self.kind.label} {self.name}",
        )

    def add_command(self) -> Command:
        params = {key: value for key, value in self.attributes.items() if value is not None}
        add_code, _ = _ERROR_CODES[self.kind]
        return Command(
            text=operation_text(self.address, "add", params),
            description=f"add the {self.kind.label} {self.name}",
            expect_success=True,
            error_code=add_code,
            error_message=f"There was an error adding the Elytron {self.kind.label} {self.name}",
        )

    def write_commands(self) -> list[Command]:
        """One write-attribute (or undefine-attribute) command per managed attribute."""
        _, configure_code = _ERROR_CODES[self.kind]
        commands = []
        for attribute, value in self.attributes.items():
            if value is None:
                text = operation_text(self.address, "undefine-attribute", {"name": attribute})
            else:
                text = operation_text(
                    self.address, "write-attribute", {"name": attribute, "value": value}
                )
            commands.append(
                Command(
                    text=text,
                    description=f"configure the {attribute} attribute of the {self.kind.label} {self.name}",
                    expect_success=True,
                    error_code=configure_code,
                    error_message=(
                        f"There was an error configuring the Elytron {self.kind.label} {self.name}"
                    ),
                )
            )
        return commands


def key_store(
    name: str,
    *,
    path: str,
    password: str,
    relative_to: str | None = None,
    store_type: str = "PKCS12",
) -> RemoteResource:
    return RemoteResource(
        ResourceKind.KEY_STORE,
        name,
        {
            "path": path,
            "relative-to": relative_to or None,
            "credential-reference": {"clear-text": password},
            "type": store_type,
        },
    )


def key_manager(name: str, *, key_store: str, password: str) -> RemoteResource:
    return RemoteResource(
        ResourceKind.KEY_MANAGER,
        name,
        {
            "key-store": key_store,
            "credential-reference": {"clear-text": password},
        },
    )


def server_ssl_context(
    name: str, *, key_manager: str, protocols: tuple[str, ...] = ("TLSv1.2",)
) -> RemoteResource:
    return RemoteResource(
        ResourceKind.SERVER_SSL_CONTEXT,
        name,
        {
            "key-manager": key_manager,
            "protocols": list(protocols),
        },
    )


@dataclasses.dataclass(frozen=True)
class ResourceChain:
    """
    The ordered key-store -> key-manager -> server-ssl-context chain.

    Raises:
        ValidationError: If a resource has the wrong kind or does not reference its predecessor.
    """

    key_store: RemoteResource
    key_manager: RemoteResource
    server_ssl_context: RemoteResource

    def __post_init__(self) -> None:
        expected = (
            ResourceKind.KEY_STORE,
            ResourceKind.KEY_MANAGER,
            ResourceKind.SERVER_SSL_CONTEXT,
        )
        for resource, kind in zip(self, expected, strict=True):
            if resource.kind is not kind:
                raise ValidationError(
                    f"Expected a {kind.label} but got the {resource.kind.label} {resource.name}"
                )
        if self.key_manager.reference != self.key_store.name:
            raise ValidationError(
                f"The key manager {self.key_manager.name} must reference the key store "
                f"{self.key_store.name}, not {self.key_manager.reference}"
            )
        if self.server_ssl_context.reference != self.key_manager.name:
            raise ValidationError(
                f"The server SSL context {self.server_ssl_context.name} must reference the "
                f"key manager {self.key_manager.name}, not {self.server_ssl_context.reference}"
            )

    def __iter__(self) -> Iterator[RemoteResource]:
        yield self.key_store
        yield self.key_manager
        yield self.server_ssl_context
