"""
Implementation strategies for BIO, NIO and APR connectors.

Every implementation applies a host the same way; the strategies differ only in the
protocol class they select and the material family they write. ``apply_host`` checks
everything before it touches the connector, so a rejected request leaves the document
exactly as it was.
"""

import dataclasses
import enum
import logging

from appserver_https._exceptions import (
    HostAlreadyConfigured,
    InternalError,
    UnsafeImplementationSwap,
)
from appserver_https.config import DEFAULT_HOST_NAME, TomcatImplementation

from ._document import PROTOCOL_CLASSES, ConnectorNode
from ._entries import (
    EntryForm,
    HostTlsEntry,
    MaterialFamily,
    TlsMaterial,
    entries,
    find_entry,
)

__all__ = ["HostChange", "ImplementationStrategy", "strategy_for", "SELECTOR_ATTRIBUTES"]

_LOGGER = logging.getLogger(__name__)

SELECTOR_ATTRIBUTES = {"SSLEnabled": "true", "scheme": "https", "secure": "true"}
"""Transport selector attributes set on every HTTPS connector, besides ``protocol``."""


class HostChange(str, enum.Enum):
    """What applying a host did to the connector."""

    ADDED = "added"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"


def _copied_from(connector: ConnectorNode, default: HostTlsEntry) -> HostTlsEntry | None:
    """
    Return the named host whose material the default host entry holds, if any.

    A default host filled in while adding a named host carries that host's material
    and is replaced by the first explicit request for the default host.
    """
    key = default.material_key()
    if not key:
        return None
    for entry in entries(connector):
        if entry.form is not EntryForm.ELEMENT or entry.host_config is default.host_config:
            continue
        if entry.material_key() == key:
            return entry
    return None


@dataclasses.dataclass(frozen=True)
class ImplementationStrategy:
    implementation: TomcatImplementation
    protocol_class: str
    family: MaterialFamily

    def _check_residue(
        self, connector: ConnectorNode, target: HostTlsEntry | None, host_name: str
    ) -> None:
        problems = []
        for entry in entries(connector):
            replacing = (
                target is not None
                and entry.form is target.form
                and entry.host_config is target.host_config
            )
            residue = entry.residue(self.family, replacing=replacing)
            if residue:
                problems.append(f"{entry.display_name}: {', '.join(residue)}")
        if problems:
            raise UnsafeImplementationSwap(
                f"Configuring {host_name} with the {self.implementation.value} implementation "
                f"on port {connector.port} would leave {self.family.other.value} settings "
                f"behind on {'; '.join(problems)}. Remove them, or use a different port"
            )

    def _set_selectors(self, connector: ConnectorNode) -> None:
        previous = connector.implementation
        if previous is not None and previous is not self.implementation:
            _LOGGER.info(
                f"Switching the connector on port {connector.port} from "
                f"{previous.value} to {self.implementation.value}"
            )
        connector.set("protocol", self.protocol_class)
        for name, value in SELECTOR_ATTRIBUTES.items():
            connector.set(name, value)

    def _create_entry(
        self, connector: ConnectorNode, host_name: str, *, connector_form: bool
    ) -> HostTlsEntry:
        if connector_form:
            return HostTlsEntry(host_name, EntryForm.CONNECTOR, connector)
        stored_name = host_name
        if host_name == DEFAULT_HOST_NAME:
            stored_name = connector.default_host_name
        host_config = connector.add_host_config(stored_name)
        return HostTlsEntry(stored_name, EntryForm.ELEMENT, connector, host_config)

    def apply_host(
        self,
        connector: ConnectorNode,
        host_name: str,
        material: TlsMaterial,
        *,
        overwrite: bool,
        connector_form_only: bool = False,
    ) -> HostChange:
        """
        Apply `material` for `host_name` to `connector`.

        Args:
            connector: The connector to change.
            host_name: The host name, ``_default_`` for the default host.
            material: Material of this strategy's family.
            overwrite: Replace an existing entry for the host.
            connector_form_only: Write the default host as connector attributes (Tomcat before 8.5).

        Returns:
            HostChange: Whether the host was added, replaced or already up to date.

        Raises:
            HostAlreadyConfigured: If the host exists with different material and `overwrite` is
                False. A default host holding material copied from a named host is
                replaced instead.
            UnsafeImplementationSwap: If settings of the other material family would remain.
        """
        if material.family is not self.family:
            raise InternalError(
                f"The {self.implementation.value} implementation needs "
                f"{self.family.value} material"
            )

        is_default = host_name == DEFAULT_HOST_NAME
        target = find_entry(connector, host_name)
        source = _copied_from(connector, target) if is_default and target is not None else None

        if target is not None and not overwrite:
            if target.matches(material) and connector.implementation is self.implementation:
                _LOGGER.info(
                    f"The host {target.display_name} on port {connector.port} is already configured"
                )
                return HostChange.UNCHANGED
            if source is None or connector.implementation is not self.implementation:
                raise HostAlreadyConfigured(
                    f"The host {host_name} is already configured on port {connector.port}. "
                    "Enable overwrite to replace it"
                )

        self._check_residue(connector, target, host_name)

        # Nothing below can fail
        self._set_selectors(connector)
        if target is not None and source is not None:
            target.write(material)
            _LOGGER.info(
                f"Added the default host {target.display_name} on port {connector.port} "
                f"in place of the material copied from {source.host_name}"
            )
            return HostChange.ADDED
        if target is not None:
            target.write(material)
            _LOGGER.info(f"Replaced the host {target.display_name} on port {connector.port}")
            return HostChange.REPLACED

        connector_form = is_default and (
            connector_form_only or connector.default_host_name == DEFAULT_HOST_NAME
        )
        entry = self._create_entry(connector, host_name, connector_form=connector_form)
        entry.write(material)
        _LOGGER.info(f"Added the host {entry.display_name} on port {connector.port}")

        if not is_default and find_entry(connector, DEFAULT_HOST_NAME) is None:
            # Tomcat refuses to start a TLS connector without a default host
            default = self._create_entry(
                connector,
                DEFAULT_HOST_NAME,
                connector_form=connector.default_host_name == DEFAULT_HOST_NAME,
            )
            default.write(material)
            _LOGGER.info(
                f"Added the default host {default.display_name} on port {connector.port} "
                f"with the material of {host_name}"
            )
        return HostChange.ADDED


_STRATEGIES = {
    implementation: ImplementationStrategy(
        implementation=implementation,
        protocol_class=PROTOCOL_CLASSES[implementation],
        family=MaterialFamily.JSSE if implementation.uses_keystore else MaterialFamily.OPENSSL,
    )
    for implementation in TomcatImplementation
}


def strategy_for(implementation: TomcatImplementation) -> ImplementationStrategy:
    return _STRATEGIES[implementation]
