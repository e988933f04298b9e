"""
Tomcat server.xml HTTPS connector configuration.

- `ServerDocument` and its node views wrap the parsed server.xml.
- `strategy_for` returns the BIO, NIO or APR strategy that applies a host.
- `configure_https` runs the whole read, change and write cycle.
"""

from ._configurator import MaterialPlan, apply_https, configure_https, plan_material
from ._document import PROTOCOL_CLASSES, ConnectorNode, ServerDocument, ServiceNode
from ._entries import (
    EntryForm,
    HostTlsEntry,
    KeystoreMaterial,
    MaterialFamily,
    PemFileMaterial,
    find_entry,
)
from ._implementations import (
    SELECTOR_ATTRIBUTES,
    HostChange,
    ImplementationStrategy,
    strategy_for,
)

__all__ = [
    "ConnectorNode",
    "EntryForm",
    "HostChange",
    "HostTlsEntry",
    "ImplementationStrategy",
    "KeystoreMaterial",
    "MaterialFamily",
    "MaterialPlan",
    "PROTOCOL_CLASSES",
    "PemFileMaterial",
    "SELECTOR_ATTRIBUTES",
    "ServerDocument",
    "ServiceNode",
    "apply_https",
    "configure_https",
    "find_entry",
    "plan_material",
    "strategy_for",
]
