"""
Host TLS entries and the material written into them.

A connector serves TLS material per host name. Tomcat accepts the material in two
places:

- Connector form: legacy attributes directly on the ``<Connector>`` element
  (``keystoreFile``, ``SSLCertificateFile``, ...). Only the default host can be
  configured this way, and it is the only way before Tomcat 8.5.
- Element form: an ``<SSLHostConfig hostName="...">`` child with a ``<Certificate>``
  child (``certificateKeystoreFile``, ``certificateFile``, ...).

Each attribute belongs to the JSSE family (BIO and NIO) or the OpenSSL family (APR).
An entry carrying attributes of the family the connector is not going to use is
residue, and residue makes an implementation change unsafe.
"""

import dataclasses
import enum
import xml.etree.ElementTree as ET
from collections.abc import Iterator

from appserver_https.config import DEFAULT_HOST_NAME

from ._document import ConnectorNode

__all__ = [
    "MaterialFamily",
    "EntryForm",
    "KeystoreMaterial",
    "PemFileMaterial",
    "TlsMaterial",
    "HostTlsEntry",
    "find_entry",
    "entries",
    "owned_attributes",
]


class MaterialFamily(str, enum.Enum):
    JSSE = "JSSE"
    OPENSSL = "OpenSSL"

    @property
    def other(self) -> "MaterialFamily":
        return MaterialFamily.OPENSSL if self is MaterialFamily.JSSE else MaterialFamily.JSSE


class EntryForm(str, enum.Enum):
    CONNECTOR = "connector"
    ELEMENT = "element"


_OWNED: dict[tuple[MaterialFamily, EntryForm], tuple[str, ...]] = {
    (MaterialFamily.JSSE, EntryForm.CONNECTOR): ("keystoreFile", "keystorePass", "keystoreType"),
    (MaterialFamily.OPENSSL, EntryForm.CONNECTOR): (
        "SSLCertificateFile",
        "SSLCertificateKeyFile",
        "SSLPassword",
    ),
    (MaterialFamily.JSSE, EntryForm.ELEMENT): (
        "certificateKeystoreFile",
        "certificateKeystorePassword",
        "certificateKeystoreType",
    ),
    (MaterialFamily.OPENSSL, EntryForm.ELEMENT): (
        "certificateFile",
        "certificateKeyFile",
        "certificateKeyPassword",
    ),
}

# Family specific attributes this package does not write
_CONNECTOR_EXTRA = {
    MaterialFamily.JSSE: (
        "keyAlias",
        "keyPass",
        "keystoreProvider",
        "truststoreFile",
        "truststorePass",
        "truststoreType",
        "truststoreProvider",
        "clientAuth",
        "sslProtocol",
        "sslEnabledProtocols",
        "algorithm",
    ),
    MaterialFamily.OPENSSL: (
        "SSLCertificateChainFile",
        "SSLCACertificateFile",
        "SSLCACertificatePath",
        "SSLCARevocationFile",
        "SSLCARevocationPath",
        "SSLVerifyClient",
        "SSLVerifyDepth",
        "SSLProtocol",
        "SSLCipherSuite",
        "SSLHonorCipherOrder",
        "SSLDisableCompression",
    ),
}

_HOST_CONFIG_EXTRA = {
    MaterialFamily.JSSE: (
        "truststoreFile",
        "truststorePassword",
        "truststoreType",
        "truststoreProvider",
        "truststoreAlgorithm",
        "keyManagerAlgorithm",
        "sslProtocol",
    ),
    MaterialFamily.OPENSSL: (
        "caCertificateFile",
        "caCertificatePath",
        "certificateRevocationListFile",
        "certificateRevocationListPath",
        "insecureRenegotiation",
        "disableCompression",
        "disableSessionTickets",
    ),
}

_CERTIFICATE_EXTRA = {
    MaterialFamily.JSSE: ("certificateKeyAlias", "certificateKeystoreProvider"),
    MaterialFamily.OPENSSL: ("certificateChainFile",),
}


def owned_attributes(family: MaterialFamily, form: EntryForm) -> tuple[str, ...]:
    """The material attributes written by this package for `family` in `form`."""
    return _OWNED[(family, form)]


@dataclasses.dataclass(frozen=True)
class KeystoreMaterial:
    """JSSE material: a keystore file, its password and its type."""

    keystore_file: str
    keystore_password: str = dataclasses.field(repr=False)
    keystore_type: str = "PKCS12"

    family = MaterialFamily.JSSE

    def attributes(self, form: EntryForm) -> dict[str, str | None]:
        values = (self.keystore_file, self.keystore_password, self.keystore_type)
        return dict(zip(owned_attributes(self.family, form), values, strict=True))


@dataclasses.dataclass(frozen=True)
class PemFileMaterial:
    """OpenSSL material: certificate and key files, and the key password if encrypted."""

    certificate_file: str
    key_file: str
    key_password: str | None = dataclasses.field(default=None, repr=False)

    family = MaterialFamily.OPENSSL

    def attributes(self, form: EntryForm) -> dict[str, str | None]:
        values = (self.certificate_file, self.key_file, self.key_password)
        return dict(zip(owned_attributes(self.family, form), values, strict=True))


TlsMaterial = KeystoreMaterial | PemFileMaterial


@dataclasses.dataclass
class HostTlsEntry:
    """
    The TLS configuration of one host on a connector.

    Attributes:
        host_name (str): The host name, ``_default_`` for the default host.
        form (EntryForm): Where the material lives.
        connector (ConnectorNode): The owning connector.
        host_config (ET.Element | None): The SSLHostConfig element for the element form.
    """

    host_name: str
    form: EntryForm
    connector: ConnectorNode
    host_config: ET.Element | None = None

    def _material_elements(self) -> list[ET.Element]:
        if self.form is EntryForm.CONNECTOR:
            return [self.connector.element]
        assert self.host_config is not None
        # Tomcat also accepts certificate attributes on SSLHostConfig itself
        return [self.host_config, *self.connector.certificates(self.host_config)]

    def _family_attributes(self, family: MaterialFamily) -> list[tuple[ET.Element, str]]:
        found = []
        if self.form is EntryForm.CONNECTOR:
            names = owned_attributes(family, EntryForm.CONNECTOR) + _CONNECTOR_EXTRA[family]
            found += [(self.connector.element, n) for n in names if n in self.connector.element.attrib]
            return found
        assert self.host_config is not None
        host_names = _HOST_CONFIG_EXTRA[family] + owned_attributes(family, EntryForm.ELEMENT)
        found += [(self.host_config, n) for n in host_names if n in self.host_config.attrib]
        certificate_names = owned_attributes(family, EntryForm.ELEMENT) + _CERTIFICATE_EXTRA[family]
        for certificate in self.connector.certificates(self.host_config):
            found += [(certificate, n) for n in certificate_names if n in certificate.attrib]
        return found

    def residue(self, target: MaterialFamily, *, replacing: bool) -> list[str]:
        """
        Attributes of the family other than `target` that would remain on this entry.

        When `replacing` the owned material attributes are left out, since they are
        removed before the new material is written.
        """
        other = target.other
        owned = set(owned_attributes(other, self.form))
        return sorted(
            {
                name
                for _, name in self._family_attributes(other)
                if not (replacing and name in owned)
            }
        )

    def has_material(self) -> bool:
        """True when the entry holds a certificate of either family."""
        for family in MaterialFamily:
            owned = set(owned_attributes(family, self.form))
            if any(name in owned for _, name in self._family_attributes(family)):
                return True
        return False

    def material_values(self) -> dict[str, str]:
        """The owned material attributes currently set, across both families."""
        values: dict[str, str] = {}
        for element in self._material_elements():
            for family in MaterialFamily:
                for name in owned_attributes(family, self.form):
                    if name in element.attrib:
                        values[name] = element.attrib[name]
        return values

    def material_key(self) -> tuple[tuple[MaterialFamily, tuple[str | None, ...]], ...]:
        """The material held by the entry per family, comparable across entry forms."""
        values = self.material_values()
        key = []
        for family in MaterialFamily:
            names = owned_attributes(family, self.form)
            if any(name in values for name in names):
                key.append((family, tuple(values.get(name) for name in names)))
        return tuple(key)

    def matches(self, material: TlsMaterial) -> bool:
        """True when the entry already holds exactly `material`."""
        desired = {k: v for k, v in material.attributes(self.form).items() if v is not None}
        return self.material_values() == desired

    def write(self, material: TlsMaterial) -> None:
        """Replace the owned material attributes of both families with `material`."""
        for element in self._material_elements():
            for family in MaterialFamily:
                for name in owned_attributes(family, self.form):
                    element.attrib.pop(name, None)

        if self.form is EntryForm.CONNECTOR:
            target = self.connector.element
        else:
            assert self.host_config is not None
            target = self.connector.certificate(self.host_config)
        for name, value in material.attributes(self.form).items():
            if value is not None:
                target.set(name, value)

    @property
    def display_name(self) -> str:
        return f"{self.host_name} ({self.form.value} form)"


def find_entry(connector: ConnectorNode, host_name: str) -> HostTlsEntry | None:
    """
    Locate the entry for `host_name` on `connector`.

    The default host is found through the connector's ``defaultSSLHostConfigName``: an
    SSLHostConfig with that name wins, otherwise connector-form material counts as the
    default entry.
    """
    is_default = host_name == DEFAULT_HOST_NAME
    name = connector.default_host_name if is_default else host_name
    host_config = connector.find_host_config(name)
    if host_config is not None:
        return HostTlsEntry(name, EntryForm.ELEMENT, connector, host_config)
    if is_default or name == connector.default_host_name:
        entry = HostTlsEntry(name, EntryForm.CONNECTOR, connector)
        if entry.has_material():
            return entry
    return None


def entries(connector: ConnectorNode) -> Iterator[HostTlsEntry]:
    """Every place on `connector` that can hold family specific TLS attributes."""
    yield HostTlsEntry(connector.default_host_name, EntryForm.CONNECTOR, connector)
    for host_config in connector.host_configs():
        yield HostTlsEntry(
            host_config.get("hostName", DEFAULT_HOST_NAME),
            EntryForm.ELEMENT,
            connector,
            host_config,
        )
