"""
ConnectorConfigurator: install or update an HTTPS connector in server.xml.

The run is split into a pure part and an I/O part:

1. `plan_material` turns the options into the material to reference from server.xml
   and the files that have to be written for it. Nothing is written yet.
2. `apply_https` changes the parsed document: find or create the Service and the
   Connector, then let the implementation strategy apply the host.
3. `configure_https` reads the document, runs both steps, and only when they succeed
   writes the material files and the whole document back.

A failed run therefore leaves server.xml untouched.
"""

import dataclasses
import logging
from pathlib import Path

import aiofiles

from appserver_https import _material
from appserver_https._exceptions import XmlStructureError
from appserver_https._retry import DEFAULT_RETRY_POLICY, RetryPolicy
from appserver_https.config import (
    DEFAULT_HOST_NAME,
    DEFAULT_KEYSTORE_PASSWORD,
    TomcatHttpsOptions,
)

from ._document import ServerDocument
from ._entries import KeystoreMaterial, PemFileMaterial, TlsMaterial
from ._implementations import HostChange, strategy_for

__all__ = ["MaterialPlan", "plan_material", "apply_https", "configure_https"]

_LOGGER = logging.getLogger(__name__)

_MATERIAL_PREFIX = "appserver-https"


@dataclasses.dataclass(frozen=True)
class MaterialPlan:
    """The material to reference and the files to write before it can be referenced."""

    material: TlsMaterial
    files: tuple[tuple[Path, bytes], ...] = ()


def _keystore_type(path: str) -> str:
    return "PKCS12" if path.lower().endswith((".p12", ".pfx", ".pkcs12")) else "JKS"


def plan_material(options: TomcatHttpsOptions) -> MaterialPlan:
    """
    Work out the TLS material for `options`.

    PEM material becomes a PKCS#12 keystore (BIO, NIO) or certificate and key files
    (APR) in the conf directory. Their names are derived from the material, so a
    repeated run references the same files. Existing files are referenced as given.

    Raises:
        ValidationError: If the PEM material is invalid.
    """
    if not options.uses_pem:
        if options.implementation.uses_keystore:
            keystore_file = options.keystore_file or ""
            return MaterialPlan(
                KeystoreMaterial(
                    keystore_file=keystore_file,
                    keystore_password=options.keystore_password or DEFAULT_KEYSTORE_PASSWORD,
                    keystore_type=_keystore_type(keystore_file),
                )
            )
        return MaterialPlan(
            PemFileMaterial(
                certificate_file=options.certificate_file or "",
                key_file=options.private_key_file or "",
                key_password=options.private_key_password,
            )
        )

    private_key = options.private_key or ""
    certificate = options.certificate or ""
    password = options.private_key_password or ""

    if options.implementation.uses_keystore:
        keystore_password = password or DEFAULT_KEYSTORE_PASSWORD
        name = _material.material_file_name(
            _MATERIAL_PREFIX, "p12", private_key, certificate, keystore_password
        )
        data = _material.build_pkcs12(
            private_key,
            certificate,
            keystore_password,
            private_key_password=options.private_key_password,
        )
        return MaterialPlan(
            KeystoreMaterial(
                keystore_file=f"conf/{name}",
                keystore_password=keystore_password,
                keystore_type="PKCS12",
            ),
            files=((options.conf_dir / name, data),),
        )

    certificate_name = _material.material_file_name(
        _MATERIAL_PREFIX, "crt", private_key, certificate, password
    )
    key_name = _material.material_file_name(
        _MATERIAL_PREFIX, "key", private_key, certificate, password
    )
    return MaterialPlan(
        PemFileMaterial(
            certificate_file=f"conf/{certificate_name}",
            key_file=f"conf/{key_name}",
            key_password=password or None,
        ),
        files=(
            (options.conf_dir / certificate_name, _material.encode_certificates(certificate)),
            (
                options.conf_dir / key_name,
                _material.encode_private_key(private_key, password or None),
            ),
        ),
    )


def apply_https(
    document: ServerDocument, options: TomcatHttpsOptions, material: TlsMaterial
) -> HostChange:
    """
    Apply the HTTPS settings of `options` to `document` in memory.

    Raises:
        HostAlreadyConfigured: If the host exists and overwrite is disabled.
        UnsafeImplementationSwap: If settings of the other implementation family would remain.
    """
    service, _ = document.service(options.service)
    connector, created = service.connector(options.port)
    host_name = DEFAULT_HOST_NAME if options.is_default_host else options.hostname.strip()

    version = options.version
    change = strategy_for(options.implementation).apply_host(
        connector,
        host_name,
        material,
        overwrite=options.overwrite,
        connector_form_only=version is not None and version < (8, 5),
    )
    _LOGGER.info(
        f"Host {host_name} on port {options.port} in service {options.service}: "
        f"{change.value}{' (new connector)' if created else ''}"
    )
    return change


async def _read_bytes(path: Path) -> bytes:
    try:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()
    except FileNotFoundError:
        raise XmlStructureError(f"The configuration file {path} does not exist") from None


async def _write_bytes(path: Path, data: bytes) -> None:
    async with aiofiles.open(path, "wb") as f:
        await f.write(data)


async def configure_https(
    options: TomcatHttpsOptions, *, retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY
) -> HostChange:
    """
    Install or update the HTTPS connector described by `options`.

    Args:
        options (TomcatHttpsOptions): What to configure.
        retry_policy (RetryPolicy): Applied to reading and writing files.

    Returns:
        HostChange: Whether the host was added, replaced or already up to date.

    Raises:
        ValidationError: If the options or the PEM material are invalid.
        XmlStructureError: If server.xml is missing, malformed, not decodable in its declared
            encoding, or not rooted at <Server>.
        HostAlreadyConfigured: If the host exists and overwrite is disabled.
        UnsafeImplementationSwap: If the implementation change would leave residue behind.
    """
    options.validate()
    _LOGGER.info(f"Configuring the Tomcat HTTPS connector with options {options.redacted()}")
    plan = plan_material(options)

    server_xml = options.server_xml
    data = await retry_policy.execute(
        lambda attempt: _read_bytes(server_xml), f"read {server_xml}"
    )
    document = ServerDocument.from_bytes(data)
    change = apply_https(document, options, plan.material)

    for path, data in plan.files:
        await retry_policy.execute(
            lambda attempt, path=path, data=data: _material.write_material_file(path, data),
            f"write {path}",
        )
    await retry_policy.execute(
        lambda attempt: _write_bytes(server_xml, document.to_bytes()), f"write {server_xml}"
    )
    _LOGGER.info(f"Saved {server_xml}")
    return change
