"""
TLS material handling: PEM parsing, PKCS#12 keystores and PEM files.

Both flows receive a PEM private key and certificate chain from the pipeline. JSSE based
connectors (Tomcat BIO/NIO, the Elytron key-store) need a password protected PKCS#12
keystore; Tomcat APR needs separate certificate and key files.

File names are derived from a digest of the material, so running twice with the same
key and certificate points the configuration at the same file.
"""

import hashlib
import logging
import os
from pathlib import Path

import aiofiles
import aiofiles.os
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.serialization import pkcs12

from appserver_https._exceptions import ValidationError

__all__ = [
    "load_private_key",
    "load_certificates",
    "build_pkcs12",
    "encode_private_key",
    "encode_certificates",
    "material_digest",
    "material_file_name",
    "write_material_file",
]

_LOGGER = logging.getLogger(__name__)


def load_private_key(pem: str, password: str | None = None) -> PrivateKeyTypes:
    """
    Load a PEM private key.

    An unencrypted key is loaded as is. An encrypted key is decrypted with `password`.

    Raises:
        ValidationError: If the text is not a PEM private key or the password is wrong.
    """
    data = pem.strip().encode()
    try:
        return serialization.load_pem_private_key(data, password=None)
    except TypeError:
        # The key is encrypted
        if not password:
            raise ValidationError(
                "The private key is encrypted, but no private key password was supplied"
            ) from None
    except ValueError as e:
        raise ValidationError(f"The private key is not a valid PEM private key: {e}") from e

    try:
        return serialization.load_pem_private_key(data, password=password.encode())
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Failed to decrypt the private key: {e}") from e


def load_certificates(pem: str) -> list[x509.Certificate]:
    """
    Load a PEM certificate chain, leaf certificate first.

    Raises:
        ValidationError: If the text holds no valid PEM certificate.
    """
    try:
        certificates = x509.load_pem_x509_certificates(pem.strip().encode())
    except ValueError as e:
        raise ValidationError(f"The certificate is not a valid PEM certificate: {e}") from e
    if not certificates:
        raise ValidationError("The certificate chain is empty")
    return certificates


def build_pkcs12(
    private_key_pem: str,
    certificate_pem: str,
    password: str,
    *,
    alias: str = "appserver-https",
    private_key_password: str | None = None,
) -> bytes:
    """
    Build a password protected PKCS#12 keystore holding one key entry.

    Args:
        private_key_pem (str): The PEM private key.
        certificate_pem (str): The PEM certificate chain, leaf first.
        password (str): The keystore password.
        alias (str): The friendly name of the key entry.
        private_key_password (str | None): Password of an encrypted input key.

    Returns:
        bytes: The DER encoded keystore.

    Raises:
        ValidationError: If the PEM material is invalid or the key does not match the certificate.
    """
    key = load_private_key(private_key_pem, private_key_password or password)
    certificates = load_certificates(certificate_pem)
    leaf, chain = certificates[0], certificates[1:]
    if leaf.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    ) != key.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    ):
        raise ValidationError("The private key does not match the certificate")

    return pkcs12.serialize_key_and_certificates(
        name=alias.encode(),
        key=key,
        cert=leaf,
        cas=chain or None,
        encryption_algorithm=serialization.BestAvailableEncryption(password.encode()),
    )


def encode_private_key(private_key_pem: str, password: str | None = None) -> bytes:
    """Re-encode a PEM private key as PKCS#8, encrypted with `password` when one is given."""
    key = load_private_key(private_key_pem, password)
    if password:
        encryption: serialization.KeySerializationEncryption = (
            serialization.BestAvailableEncryption(password.encode())
        )
    else:
        encryption = serialization.NoEncryption()
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )


def encode_certificates(certificate_pem: str) -> bytes:
    """Normalize a PEM certificate chain."""
    return b"".join(
        certificate.public_bytes(serialization.Encoding.PEM)
        for certificate in load_certificates(certificate_pem)
    )


def material_digest(*parts: str) -> str:
    """A short, stable digest of the given material."""
    digest = hashlib.sha256()
    for part in parts:
        digest.update(part.strip().encode())
        digest.update(b"\0")
    return digest.hexdigest()[:12]


def material_file_name(base: str, extension: str, *parts: str) -> str:
    """
    Build the deterministic file name for generated material.

    Example:
        >>> material_file_name("default", "p12", key_pem, cert_pem)
        'default-3f1a9c0d2b7e.p12'
    """
    safe_base = "".join(c if c.isalnum() or c in "-_." else "_" for c in base)
    return f"{safe_base}-{material_digest(*parts)}.{extension}"


async def write_material_file(path: Path, data: bytes) -> None:
    """
    Write generated material, readable only by the owner where the platform supports it.

    The file is written next to its final location and renamed into place, so a reader
    never sees a partial keystore.
    """
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    temporary = path.with_name(f".{path.name}.tmp")
    async with aiofiles.open(temporary, "wb") as f:
        await f.write(data)
    if os.name == "posix":
        os.chmod(temporary, 0o600)
    await aiofiles.os.replace(temporary, path)
    _LOGGER.info(f"Wrote {path}")
