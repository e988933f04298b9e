"""
Options for configuring an HTTPS connector in a Tomcat server.xml file.

Environment Variables:
    TOMCAT_HTTPS_CATALINA_BASE (required): Tomcat base directory containing conf/server.xml.
    TOMCAT_HTTPS_SERVICE: Name of the <Service> element. Default: "Catalina".
    TOMCAT_HTTPS_PORT: Connector port. Default: 8443.
    TOMCAT_HTTPS_IMPLEMENTATION: BIO, NIO or APR. Default: NIO.
    TOMCAT_HTTPS_HOSTNAME: SNI host name. Blank or "_default_" configures the default host.
    TOMCAT_HTTPS_OVERWRITE: Replace an existing host configuration. Default: false.
    TOMCAT_HTTPS_VERSION: Tomcat version, e.g. "8.5.32". Enables version specific checks.
    TOMCAT_HTTPS_PRIVATE_KEY / TOMCAT_HTTPS_CERTIFICATE: PEM private key and certificate chain.
    TOMCAT_HTTPS_PRIVATE_KEY_PASSWORD: Password used to protect generated key material.
    TOMCAT_HTTPS_KEYSTORE_FILE / TOMCAT_HTTPS_KEYSTORE_PASSWORD: Existing keystore (BIO and NIO).
    TOMCAT_HTTPS_CERTIFICATE_FILE / TOMCAT_HTTPS_PRIVATE_KEY_FILE: Existing PEM files (APR).
"""

import dataclasses
import enum
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from appserver_https._exceptions import ValidationError

from ._env import env_bool, env_int, env_secret, env_str

__all__ = [
    "TomcatImplementation",
    "TomcatHttpsOptions",
    "DEFAULT_HOST_NAME",
    "DEFAULT_KEYSTORE_PASSWORD",
    "parse_tomcat_version",
]

DEFAULT_HOST_NAME = "_default_"
"""Tomcat's name for the default SSLHostConfig."""

DEFAULT_KEYSTORE_PASSWORD = "changeit"
"""Keystore password used when none is supplied, matching the JDK convention."""

_REDACTED = "******"

_ENV_PREFIX = "TOMCAT_HTTPS_"

# Plain DNS names, wildcard names and IP literals are accepted by Tomcat's SNI matching
_HOSTNAME_PATTERN = re.compile(r"^(\*\.)?[A-Za-z0-9_]([A-Za-z0-9_\-.:]*[A-Za-z0-9_])?$")


class TomcatImplementation(str, enum.Enum):
    """The transport implementation of a Tomcat connector.

    BIO and NIO use JSSE and read TLS material from a keystore. APR uses OpenSSL
    and reads PEM certificate and key files.
    """

    BIO = "BIO"
    NIO = "NIO"
    APR = "APR"

    @classmethod
    def parse(cls, value: str) -> "TomcatImplementation":
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValidationError(
                f"Unknown Tomcat implementation '{value}'. Expected one of BIO, NIO, APR"
            ) from None

    @property
    def uses_keystore(self) -> bool:
        return self is not TomcatImplementation.APR


def parse_tomcat_version(version: str) -> tuple[int, int] | None:
    """Parse "major.minor[.patch...]" into (major, minor), or None for a blank version."""
    if not version.strip():
        return None
    match = re.match(r"^\s*(\d+)(?:\.(\d+))?", version)
    if not match:
        raise ValidationError(f"Unrecognised Tomcat version '{version}'")
    return int(match.group(1)), int(match.group(2) or 0)


@dataclasses.dataclass(frozen=True)
class TomcatHttpsOptions:
    """Immutable options for one Tomcat HTTPS configuration run."""

    catalina_base: str
    service: str = "Catalina"
    port: int = 8443
    implementation: TomcatImplementation = TomcatImplementation.NIO
    hostname: str = ""
    overwrite: bool = False
    tomcat_version: str = ""
    private_key: str | None = dataclasses.field(default=None, repr=False)
    certificate: str | None = dataclasses.field(default=None, repr=False)
    private_key_password: str | None = dataclasses.field(default=None, repr=False)
    keystore_file: str | None = None
    keystore_password: str | None = dataclasses.field(default=None, repr=False)
    certificate_file: str | None = None
    private_key_file: str | None = None

    @classmethod
    def from_environment(
        cls, env: Mapping[str, str] | None = None
    ) -> "TomcatHttpsOptions":
        """Build the options from environment variables (see the module docstring)."""
        env = os.environ if env is None else env
        return cls(
            catalina_base=env_str(env, _ENV_PREFIX + "CATALINA_BASE"),
            service=env_str(env, _ENV_PREFIX + "SERVICE", "Catalina"),
            port=env_int(env, _ENV_PREFIX + "PORT", 8443),
            implementation=TomcatImplementation.parse(
                env_str(env, _ENV_PREFIX + "IMPLEMENTATION", "NIO")
            ),
            hostname=env_str(env, _ENV_PREFIX + "HOSTNAME"),
            overwrite=env_bool(env, _ENV_PREFIX + "OVERWRITE", False),
            tomcat_version=env_str(env, _ENV_PREFIX + "VERSION"),
            private_key=env_secret(env, _ENV_PREFIX + "PRIVATE_KEY"),
            certificate=env_secret(env, _ENV_PREFIX + "CERTIFICATE"),
            private_key_password=env_secret(env, _ENV_PREFIX + "PRIVATE_KEY_PASSWORD"),
            keystore_file=env_str(env, _ENV_PREFIX + "KEYSTORE_FILE") or None,
            keystore_password=env_secret(env, _ENV_PREFIX + "KEYSTORE_PASSWORD"),
            certificate_file=env_str(env, _ENV_PREFIX + "CERTIFICATE_FILE") or None,
            private_key_file=env_str(env, _ENV_PREFIX + "PRIVATE_KEY_FILE") or None,
        )

    @property
    def server_xml(self) -> Path:
        return Path(self.catalina_base) / "conf" / "server.xml"

    @property
    def conf_dir(self) -> Path:
        return Path(self.catalina_base) / "conf"

    @property
    def is_default_host(self) -> bool:
        return self.hostname.strip() in ("", DEFAULT_HOST_NAME)

    @property
    def uses_pem(self) -> bool:
        return self.private_key is not None or self.certificate is not None

    @property
    def version(self) -> tuple[int, int] | None:
        return parse_tomcat_version(self.tomcat_version)

    def validate(self) -> "TomcatHttpsOptions":
        """
        Check the options for missing or contradictory values.

        Returns:
            TomcatHttpsOptions: self, to allow chaining.

        Raises:
            ValidationError: If any option is missing, malformed or contradicts another option.
        """
        if not self.catalina_base:
            raise ValidationError("The Tomcat base directory must be supplied")
        if not self.service.strip():
            raise ValidationError("The Tomcat service name must not be blank")
        if not 0 < self.port < 65536:
            raise ValidationError(f"The port {self.port} is not a valid TCP port")
        if not self.is_default_host and not _HOSTNAME_PATTERN.match(self.hostname.strip()):
            raise ValidationError(f"'{self.hostname}' is not a valid host name")

        version = self.version
        if version is not None:
            if version < (8, 5) and not self.is_default_host:
                raise ValidationError(
                    f"Tomcat {self.tomcat_version} does not support SSLHostConfig, "
                    "so only the default host can be configured"
                )
            if version >= (8, 5) and self.implementation is TomcatImplementation.BIO:
                raise ValidationError(
                    f"Tomcat {self.tomcat_version} does not provide the BIO implementation"
                )

        self._validate_material()
        return self

    def _validate_material(self) -> None:
        if (self.private_key is None) != (self.certificate is None):
            raise ValidationError(
                "The private key and the certificate must be supplied together"
            )

        if self.implementation.uses_keystore:
            if self.certificate_file or self.private_key_file:
                raise ValidationError(
                    f"The {self.implementation.value} implementation uses a keystore, "
                    "certificate and key files can not be used"
                )
            if self.uses_pem and self.keystore_file:
                raise ValidationError(
                    "Supply either PEM material or an existing keystore file, not both"
                )
            if not self.uses_pem and not self.keystore_file:
                raise ValidationError(
                    f"The {self.implementation.value} implementation requires "
                    "PEM material or a keystore file"
                )
        else:
            if self.keystore_file:
                raise ValidationError(
                    "The APR implementation does not use a keystore file"
                )
            if bool(self.certificate_file) != bool(self.private_key_file):
                raise ValidationError(
                    "The certificate file and the private key file must be supplied together"
                )
            if self.uses_pem and self.certificate_file:
                raise ValidationError(
                    "Supply either PEM material or existing certificate files, not both"
                )
            if not self.uses_pem and not self.certificate_file:
                raise ValidationError(
                    "The APR implementation requires PEM material or certificate and key files"
                )

    def redacted(self) -> dict[str, Any]:
        """Return the options as a dict with every secret masked, for logging."""
        values = dataclasses.asdict(self)
        for key in ("private_key", "certificate", "private_key_password", "keystore_password"):
            if values[key] is not None:
                values[key] = _REDACTED
        values["implementation"] = self.implementation.value
        return values
