"""
Options for the WildFly / JBoss EAP flows.

Environment Variables (management connection, shared by every WildFly flow):
    WILDFLY_CONTROLLER: Management host. Default: "localhost".
    WILDFLY_PORT: Management port. Default: 9990.
    WILDFLY_PROTOCOL: remote+http, remote+https, http-remoting, https-remoting, http or https.
        Default: "remote+http".
    WILDFLY_USER / WILDFLY_PASSWORD: Management credentials. A blank user means no credentials.
    WILDFLY_LOGIN_TIMEOUT: Seconds to wait for the login to complete. Default: 120.
    WILDFLY_SERVER_TYPE: NONE, STANDALONE or DOMAIN. Only used to warn about mismatches.

Environment Variables (deployment state):
    WILDFLY_DEPLOY_APPLICATION: Path of the application package. Its file name, minus a
        trailing GUID, is the default deployment name.
    WILDFLY_DEPLOY_NAME: Explicit deployment name.
    WILDFLY_DEPLOY_ENABLED: Enable (true) or disable (false) the deployment. Default: true.
    WILDFLY_DEPLOY_ENABLED_SERVER_GROUPS / WILDFLY_DEPLOY_DISABLED_SERVER_GROUPS: Comma separated
        server groups (domain mode only).

Environment Variables (HTTPS):
    WILDFLY_HTTPS_PRIVATE_KEY / WILDFLY_HTTPS_CERTIFICATE: PEM private key and certificate chain.
    WILDFLY_HTTPS_PRIVATE_KEY_PASSWORD: Password protecting the generated keystore.
    WILDFLY_HTTPS_KEYSTORE_NAME: File name of the generated keystore. Default: "appserver-https.p12".
    WILDFLY_HTTPS_RELATIVE_TO: Name of a server path (e.g. jboss.server.config.dir) the keystore
        name is relative to. Default: jboss.server.config.dir.
    WILDFLY_HTTPS_KEYSTORE_FILE / WILDFLY_HTTPS_KEYSTORE_PASSWORD: Existing keystore on the server.
"""

import dataclasses
import enum
import logging
import os
import re
from collections.abc import Mapping
from pathlib import PurePath
from typing import Any

from appserver_https._exceptions import ValidationError
from appserver_https.management import ManagementEndpoint

from ._env import env_bool, env_int, env_list, env_secret, env_str

__all__ = [
    "ServerType",
    "WildflyOptions",
    "WildflyHttpsOptions",
    "DEFAULT_KEYSTORE_NAME",
    "DEFAULT_RELATIVE_TO",
    "package_name_from_path",
]

_LOGGER = logging.getLogger(__name__)

_REDACTED = "******"

DEFAULT_KEYSTORE_NAME = "appserver-https.p12"
DEFAULT_RELATIVE_TO = "jboss.server.config.dir"
DEFAULT_KEYSTORE_PASSWORD = "changeit"

_KNOWN_PROTOCOLS = (
    "remote+http",
    "remote+https",
    "http-remoting",
    "https-remoting",
    "remote",
    "http",
    "https",
)

# Packages uploaded by the pipeline carry a "-<guid>" suffix that is not part of the name
_GUID_SUFFIX = re.compile(
    r"-[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}$",
    re.IGNORECASE,
)


def package_name_from_path(path: str) -> str:
    """
    Derive a deployment name from a package path.

    Example:
        >>> package_name_from_path("/tmp/app-0f8fad5b-d9cb-469f-a165-70867728950e.war")
        'app.war'
    """
    file_name = PurePath(path).name
    stem, dot, extension = file_name.rpartition(".")
    if not dot:
        return _GUID_SUFFIX.sub("", file_name)
    return f"{_GUID_SUFFIX.sub('', stem)}.{extension}"


class ServerType(str, enum.Enum):
    """The server type declared by the operator."""

    NONE = "NONE"
    STANDALONE = "STANDALONE"
    DOMAIN = "DOMAIN"

    @classmethod
    def parse(cls, value: str) -> "ServerType":
        if not value.strip():
            return cls.NONE
        try:
            return cls(value.strip().upper())
        except ValueError:
            _LOGGER.warning(
                f"Unknown server type '{value}', treating it as {cls.NONE.value}"
            )
            return cls.NONE


@dataclasses.dataclass(frozen=True)
class WildflyOptions:
    """Immutable management connection and deployment options."""

    controller: str = "localhost"
    port: int = 9990
    protocol: str = "remote+http"
    user: str = ""
    password: str | None = dataclasses.field(default=None, repr=False)
    login_timeout: float = 120.0
    server_type: ServerType = ServerType.NONE
    application: str = ""
    name: str = ""
    enabled: bool = True
    enabled_server_groups: tuple[str, ...] = ()
    disabled_server_groups: tuple[str, ...] = ()

    @staticmethod
    def _management_fields(env: Mapping[str, str]) -> dict[str, Any]:
        return {
            "controller": env_str(env, "WILDFLY_CONTROLLER", "localhost"),
            "port": env_int(env, "WILDFLY_PORT", 9990),
            "protocol": env_str(env, "WILDFLY_PROTOCOL", "remote+http").lower(),
            "user": env_str(env, "WILDFLY_USER"),
            "password": env_secret(env, "WILDFLY_PASSWORD"),
            "login_timeout": float(env_int(env, "WILDFLY_LOGIN_TIMEOUT", 120)),
            "server_type": ServerType.parse(env_str(env, "WILDFLY_SERVER_TYPE")),
        }

    @classmethod
    def from_environment(cls, env: Mapping[str, str] | None = None) -> "WildflyOptions":
        """Build the options from environment variables (see the module docstring)."""
        env = os.environ if env is None else env
        return cls(
            **cls._management_fields(env),
            application=env_str(env, "WILDFLY_DEPLOY_APPLICATION"),
            name=env_str(env, "WILDFLY_DEPLOY_NAME"),
            enabled=env_bool(env, "WILDFLY_DEPLOY_ENABLED", True),
            enabled_server_groups=env_list(env, "WILDFLY_DEPLOY_ENABLED_SERVER_GROUPS"),
            disabled_server_groups=env_list(env, "WILDFLY_DEPLOY_DISABLED_SERVER_GROUPS"),
        )

    @property
    def fixed_username(self) -> str | None:
        return self.user.strip() or None

    @property
    def fixed_password(self) -> str | None:
        # A password without a user is never sent
        return self.password if self.fixed_username else None

    @property
    def endpoint(self) -> ManagementEndpoint:
        return ManagementEndpoint(
            host=self.controller,
            port=self.port,
            protocol=self.protocol,
            username=self.fixed_username,
            password=self.fixed_password,
        )

    @property
    def package_name(self) -> str:
        """The deployment name: the explicit name, else the application file name without its GUID."""
        if self.name.strip():
            return self.name.strip()
        if self.application.strip():
            return package_name_from_path(self.application.strip())
        return ""

    def validate(self) -> "WildflyOptions":
        """
        Check the management connection options.

        Raises:
            ValidationError: If the controller, port, protocol or timeout is invalid.
        """
        if not self.controller.strip():
            raise ValidationError("The management controller must not be blank")
        if not 0 < self.port < 65536:
            raise ValidationError(f"The port {self.port} is not a valid TCP port")
        if self.protocol not in _KNOWN_PROTOCOLS:
            raise ValidationError(
                f"Unknown management protocol '{self.protocol}'. "
                f"Expected one of {', '.join(_KNOWN_PROTOCOLS)}"
            )
        if self.login_timeout <= 0:
            raise ValidationError("The login timeout must be greater than zero")
        return self

    def validate_deployment(self) -> "WildflyOptions":
        """Check the options needed to change a deployment state."""
        self.validate()
        if not self.package_name:
            raise ValidationError(
                "Either the application package or the deployment name must be supplied"
            )
        overlap = set(self.enabled_server_groups) & set(self.disabled_server_groups)
        if overlap:
            raise ValidationError(
                f"Server groups can not be both enabled and disabled: {sorted(overlap)}"
            )
        return self

    def warn_about_mismatch(self, is_domain_mode: bool) -> None:
        """Log a warning when the declared server type does not match the connected server."""
        if self.server_type is ServerType.DOMAIN and not is_domain_mode:
            _LOGGER.warning(
                "The server type was declared as DOMAIN, but the server is a standalone server"
            )
        elif self.server_type is ServerType.STANDALONE and is_domain_mode:
            _LOGGER.warning(
                "The server type was declared as STANDALONE, but the server is a domain controller"
            )

        if not is_domain_mode and (self.enabled_server_groups or self.disabled_server_groups):
            _LOGGER.warning(
                "Server groups were supplied, but they are ignored by a standalone server"
            )

    def redacted(self) -> dict[str, Any]:
        """Return the options as a dict with every secret masked, for logging."""
        values = dataclasses.asdict(self)
        if values.get("password") is not None:
            values["password"] = _REDACTED
        values["server_type"] = self.server_type.value
        return values


@dataclasses.dataclass(frozen=True)
class WildflyHttpsOptions(WildflyOptions):
    """Management options plus the TLS material for the Elytron key-store."""

    private_key: str | None = dataclasses.field(default=None, repr=False)
    certificate: str | None = dataclasses.field(default=None, repr=False)
    private_key_password: str | None = dataclasses.field(default=None, repr=False)
    keystore_name: str = DEFAULT_KEYSTORE_NAME
    relative_to: str = DEFAULT_RELATIVE_TO
    keystore_file: str = ""
    keystore_password: str | None = dataclasses.field(default=None, repr=False)

    @classmethod
    def from_environment(
        cls, env: Mapping[str, str] | None = None
    ) -> "WildflyHttpsOptions":
        env = os.environ if env is None else env
        keystore_file = env_str(env, "WILDFLY_HTTPS_KEYSTORE_FILE")
        return cls(
            **cls._management_fields(env),
            private_key=env_secret(env, "WILDFLY_HTTPS_PRIVATE_KEY"),
            certificate=env_secret(env, "WILDFLY_HTTPS_CERTIFICATE"),
            private_key_password=env_secret(env, "WILDFLY_HTTPS_PRIVATE_KEY_PASSWORD"),
            keystore_name=env_str(env, "WILDFLY_HTTPS_KEYSTORE_NAME", DEFAULT_KEYSTORE_NAME),
            # An existing absolute keystore path is not relative to anything by default
            relative_to=env_str(
                env,
                "WILDFLY_HTTPS_RELATIVE_TO",
                "" if keystore_file else DEFAULT_RELATIVE_TO,
            ),
            keystore_file=keystore_file,
            keystore_password=env_secret(env, "WILDFLY_HTTPS_KEYSTORE_PASSWORD"),
        )

    @property
    def uses_pem(self) -> bool:
        return self.private_key is not None or self.certificate is not None

    @property
    def keystore_path(self) -> str:
        """The value of the key-store ``path`` attribute."""
        return self.keystore_file or self.keystore_name

    @property
    def effective_keystore_password(self) -> str:
        if self.uses_pem:
            return self.private_key_password or DEFAULT_KEYSTORE_PASSWORD
        return self.keystore_password or DEFAULT_KEYSTORE_PASSWORD

    def validate(self) -> "WildflyHttpsOptions":
        super().validate()
        if (self.private_key is None) != (self.certificate is None):
            raise ValidationError(
                "The private key and the certificate must be supplied together"
            )
        if self.uses_pem and self.keystore_file:
            raise ValidationError(
                "Supply either PEM material or an existing keystore file, not both"
            )
        if not self.uses_pem and not self.keystore_file:
            raise ValidationError(
                "Either PEM material or an existing keystore file must be supplied"
            )
        if self.uses_pem and not self.keystore_name.strip():
            raise ValidationError("The keystore name must not be blank")
        if self.relative_to and PurePath(self.keystore_path).is_absolute():
            raise ValidationError(
                f"The keystore path '{self.keystore_path}' must be relative "
                f"when it is relative to '{self.relative_to}'"
            )
        return self

    def redacted(self) -> dict[str, Any]:
        values = super().redacted()
        for key in ("private_key", "certificate", "private_key_password", "keystore_password"):
            if values.get(key) is not None:
                values[key] = _REDACTED
        return values
