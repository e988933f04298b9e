"""
Option loading for the appserver-https flows.

Each flow reads its options from environment variables set by the deployment pipeline.
The option classes are immutable; call ``validate()`` before any I/O so that a
misconfigured run fails fast with a ValidationError and never touches the server.
"""

from ._env import env_bool, env_int, env_list, env_secret, env_str, split_list
from ._tomcat import (
    DEFAULT_HOST_NAME,
    DEFAULT_KEYSTORE_PASSWORD,
    TomcatHttpsOptions,
    TomcatImplementation,
    parse_tomcat_version,
)
from ._wildfly import (
    DEFAULT_KEYSTORE_NAME,
    DEFAULT_RELATIVE_TO,
    ServerType,
    WildflyHttpsOptions,
    WildflyOptions,
    package_name_from_path,
)

__all__ = [
    "DEFAULT_HOST_NAME",
    "DEFAULT_KEYSTORE_NAME",
    "DEFAULT_KEYSTORE_PASSWORD",
    "DEFAULT_RELATIVE_TO",
    "ServerType",
    "TomcatHttpsOptions",
    "TomcatImplementation",
    "WildflyHttpsOptions",
    "WildflyOptions",
    "env_bool",
    "env_int",
    "env_list",
    "env_secret",
    "env_str",
    "package_name_from_path",
    "parse_tomcat_version",
    "split_list",
]
