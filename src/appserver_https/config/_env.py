"""Helpers for reading typed option values from environment variables.

Defaulting and trimming rules shared by every options class:

- Values are stripped of surrounding whitespace.
- A blank value is treated the same as a missing variable.
- Booleans accept true/false, yes/no, on/off and 1/0 (case-insensitive).
- Integers must parse as base-10 integers.
- Lists are comma separated; entries are trimmed and empty entries dropped.
"""

from collections.abc import Mapping

from appserver_https._exceptions import ValidationError

__all__ = ["env_str", "env_secret", "env_int", "env_bool", "env_list", "split_list"]

_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0"}


def env_str(env: Mapping[str, str], name: str, default: str = "") -> str:
    """Return the trimmed value of `name`, or `default` when missing or blank."""
    value = env.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def env_secret(env: Mapping[str, str], name: str) -> str | None:
    """Return the untrimmed value of `name`, or None when missing or empty.

    Passwords and PEM blocks are used verbatim, so no trimming happens here.
    """
    value = env.get(name)
    if not value:
        return None
    return value


def env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env_str(env, name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(
            f"Environment variable {name} must be an integer, got '{raw}'"
        ) from None


def env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env_str(env, name).lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValidationError(
        f"Environment variable {name} must be a boolean, got '{raw}'"
    )


def split_list(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def env_list(env: Mapping[str, str], name: str) -> tuple[str, ...]:
    return split_list(env_str(env, name))
