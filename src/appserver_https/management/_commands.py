"""
Management commands and their translation into management-model operations.

WildFly and JBoss EAP accept the same operations through the CLI and through the HTTP
management API. Commands are written in the CLI syntax because that is what operators
read in the logs and paste into jboss-cli:

    /subsystem=elytron/key-store=httpsKS:add(path=/tmp/ks.p12,credential-reference={clear-text=secret},type=PKCS12)
    /subsystem=elytron/key-store=httpsKS:write-attribute(name=type,value=PKCS12)
    /:take-snapshot
    reload
    deploy --name=app.war
    undeploy --keep-content --name=app.war

`parse_command` turns that text into the JSON operation posted to `/management`.
`format_value` and `format_address` do the reverse when commands are built in code.
"""

import dataclasses
import re
import shlex
from collections.abc import Iterable, Mapping
from typing import Any

from appserver_https._exceptions import CommandSyntaxError

__all__ = [
    "Command",
    "CommandResult",
    "parse_command",
    "format_value",
    "format_address",
    "operation_text",
    "redact_command",
]

Address = tuple[tuple[str, str], ...]

_BARE_VALUE = re.compile(r"^[A-Za-z0-9_.\-/:+@*]+$")
_ADDRESS_SPECIAL = set("/:=,()[]{}\\ \"")
_SECRET_VALUE = re.compile(
    r"((?:clear-text|password)\s*=>?\s*)(\"(?:[^\"\\]|\\.)*\"|[^,})\]]*)"
)


def redact_command(text: str) -> str:
    """Mask credential values (``clear-text=...``, ``password=...``) in command text."""
    return _SECRET_VALUE.sub(r"\1******", text)


# --- Formatting ---------------------------------------------------------------


def _escape_address_part(value: str) -> str:
    return "".join(f"\\{c}" if c in _ADDRESS_SPECIAL else c for c in value)


def format_address(address: Iterable[tuple[str, str]]) -> str:
    """Format ``[("subsystem", "elytron"), ("key-store", "ks")]`` as ``/subsystem=elytron/key-store=ks``."""
    parts = [
        f"{_escape_address_part(key)}={_escape_address_part(value)}"
        for key, value in address
    ]
    return "/" + "/".join(parts)


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_value(value: Any, *, quote_strings: bool = False) -> str:
    """
    Format a Python value in the CLI value language.

    Dicts become ``{key=value,...}``, lists and tuples become ``[...]`` with quoted
    strings, booleans become ``true``/``false``. Strings are written bare when that is
    unambiguous and quoted otherwise.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, Mapping):
        inner = ",".join(f"{key}={format_value(val)}" for key, val in value.items())
        return "{" + inner + "}"
    if isinstance(value, list | tuple):
        return "[" + ",".join(format_value(v, quote_strings=True) for v in value) + "]"
    if isinstance(value, str):
        if quote_strings or not _BARE_VALUE.match(value):
            return _quote(value)
        return value
    raise CommandSyntaxError(f"Can not format value of type {type(value).__name__}")


def operation_text(
    address: Iterable[tuple[str, str]],
    operation: str,
    params: Mapping[str, Any] | None = None,
) -> str:
    """Build the CLI text of an operation request."""
    text = f"{format_address(address)}:{operation}"
    if params:
        text += "(" + ",".join(f"{k}={format_value(v)}" for k, v in params.items()) + ")"
    return text


# --- Parsing ------------------------------------------------------------------


class _Parser:
    """Recursive descent parser for the CLI operation request syntax."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, message: str) -> CommandSyntaxError:
        return CommandSyntaxError(
            f"{message} at position {self.pos} in command '{redact_command(self.text)}'"
        )

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def expect(self, char: str) -> None:
        self.skip_ws()
        if self.peek() != char:
            raise self.error(f"Expected '{char}'")
        self.pos += 1

    def at_end(self) -> bool:
        self.skip_ws()
        return self.pos >= len(self.text)

    def read_escaped(self, stop: str) -> str:
        chars: list[str] = []
        while self.pos < len(self.text) and self.text[self.pos] not in stop:
            char = self.text[self.pos]
            if char == "\\":
                self.pos += 1
                if self.pos >= len(self.text):
                    raise self.error("Dangling escape")
                char = self.text[self.pos]
            chars.append(char)
            self.pos += 1
        return "".join(chars)

    def parse_address(self) -> Address:
        self.skip_ws()
        nodes: list[tuple[str, str]] = []
        if self.peek() != "/":
            return ()
        while self.peek() == "/":
            self.pos += 1
            if self.peek() in (":", ""):
                break
            key = self.read_escaped("=:/").strip()
            if self.peek() != "=" or not key:
                raise self.error("Expected 'type=name' address element")
            self.pos += 1
            value = self.read_escaped(":/").strip()
            if not value:
                raise self.error(f"Missing name for address element '{key}'")
            nodes.append((key, value))
        return tuple(nodes)

    def parse_name(self) -> str:
        self.skip_ws()
        start = self.pos
        while self.pos < len(self.text) and (
            self.text[self.pos].isalnum() or self.text[self.pos] in "-_."
        ):
            self.pos += 1
        if start == self.pos:
            raise self.error("Expected a name")
        return self.text[start : self.pos]

    def parse_assign(self) -> None:
        self.skip_ws()
        if self.text.startswith("=>", self.pos):
            self.pos += 2
        elif self.peek() == "=":
            self.pos += 1
        else:
            raise self.error("Expected '='")

    def parse_value(self) -> Any:
        self.skip_ws()
        char = self.peek()
        if char == "{":
            return self.parse_object()
        if char == "[":
            return self.parse_list()
        if char == '"':
            return self.parse_quoted()
        value = self.read_escaped(",)}]").strip()
        if not value:
            raise self.error("Expected a value")
        return value

    def parse_quoted(self) -> str:
        self.pos += 1
        value = self.read_escaped('"')
        if self.peek() != '"':
            raise self.error("Unterminated quoted string")
        self.pos += 1
        return value

    def parse_object(self) -> dict[str, Any]:
        self.expect("{")
        result: dict[str, Any] = {}
        self.skip_ws()
        if self.peek() == "}":
            self.pos += 1
            return result
        while True:
            key = self.parse_name()
            self.parse_assign()
            result[key] = self.parse_value()
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
                continue
            self.expect("}")
            return result

    def parse_list(self) -> list[Any]:
        self.expect("[")
        result: list[Any] = []
        self.skip_ws()
        if self.peek() == "]":
            self.pos += 1
            return result
        while True:
            result.append(self.parse_value())
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
                continue
            self.expect("]")
            return result

    def parse_params(self) -> dict[str, Any]:
        self.skip_ws()
        if self.peek() != "(":
            return {}
        self.pos += 1
        params: dict[str, Any] = {}
        self.skip_ws()
        if self.peek() == ")":
            self.pos += 1
            return params
        while True:
            key = self.parse_name()
            self.parse_assign()
            params[key] = self.parse_value()
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
                continue
            self.expect(")")
            return params

    def parse_operation(self) -> dict[str, Any]:
        address = self.parse_address()
        self.expect(":")
        name = self.parse_name()
        params = self.parse_params()
        if not self.at_end():
            raise self.error("Unexpected trailing text")
        for reserved in ("operation", "address"):
            if reserved in params:
                raise self.error(f"'{reserved}' can not be used as a parameter name")
        operation: dict[str, Any] = {
            "operation": name,
            "address": [{key: value} for key, value in address],
        }
        operation.update(params)
        return operation


def _parse_high_level(text: str) -> dict[str, Any]:
    try:
        words = shlex.split(text)
    except ValueError as e:
        raise CommandSyntaxError(f"Can not parse command '{redact_command(text)}': {e}") from e

    command, args = words[0], words[1:]
    flags = {arg for arg in args if arg.startswith("--") and "=" not in arg}
    named = dict(arg[2:].split("=", 1) for arg in args if arg.startswith("--") and "=" in arg)
    positional = [arg for arg in args if not arg.startswith("--")]

    if command == "reload":
        if args:
            raise CommandSyntaxError(f"Unsupported reload arguments: {args}")
        return {"operation": "reload", "address": []}

    name = named.get("name") or (positional[0] if positional else "")
    if not name:
        raise CommandSyntaxError(f"The {command} command requires a deployment name")
    address = [{"deployment": name}]

    if command == "deploy":
        return {"operation": "deploy", "address": address}
    if command == "undeploy":
        if "--keep-content" in flags:
            return {"operation": "undeploy", "address": address}
        return {
            "operation": "composite",
            "address": [],
            "steps": [
                {"operation": "undeploy", "address": address},
                {"operation": "remove", "address": address},
            ],
        }
    raise CommandSyntaxError(f"Unsupported command '{command}'")


def parse_command(text: str) -> dict[str, Any]:
    """
    Translate CLI command text into a management-model operation.

    Args:
        text (str): An operation request (``/a=b:op(x=y)``) or one of the high level
            commands ``reload``, ``deploy`` and ``undeploy``.

    Returns:
        dict[str, Any]: The operation, e.g. ``{"operation": "read-resource", "address": [{"subsystem": "elytron"}]}``.

    Raises:
        CommandSyntaxError: If the text can not be parsed.
    """
    stripped = text.strip()
    if not stripped:
        raise CommandSyntaxError("Empty command")
    if stripped[0] in "/:":
        return _Parser(stripped).parse_operation()
    return _parse_high_level(stripped)


@dataclasses.dataclass(frozen=True)
class Command:
    """
    One command sent through a ManagementSession.

    Attributes:
        text (str): CLI syntax of the command.
        description (str): Human description used in the "Attempt N to ..." log lines.
        expect_success (bool): Raise CommandFailure when the server reports failure.
        error_code (str | None): Code reported in the CommandFailure raised for this command.
        error_message (str | None): Message reported in the CommandFailure raised for this command.
    """

    text: str
    description: str
    expect_success: bool = False
    error_code: str | None = None
    error_message: str | None = None

    @property
    def operation(self) -> dict[str, Any]:
        return parse_command(self.text)

    @property
    def redacted_text(self) -> str:
        return redact_command(self.text)


@dataclasses.dataclass(frozen=True)
class CommandResult:
    """The outcome of one management operation as reported by the server."""

    success: bool
    result: Any = None
    failure_description: str | None = None
    response: Mapping[str, Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_response(cls, response: Mapping[str, Any]) -> "CommandResult":
        success = response.get("outcome") == "success"
        failure = response.get("failure-description")
        return cls(
            success=success,
            result=response.get("result"),
            failure_description=None if failure is None else str(failure),
            response=dict(response),
        )
