"""
ElementTree helpers that keep server.xml readable after an edit.

Comments and processing instructions are kept when parsing. New elements are
indented like their siblings, so only the lines that changed look different.
"""

import codecs
import re
import xml.etree.ElementTree as ET
from collections.abc import Mapping

from appserver_https._exceptions import XmlStructureError

__all__ = [
    "DEFAULT_ENCODING",
    "decode_xml",
    "parse_xml",
    "document_prolog",
    "serialize_xml",
    "insert_child",
    "find_child",
    "detect_indent",
]

_LEADING_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>\s*")
_DECLARED_ENCODING = re.compile(
    rb"^\s*<\?xml[^>]*?encoding\s*=\s*[\"']([A-Za-z][A-Za-z0-9._-]*)[\"']"
)

DEFAULT_ENCODING = "utf-8"


def decode_xml(data: bytes) -> tuple[str, str]:
    """
    Decode a document in the encoding named by its XML declaration.

    Returns:
        tuple[str, str]: The text and the encoding name as declared, ``utf-8`` when
        the document declares none.

    Raises:
        XmlStructureError: If the encoding is unknown or the bytes do not decode.
    """
    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8) :]
    match = _DECLARED_ENCODING.match(data)
    encoding = match.group(1).decode("ascii") if match else DEFAULT_ENCODING
    try:
        return data.decode(encoding), encoding
    except LookupError:
        raise XmlStructureError(
            f"The configuration document declares an unknown encoding {encoding}"
        ) from None
    except UnicodeDecodeError as e:
        raise XmlStructureError(
            f"The configuration document is not valid {encoding}: {e.reason} at byte {e.start}"
        ) from e


def parse_xml(text: str) -> ET.Element:
    """
    Parse a document, keeping comments and processing instructions.

    Raises:
        XmlStructureError: If the text is not well formed XML.
    """
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True, insert_pis=True))
    try:
        parser.feed(text)
        return parser.close()
    except ET.ParseError as e:
        raise XmlStructureError(f"The configuration document is not well formed: {e}") from e


def document_prolog(text: str, root_tag: str) -> str:
    """
    Return the text between the XML declaration and the root element.

    ElementTree drops comments outside the root element, and server.xml usually starts
    with a license comment, so the prolog is carried over verbatim.
    """
    pattern = re.compile(rf"<!--.*?-->|<{re.escape(root_tag)}[\s/>]", re.DOTALL)
    for match in pattern.finditer(text):
        if not match.group(0).startswith("<!--"):
            return _LEADING_DECLARATION.sub("", text[: match.start()])
    return ""


def serialize_xml(root: ET.Element, prolog: str = "", encoding: str = DEFAULT_ENCODING) -> str:
    """Serialize the whole document with an XML declaration and the original prolog."""
    declaration = f"<?xml version='1.0' encoding='{encoding}'?>\n"
    return declaration + prolog + ET.tostring(root, encoding="unicode") + "\n"


def detect_indent(root: ET.Element) -> str:
    """Return the indentation unit used by the document, defaulting to two spaces."""
    text = root.text or ""
    if text.strip() == "" and "\n" in text:
        unit = text.rsplit("\n", 1)[1]
        if unit and unit.strip() == "":
            return unit
    return "  "


def find_child(
    parent: ET.Element, tag: str, attributes: Mapping[str, str] | None = None
) -> ET.Element | None:
    """Return the first direct child with `tag` and all of the given attribute values."""
    for child in parent:
        if child.tag != tag:
            continue
        if all(child.get(key) == value for key, value in (attributes or {}).items()):
            return child
    return None


def insert_child(
    parent: ET.Element,
    child: ET.Element,
    *,
    depth: int,
    indent: str,
    index: int | None = None,
) -> ET.Element:
    """
    Insert `child` into `parent` with the whitespace of a pretty printed document.

    Args:
        parent: The element receiving the child.
        child: The new element. Its tail is overwritten.
        depth: Nesting depth of `parent` (the root element has depth 0).
        indent: One level of indentation.
        index: Position among the children; None appends.
    """
    child_indent = "\n" + indent * (depth + 1)
    closing_indent = "\n" + indent * depth
    if len(parent) == 0:
        parent.text = child_indent
        child.tail = closing_indent
        parent.append(child)
        return child

    if index is None or index >= len(parent):
        last = parent[-1]
        child.tail = last.tail if last.tail is not None else closing_indent
        last.tail = child_indent
        parent.append(child)
        return child

    child.tail = child_indent
    parent.insert(index, child)
    return child
