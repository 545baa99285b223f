from __future__ import annotations

import io
from typing import TYPE_CHECKING
from xml.etree import ElementTree

from flatten_codebase.config import INDENT

if TYPE_CHECKING:
    from flatten_codebase.config import AggregateResult

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
CDATA_OPEN = "<![CDATA["
CDATA_CLOSE = "]]>"


def escape_xml_attr(text: str) -> str:
    """Escape XML special characters for use in a double-quoted attribute.

    The ampersand goes first so that the other entities are not escaped twice.
    Tab, line feed and carriage return become character references, since
    parsers normalize them to spaces otherwise.

    Args:
        text (str): the raw attribute value

    Returns:
        str: the escaped value
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
        .replace("\t", "&#9;")
        .replace("\n", "&#10;")
        .replace("\r", "&#13;")
    )


def indent_content(content: str) -> str:
    """Prefix every line of `content`, the first one included, with 4 spaces."""
    return "\n".join(f"{INDENT}{line}" for line in content.split("\n"))


def split_cdata_segments(text: str) -> list[str]:
    """Split `text` so that no segment contains the CDATA closing delimiter.

    At each ``]]>`` the text is cut between ``]]`` and ``>``: the ``]]`` ends
    one segment and the ``>`` starts the next. Joining the segments gives back `text`.

    Args:
        text (str): arbitrary text

    Returns:
        list[str]: the segments, each safe to wrap in its own CDATA section
    """
    parts = text.split(CDATA_CLOSE)
    last = len(parts) - 1
    segments: list[str] = []
    for i, part in enumerate(parts):
        head = ">" if i > 0 else ""
        tail = "]]" if i < last else ""
        segments.append(f"{head}{part}{tail}")
    return segments


def wrap_cdata(text: str) -> str:
    """Wrap `text` in as many CDATA sections as needed to embed it verbatim."""
    return "".join(f"{CDATA_OPEN}{segment}{CDATA_CLOSE}" for segment in split_cdata_segments(text))


def build_xml(result: AggregateResult) -> str:
    """Build the XML document embedding every text file of `result`.

    Each file becomes a ``<file path="...">`` element whose content is indented
    by 4 spaces and wrapped in CDATA. Binary files and errors are left out.
    Empty files still get an (empty) CDATA block. Content is written verbatim,
    so control characters that XML 1.0 forbids (form feed, ESC, ...) make the
    document ill-formed for strict parsers.

    Args:
        result (AggregateResult): the aggregated files

    Returns:
        str: the XML document
    """
    out = io.StringIO()
    out.write(f"{XML_DECLARATION}\n")
    out.write("<files>\n")
    for rec in result.text_files:
        out.write(f'  <file path="{escape_xml_attr(rec.rel)}">')
        out.write(wrap_cdata(f"\n{indent_content(rec.content)}\n{INDENT}"))
        out.write("</file>\n")
    out.write("</files>\n")
    return out.getvalue()


def read_flattened(document: str) -> dict[str, str]:
    """Parse a document produced by `build_xml` back into file contents.

    The XML parser normalizes line endings, so CRLF and lone CR come back as
    LF; other content comes back unchanged.

    Args:
        document (str): the XML document

    Returns:
        dict[str, str]: file contents keyed by relative path, in document order
    """
    root = ElementTree.fromstring(document.encode("utf-8"))  # noqa: S314
    files: dict[str, str] = {}
    for elem in root.iter("file"):
        body = (elem.text or "").removeprefix("\n").removesuffix(f"\n{INDENT}")
        files[elem.get("path", "")] = "\n".join(line.removeprefix(INDENT) for line in body.split("\n"))
    return files
