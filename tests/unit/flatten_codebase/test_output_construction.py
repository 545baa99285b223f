from __future__ import annotations

from pathlib import Path
from xml.etree import ElementTree

import pytest

from flatten_codebase.config import AggregateResult, BinaryFileRecord, ErrorRecord, TextFileRecord
from flatten_codebase.file_manipulation import count_lines
from flatten_codebase.output_construction import (
    build_xml,
    escape_xml_attr,
    indent_content,
    read_flattened,
    split_cdata_segments,
    wrap_cdata,
)


def text_record(rel: str, content: str) -> TextFileRecord:
    return TextFileRecord(
        path=Path("/repo") / rel,
        rel=rel,
        content=content,
        size=len(content),
        lines=count_lines(content),
    )


def aggregate(*records: TextFileRecord) -> AggregateResult:
    return AggregateResult(text_files=list(records), total_files=len(records), processed_files=len(records))


@pytest.mark.unit
def test_escape_xml_attr_escapes_ampersand_first() -> None:
    assert escape_xml_attr("a&<>\"'") == "a&amp;&lt;&gt;&quot;&apos;"
    assert escape_xml_attr("&lt;") == "&amp;lt;"


@pytest.mark.unit
def test_escape_xml_attr_keeps_whitespace_as_character_references() -> None:
    assert escape_xml_attr("a\tb\nc\rd") == "a&#9;b&#10;c&#13;d"


@pytest.mark.unit
def test_indent_content_prefixes_every_line() -> None:
    assert indent_content("a\nb") == "    a\n    b"
    assert indent_content("a\n") == "    a\n    "
    assert not indent_content("").strip()


@pytest.mark.unit
def test_split_cdata_segments_cuts_inside_delimiter() -> None:
    assert split_cdata_segments("a]]>b") == ["a]]", ">b"]
    assert split_cdata_segments("no delimiter") == ["no delimiter"]
    assert split_cdata_segments("]]>]]>") == ["]]", ">]]", ">"]


@pytest.mark.unit
@pytest.mark.parametrize("text", ["", "a]]>b", "x]]]>y", "]]>", "<![CDATA[ nested ]]> ]]>>"])
def test_split_cdata_segments_rejoin_and_never_close_early(text: str) -> None:
    segments = split_cdata_segments(text)

    assert "".join(segments) == text
    assert all("]]>" not in segment for segment in segments)


@pytest.mark.unit
def test_wrap_cdata_reopens_after_each_delimiter() -> None:
    assert wrap_cdata("plain") == "<![CDATA[plain]]>"
    assert wrap_cdata("a]]>b") == "<![CDATA[a]]]]><![CDATA[>b]]>"


@pytest.mark.unit
def test_build_xml_exact_layout() -> None:
    document = build_xml(aggregate(text_record("x.py", "print(1)")))

    assert document == (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<files>\n"
        '  <file path="x.py"><![CDATA[\n'
        "    print(1)\n"
        "    ]]></file>\n"
        "</files>\n"
    )


@pytest.mark.unit
def test_build_xml_round_trips_cdata_terminator() -> None:
    document = build_xml(aggregate(text_record("weird.txt", "a]]>b")))

    elem = ElementTree.fromstring(document.encode("utf-8")).find("file")
    assert elem is not None
    assert elem.text == "\n    a]]>b\n    "
    assert read_flattened(document) == {"weird.txt": "a]]>b"}


@pytest.mark.unit
def test_build_xml_path_attribute_round_trips() -> None:
    rel = 'dir & co/<odd> "name".txt'

    document = build_xml(aggregate(text_record(rel, "x")))

    elem = ElementTree.fromstring(document.encode("utf-8")).find("file")
    assert elem is not None
    assert elem.get("path") == rel


@pytest.mark.unit
def test_build_xml_path_attribute_keeps_tabs_and_newlines() -> None:
    rel = "a\tb\nc\rd.txt"

    document = build_xml(aggregate(text_record(rel, "x")))

    elem = ElementTree.fromstring(document.encode("utf-8")).find("file")
    assert elem is not None
    assert elem.get("path") == rel
    assert read_flattened(document) == {rel: "x"}


@pytest.mark.unit
def test_build_xml_writes_crlf_verbatim_but_parsers_normalize_it() -> None:
    document = build_xml(aggregate(text_record("dos.txt", "a\r\nb")))

    assert "    a\r\n    b" in document
    assert read_flattened(document) == {"dos.txt": "a\nb"}


@pytest.mark.unit
def test_build_xml_keeps_empty_and_blank_files() -> None:
    document = build_xml(aggregate(text_record("empty.txt", ""), text_record("blank.txt", "  \n\t")))

    assert '<file path="empty.txt"><![CDATA[' in document
    assert read_flattened(document) == {"empty.txt": "", "blank.txt": "  \n\t"}


@pytest.mark.unit
def test_build_xml_round_trips_markup_like_content() -> None:
    content = '<script>alert("x")</script>\n&amp; </files>\n    indented\n'

    document = build_xml(aggregate(text_record("page.html", content)))

    assert read_flattened(document) == {"page.html": content}


@pytest.mark.unit
def test_build_xml_omits_binary_files_and_errors() -> None:
    result = AggregateResult(
        text_files=[text_record("a.txt", "hello")],
        binary_files=[BinaryFileRecord(path=Path("/repo/img.png"), rel="img.png", size=3)],
        errors=[ErrorRecord(path=Path("/repo/gone"), rel="gone", error="No such file")],
        total_files=3,
        processed_files=3,
    )

    document = build_xml(result)

    assert document.count("<file ") == 1
    assert "img.png" not in document
    assert "gone" not in document


@pytest.mark.unit
def test_build_xml_is_deterministic_and_keeps_input_order() -> None:
    result = aggregate(text_record("b.py", "b"), text_record("a.py", "a"))

    document = build_xml(result)

    assert document == build_xml(result)
    assert list(read_flattened(document)) == ["b.py", "a.py"]


@pytest.mark.unit
def test_build_xml_with_no_files() -> None:
    document = build_xml(AggregateResult())

    assert read_flattened(document) == {}
    assert document.endswith("<files>\n</files>\n")
