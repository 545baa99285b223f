from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from flatten_codebase import file_manipulation
from flatten_codebase.config import SAMPLE_SIZE, FileKind
from flatten_codebase.file_manipulation import classify_file, is_binary_file

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
@pytest.mark.parametrize("name", ["logo.png", "LOGO.PNG", "archive.tar", "font.woff2", "data.sqlite"])
def test_known_binary_extensions_are_binary_without_reading(
    tmp_path: Path,
    name: str,
    mocker: MockerFixture,
) -> None:
    path = tmp_path / name
    path.write_text("plain text after all", encoding="utf-8")
    open_spy = mocker.spy(Path, "open")

    assert classify_file(path) is FileKind.BINARY
    open_spy.assert_not_called()


@pytest.mark.unit
def test_empty_file_is_text(tmp_path: Path) -> None:
    path = tmp_path / "empty"
    path.write_bytes(b"")

    assert classify_file(path) is FileKind.TEXT


@pytest.mark.unit
def test_null_byte_in_sample_is_binary(tmp_path: Path) -> None:
    path = tmp_path / "blob"
    path.write_bytes(b"a" * (SAMPLE_SIZE - 1) + b"\x00")

    assert is_binary_file(path)


@pytest.mark.unit
def test_null_byte_beyond_sample_is_text(tmp_path: Path) -> None:
    path = tmp_path / "late_null.txt"
    path.write_bytes(b"a" * SAMPLE_SIZE + b"\x00tail")

    assert classify_file(path) is FileKind.TEXT


@pytest.mark.unit
def test_small_text_file_is_text(tmp_path: Path) -> None:
    path = tmp_path / "script"
    path.write_text("#!/bin/sh\necho hi\n", encoding="utf-8")

    assert not is_binary_file(path)


@pytest.mark.unit
def test_unreadable_file_defaults_to_text(tmp_path: Path, mocker: MockerFixture) -> None:
    mock_logger = mocker.patch.object(file_manipulation, "logger")

    assert classify_file(tmp_path / "missing.py") is FileKind.TEXT
    mock_logger.warning.assert_called_once()
