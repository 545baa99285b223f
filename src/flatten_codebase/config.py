from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, computed_field

if TYPE_CHECKING:
    from collections.abc import Callable

    ProgressSink = Callable[[int, int, str], None]

_ = Path()

DEFAULT_OUTPUT = "flattened-codebase.xml"
IGNORE_FILE_NAME = ".gitignore"
VCS_DIR = ".git"

# Never ingested, whatever the ignore file says.
BUILTIN_IGNORES: tuple[str, ...] = (
    f"/{VCS_DIR}/**",
    f"/{DEFAULT_OUTPUT}",
    "/repomix-output.xml",
)

SAMPLE_SIZE = 1024
INDENT = "    "
CHARS_PER_TOKEN = 4

BINARY_EXTENSIONS = frozenset({
    # images
    ".bmp",
    ".gif",
    ".ico",
    ".jpeg",
    ".jpg",
    ".png",
    ".svg",
    # documents
    ".doc",
    ".docx",
    ".pdf",
    ".ppt",
    ".pptx",
    ".xls",
    ".xlsx",
    # archives
    ".7z",
    ".gz",
    ".rar",
    ".tar",
    ".zip",
    # executables and libraries
    ".dll",
    ".dylib",
    ".exe",
    ".so",
    # audio / video
    ".avi",
    ".mov",
    ".mp3",
    ".mp4",
    ".wav",
    # fonts
    ".otf",
    ".ttf",
    ".woff",
    ".woff2",
    # data
    ".bin",
    ".dat",
    ".db",
    ".sqlite",
})


class FileKind(StrEnum):
    """Binary/text verdict of the classifier."""

    TEXT = auto()
    BINARY = auto()


class IgnoreRule(BaseModel):
    """A single ignore pattern.

    Attributes:
        pattern: Glob pattern, already normalized (``dir/`` rewritten to ``dir/**``).
        negated: True for re-inclusion rules (``!pattern`` in the ignore file).
    """

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(..., min_length=1, description="Normalized glob pattern")
    negated: bool = Field(default=False, description="Re-include instead of exclude")


class CandidateFile(BaseModel):
    """A discovered file, pending classification."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the root, POSIX separators")


class TextFileRecord(BaseModel):
    """A text file with its full content.

    Attributes:
        path: Absolute path to the file on disk.
        rel: Path relative to the root.
        content: Decoded content, line endings untouched.
        size: Length of `content` in characters.
        lines: Number of segments when splitting `content` on ``\\n``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the root")
    content: str = Field(..., description="Raw file content")
    size: int = Field(..., ge=0, description="Content length in characters")
    lines: int = Field(..., ge=1, description="Line count")


class BinaryFileRecord(BaseModel):
    """A binary file; the content is never read."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the root")
    size: int = Field(..., ge=0, description="File size in bytes")


class ErrorRecord(BaseModel):
    """A file that could not be read."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the root")
    error: str = Field(..., description="Error description")


class AggregateResult(BaseModel):
    """Outcome of reading every candidate file.

    Each candidate ends up in exactly one of `text_files`, `binary_files` or `errors`.
    """

    model_config = ConfigDict(frozen=True)

    text_files: list[TextFileRecord] = Field(default_factory=list)
    binary_files: list[BinaryFileRecord] = Field(default_factory=list)
    errors: list[ErrorRecord] = Field(default_factory=list)
    total_files: int = Field(default=0, ge=0, description="Number of candidates")
    processed_files: int = Field(default=0, ge=0, description="Number of candidates visited")

    @computed_field
    @property
    def total_lines(self) -> int:
        """Sum of line counts over text files."""
        return sum(f.lines for f in self.text_files)

    @computed_field
    @property
    def total_size(self) -> int:
        """Text sizes (characters) plus binary sizes (bytes)."""
        return sum(f.size for f in self.text_files) + sum(f.size for f in self.binary_files)
