from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FlattenCodebaseError(Exception):
    """Base exception for errors in the flatten_codebase module."""


@dataclass(frozen=True)
class OutputWriteError(FlattenCodebaseError):
    """Raised when the output document cannot be written."""

    output: Path
    reason: str
    message: str = "The output document could not be written."
