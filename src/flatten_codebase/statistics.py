from __future__ import annotations

import math
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from flatten_codebase.config import CHARS_PER_TOKEN

if TYPE_CHECKING:
    from flatten_codebase.config import AggregateResult

KIB = 1024
MIB = 1024 * 1024


class Statistics(BaseModel):
    """Summary of a flattening run."""

    model_config = ConfigDict(frozen=True)

    total_files: int = Field(..., ge=0, description="Text plus binary files")
    text_files: int = Field(..., ge=0)
    binary_files: int = Field(..., ge=0)
    error_files: int = Field(..., ge=0)
    total_size: int = Field(..., ge=0, description="Text characters plus binary bytes")
    document_size: int = Field(..., ge=0, description="Length of the XML document")
    total_lines: int = Field(..., ge=0)
    estimated_tokens: int = Field(..., ge=0, description="Rough estimate, 4 characters per token")


def format_size(size: int) -> str:
    """Render a size in bytes as B, KB or MB.

    Args:
        size (int): the size in bytes

    Returns:
        str: e.g. ``"512 B"``, ``"1.5 KB"``, ``"2.0 MB"``
    """
    if size < KIB:
        return f"{size} B"
    if size < MIB:
        return f"{size / KIB:.1f} KB"
    return f"{size / MIB:.1f} MB"


def compute_statistics(result: AggregateResult, document: str) -> Statistics:
    """Compute the summary statistics of a run.

    Args:
        result (AggregateResult): the aggregated files
        document (str): the rendered XML document

    Returns:
        Statistics: counts, sizes and the token estimate
    """
    return Statistics(
        total_files=len(result.text_files) + len(result.binary_files),
        text_files=len(result.text_files),
        binary_files=len(result.binary_files),
        error_files=len(result.errors),
        total_size=result.total_size,
        document_size=len(document),
        total_lines=result.total_lines,
        estimated_tokens=math.ceil(len(document) / CHARS_PER_TOKEN),
    )
