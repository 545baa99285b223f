from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field

from flatten_codebase.config import DEFAULT_OUTPUT

ENV_FILE = find_dotenv(usecwd=True)
OUTPUT_ENV_VAR = "FLATTEN_OUTPUT"


def default_output() -> Path:
    """Output path from the environment, the nearest `.env`, or the built-in name.

    Returns:
        Path: the default output path
    """
    env_file_values = dotenv_values(ENV_FILE) if ENV_FILE else {}
    value = os.environ.get(OUTPUT_ENV_VAR) or env_file_values.get(OUTPUT_ENV_VAR)
    return Path(value or DEFAULT_OUTPUT)


class Settings(BaseModel):
    """Configuration settings for the flatten_codebase module."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    repo: Path = Field(default_factory=Path.cwd, description="Root directory to flatten.")
    output: Path = Field(default_factory=default_output, description="Output XML file.")
    log_file: str = Field(default="", description="Log file path.")
    no_progress: bool = Field(default=False, description="Hide the progress bar.")
