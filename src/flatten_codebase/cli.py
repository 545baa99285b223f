"""
flatten_codebase — Flatten a project directory into a single XML document.

Every text file under the root (current directory by default) is embedded in
a ``<files>`` document, one ``<file path="...">`` element per file with its
content in CDATA. Files matched by the root ``.gitignore`` are left out
(``!pattern`` re-includes), as are the ``.git`` directory and the tool's own
output. Binary files are counted but never embedded.

Usage
-----
Run `python -m flatten_codebase.cli --help` for full options. Common examples:
    - Flatten the current directory:
        flatten-codebase

    - Choose the output file:
        flatten-codebase --output context.xml

    - Flatten another directory, logging to a file:
        flatten-codebase --repo ../project --log-file flatten.log
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import TYPE_CHECKING

from tqdm import tqdm

from flatten_codebase import __version__
from flatten_codebase.exceptions import OutputWriteError
from flatten_codebase.file_manipulation import aggregate_file_contents, discover_files, load_ignore_rules
from flatten_codebase.logging import logger, setup_logging
from flatten_codebase.output_construction import build_xml
from flatten_codebase.settings import Settings
from flatten_codebase.statistics import compute_statistics, format_size

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flatten_codebase.config import AggregateResult, ProgressSink
    from flatten_codebase.statistics import Statistics


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse command-line arguments into settings.

    Args:
        argv (Sequence[str] | None): the arguments, `sys.argv[1:]` when None

    Returns:
        Settings: the resulting settings
    """
    p = argparse.ArgumentParser(
        prog="flatten-codebase",
        description="Flatten a codebase into a single XML document for LLM consumption.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--repo", type=str, default=".", help="Root directory to flatten.")
    p.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Output file path (default: $FLATTEN_OUTPUT or flattened-codebase.xml).",
    )
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument("--no-progress", action="store_true", help="Hide the progress bar.")
    args = p.parse_args(argv)
    return Settings(**{k: v for k, v in vars(args).items() if v is not None})


def output_exclusions(repo: Path, output: Path) -> list[str]:
    """Return the output path relative to `repo` if it lies inside it.

    Args:
        repo (Path): the resolved root directory
        output (Path): the output file

    Returns:
        list[str]: zero or one relative path to exclude from discovery
    """
    try:
        return [output.resolve().relative_to(repo).as_posix()]
    except ValueError:
        return []


def progress_bar_sink(bar: tqdm) -> ProgressSink:
    """Adapt a tqdm bar to the aggregator's progress callback."""

    def advance(processed: int, total: int, rel: str) -> None:  # noqa: ARG001
        bar.set_postfix_str(rel, refresh=False)
        bar.update(1)

    return advance


def write_output(path: Path, content: str) -> None:
    """Write the document to `path`.

    Args:
        path (Path): the destination
        content (str): the document

    Raises:
        OutputWriteError: if the file cannot be written
    """
    try:
        path.write_text(content, encoding="utf-8", newline="")
    except (OSError, UnicodeError) as e:
        raise OutputWriteError(output=path, reason=str(e)) from e


def print_summary(output: Path, result: AggregateResult, stats: Statistics) -> None:
    """Print the completion summary to stdout."""
    print("\nCompletion Summary:")
    print(f"Successfully processed {result.processed_files}/{result.total_files} files into {output}")
    print(f"Output file: {output.resolve()}")
    print(f"Total source size: {format_size(stats.total_size)}")
    print(f"Generated XML size: {format_size(stats.document_size)}")
    print(f"Total lines of code: {stats.total_lines:,}")
    print(f"Estimated tokens: {stats.estimated_tokens:,}")
    print(
        f"File breakdown: {stats.text_files} text, {stats.binary_files} binary, {stats.error_files} errors",
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Flatten the repository and write the XML document.

    Per-file read errors are reported in the summary and do not change the
    exit status; only a failed write of the output does.

    Args:
        argv (Sequence[str] | None): the arguments, `sys.argv[1:]` when None

    Returns:
        int: 0 on success, 1 if the output could not be written
    """
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    repo = Path(settings.repo).resolve()
    out_path = Path(settings.output)
    print(f"Flattening codebase to: {out_path}")

    rules = load_ignore_rules(repo)
    candidates = discover_files(repo, rules, exclude_paths=output_exclusions(repo, out_path))
    logger.info("Found %s files to include", len(candidates))

    with tqdm(
        total=len(candidates),
        desc="Processing files",
        unit="file",
        disable=settings.no_progress,
    ) as bar:
        result = aggregate_file_contents(candidates, repo, progress=progress_bar_sink(bar))
    if result.errors:
        logger.warning("%s files could not be read", len(result.errors))

    document = build_xml(result)
    try:
        write_output(out_path, document)
    except OutputWriteError as e:
        logger.error("%s %s: %s", e.message, e.output, e.reason)  # noqa: TRY400
        return 1

    print_summary(out_path, result, compute_statistics(result, document))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
