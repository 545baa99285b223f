from __future__ import annotations

import os
import re
import stat
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING

from pathspec import GitIgnoreSpec

from flatten_codebase.config import (
    BINARY_EXTENSIONS,
    BUILTIN_IGNORES,
    IGNORE_FILE_NAME,
    SAMPLE_SIZE,
    VCS_DIR,
    AggregateResult,
    BinaryFileRecord,
    CandidateFile,
    ErrorRecord,
    FileKind,
    IgnoreRule,
    TextFileRecord,
)
from flatten_codebase.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flatten_codebase.config import ProgressSink


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
            Bytes that are not valid UTF-8 become U+FFFD.
    """
    try:
        rel = path.relative_to(root).as_posix()
    except ValueError:
        rel = str(path)
    return os.fsencode(rel).decode("utf-8", errors="replace")


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> GitIgnoreSpec | None:
    """Compile a single ignore pattern.

    A pattern with a leading ``/`` is anchored at the root; any other pattern
    matches at any depth.

    Args:
        pattern (str): gitignore-style glob (``*``, ``**``, ``?``, ``[...]``)

    Returns:
        GitIgnoreSpec | None: the compiled pattern, or None if it is malformed
    """
    glob = pattern if pattern.startswith(("/", "**/")) else f"**/{pattern}"
    try:
        return GitIgnoreSpec.from_lines([glob])
    except (ValueError, re.error):
        return None


def match_pattern(rel: str, pattern: str) -> bool:
    """Check whether a relative path matches a single pattern.

    Malformed patterns never match.

    Args:
        rel (str): path relative to the root, POSIX separators
        pattern (str): gitignore-style glob

    Returns:
        bool: True if `rel` matches `pattern`
    """
    spec = compile_pattern(pattern)
    return spec is not None and spec.match_file(rel)


def parse_ignore_lines(lines: Sequence[str]) -> list[IgnoreRule]:
    """Turn ignore-file lines into rules.

    Blank lines and ``#`` comments are dropped, ``dir/`` becomes ``dir/**``,
    and ``!pattern`` becomes a negated rule.

    Args:
        lines (Sequence[str]): raw lines of the ignore file

    Returns:
        list[IgnoreRule]: the rules, in declaration order
    """
    rules: list[IgnoreRule] = []
    for line in lines:
        pattern = line.strip()
        if not pattern or pattern.startswith("#"):
            continue
        if pattern.endswith("/"):
            pattern += "**"
        negated = pattern.startswith("!")
        if negated:
            pattern = pattern[1:]
        if pattern:
            rules.append(IgnoreRule(pattern=pattern, negated=negated))
    return rules


def load_ignore_rules(root: Path) -> list[IgnoreRule]:
    """Load the ignore rules found at the top of `root`.

    Only the root ignore file is read. A missing or unreadable file yields no rules.

    Args:
        root (Path): the directory to look into

    Returns:
        list[IgnoreRule]: the rules, in declaration order
    """
    ignore_file = root / IGNORE_FILE_NAME
    if not ignore_file.is_file():
        return []
    try:
        text = ignore_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read %s, ignoring it: %s", ignore_file, e)
        return []
    return parse_ignore_lines(text.split("\n"))


def walk_files(root: Path) -> list[CandidateFile]:
    """Walk the directory tree rooted at `root` and return every regular file.

    Hidden files are kept, VCS metadata directories are pruned and symbolic
    links are neither followed nor returned.

    Args:
        root (Path): the root directory to walk

    Returns:
        list[CandidateFile]: the files found, sorted by relative path
    """
    results: list[CandidateFile] = []
    for dirpath, dirs, files in os.walk(root, followlinks=False):
        dirs[:] = sorted(d for d in dirs if d != VCS_DIR)
        for name in files:
            p = Path(dirpath) / name
            try:
                mode = p.lstat().st_mode
            except OSError as e:
                logger.warning("Skipping %s: %s", p, e)
                continue
            if stat.S_ISREG(mode):
                results.append(CandidateFile(path=p, rel=relpath(p, root)))
    return sorted(results, key=lambda c: c.rel)


def compile_rules(patterns: Sequence[str]) -> list[GitIgnoreSpec]:
    """Compile patterns, warning about and dropping malformed ones.

    Args:
        patterns (Sequence[str]): the patterns to compile

    Returns:
        list[GitIgnoreSpec]: the compiled patterns
    """
    compiled: list[GitIgnoreSpec] = []
    for pattern in patterns:
        spec = compile_pattern(pattern)
        if spec is None:
            logger.warning("Invalid ignore pattern %r, it will never match", pattern)
            continue
        compiled.append(spec)
    return compiled


def filter_files(
    candidates: Sequence[CandidateFile],
    rules: Sequence[IgnoreRule],
) -> list[CandidateFile]:
    """Drop the candidates excluded by `rules`.

    A candidate is excluded when any exclude rule matches it, unless a negated
    rule also matches it. Negated rules always win, whatever the declaration order.

    Args:
        candidates (Sequence[CandidateFile]): the files to filter
        rules (Sequence[IgnoreRule]): the ignore rules

    Returns:
        list[CandidateFile]: the kept candidates, in input order
    """
    excludes = compile_rules([r.pattern for r in rules if not r.negated])
    negations = compile_rules([r.pattern for r in rules if r.negated])
    if not excludes:
        return list(candidates)

    kept: list[CandidateFile] = []
    for candidate in candidates:
        ignored = any(spec.match_file(candidate.rel) for spec in excludes)
        if ignored:
            ignored = not any(spec.match_file(candidate.rel) for spec in negations)
        if not ignored:
            kept.append(candidate)
    return kept


def discover_files(
    root: Path,
    rules: Sequence[IgnoreRule] | None = None,
    exclude_paths: Sequence[str] = (),
) -> list[CandidateFile]:
    """Collect the files of `root` that should be flattened.

    Built-in exclusions (VCS metadata, the tool's own outputs and
    `exclude_paths`) are applied first and cannot be re-included.

    Args:
        root (Path): the root directory
        rules (Sequence[IgnoreRule] | None): ignore rules; loaded from `root` when None
        exclude_paths (Sequence[str]): relative paths to leave out, e.g. the output file

    Returns:
        list[CandidateFile]: the candidates, sorted by relative path
    """
    if rules is None:
        rules = load_ignore_rules(root)
    builtins = compile_rules(BUILTIN_IGNORES)
    exc_paths = [p.strip().strip("/").replace("\\", "/") for p in exclude_paths if p.strip()]

    candidates: list[CandidateFile] = []
    for candidate in walk_files(root):
        r = candidate.rel
        if any(r == ep or r.startswith(ep + "/") for ep in exc_paths):
            continue
        if any(spec.match_file(r) for spec in builtins):
            continue
        candidates.append(candidate)
    return filter_files(candidates, rules)


def classify_file(path: Path) -> FileKind:
    """Classify a file as binary or text.

    Known binary extensions are binary without reading. Otherwise, an empty
    file is text, and a file is binary iff its first 1024 bytes contain a NUL.
    Errors default to text, leaving the read step to report them.

    Args:
        path (Path): the file to classify

    Returns:
        FileKind: the verdict
    """
    if path.suffix.lower() in BINARY_EXTENSIONS:
        return FileKind.BINARY
    try:
        if path.stat().st_size == 0:
            return FileKind.TEXT
        with path.open("rb") as f:
            sample = f.read(SAMPLE_SIZE)
    except OSError as e:
        logger.warning("Could not determine if file is binary: %s - %s", path, e)
        return FileKind.TEXT
    return FileKind.BINARY if b"\x00" in sample else FileKind.TEXT


def is_binary_file(path: Path) -> bool:
    """Check if a file is binary.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is binary, False otherwise.
    """
    return classify_file(path) is FileKind.BINARY


def read_text_content(path: Path) -> str:
    """Read a whole text file without translating line endings."""
    with path.open(encoding="utf-8", errors="replace", newline="") as f:
        return f.read()


def count_lines(content: str) -> int:
    """Count ``\\n``-delimited lines; an unterminated last line counts."""
    return content.count("\n") + 1


def aggregate_file_contents(
    candidates: Sequence[CandidateFile],
    root: Path,
    progress: ProgressSink | None = None,
) -> AggregateResult:
    """Read and classify every candidate.

    Files are processed in order. A file that cannot be read becomes an
    `ErrorRecord` and processing moves on.

    Args:
        candidates (Sequence[CandidateFile]): the files to read
        root (Path): the root the candidates were discovered from
        progress (ProgressSink | None): called as ``progress(processed, total, rel)``
            before each file

    Returns:
        AggregateResult: text, binary and error records plus counters
    """
    total = len(candidates)
    text_files: list[TextFileRecord] = []
    binary_files: list[BinaryFileRecord] = []
    errors: list[ErrorRecord] = []
    processed = 0

    for candidate in candidates:
        rel = candidate.rel or relpath(candidate.path, root)
        if progress is not None:
            progress(processed, total, rel)
        try:
            if is_binary_file(candidate.path):
                binary_files.append(
                    BinaryFileRecord(path=candidate.path, rel=rel, size=candidate.path.stat().st_size),
                )
            else:
                content = read_text_content(candidate.path)
                text_files.append(
                    TextFileRecord(
                        path=candidate.path,
                        rel=rel,
                        content=content,
                        size=len(content),
                        lines=count_lines(content),
                    ),
                )
        except OSError as e:
            logger.warning("Could not read file %s: %s", rel, e)
            errors.append(ErrorRecord(path=candidate.path, rel=rel, error=str(e)))
        processed += 1

    return AggregateResult(
        text_files=text_files,
        binary_files=binary_files,
        errors=errors,
        total_files=total,
        processed_files=processed,
    )
