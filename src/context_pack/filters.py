from __future__ import annotations

from typing import TYPE_CHECKING

from context_pack.config import (
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_IGNORED_EXTENSIONS,
    MAX_FILE_SIZE,
    FileRecord,
    FilterResult,
    ProcessingStats,
    SkippedFile,
    SkipReason,
    normalize_extension,
)
from context_pack.logging import logger
from context_pack.patterns import matches, normalize_patterns

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from context_pack.config import RawFile


def canonical_sort_key(path: str) -> tuple[str, str]:
    """Sort key giving the canonical, deterministic file order.

    Case is folded first so ``README.md`` sits next to ``readme.txt``; the raw
    path breaks ties so the order never depends on input order.
    """
    return (path.casefold(), path)


def sort_records(records: Iterable[FileRecord]) -> list[FileRecord]:
    """Return `records` in canonical path order."""
    return sorted(records, key=lambda r: canonical_sort_key(r.path))


def has_ignored_extension(name: str, ignored_extensions: Iterable[str]) -> bool:
    """Check the last dot-separated segment of `name` against a denylist.

    Args:
        name (str): the file name
        ignored_extensions (Iterable[str]): dot-prefixed, lowercase extensions

    Returns:
        bool: True if the extension is denied
    """
    ext = "." + name.rsplit(".", 1)[-1].lower()
    return ext in set(ignored_extensions)


def precheck(
    raw: RawFile,
    *,
    ignore_patterns: Sequence[str],
    ignored_extensions: Iterable[str],
    max_size: int = MAX_FILE_SIZE,
) -> SkipReason | None:
    """Run the checks that do not need the file content, cheapest first.

    Args:
        raw (RawFile): the candidate file
        ignore_patterns (Sequence[str]): normalized ignore patterns
        ignored_extensions (Iterable[str]): denied, dot-prefixed extensions
        max_size (int): size ceiling in bytes

    Returns:
        SkipReason | None: the first failing check, or None if the file may be read
    """
    if matches(raw.path, ignore_patterns):
        return SkipReason.IGNORED_PATTERN
    if has_ignored_extension(raw.name, ignored_extensions):
        return SkipReason.IGNORED_EXTENSION
    if raw.size > max_size:
        return SkipReason.TOO_LARGE
    return None


def filter_files(
    raw_files: Iterable[RawFile],
    *,
    ignore_patterns: Sequence[str] = DEFAULT_IGNORE_PATTERNS,
    ignored_extensions: Iterable[str] = DEFAULT_IGNORED_EXTENSIONS,
    max_size: int = MAX_FILE_SIZE,
) -> FilterResult:
    """Apply ignore patterns, extension denylist, size cap and binary sniffing.

    Files are only read once the path, extension and size checks pass. A file
    that cannot be read is logged and skipped; the rest of the batch carries on.

    Args:
        raw_files (Iterable[RawFile]): the files handed over by the reader
        ignore_patterns (Sequence[str]): glob or shorthand ignore patterns
        ignored_extensions (Iterable[str]): denied extensions, e.g. ``.png``
        max_size (int): size ceiling in bytes (defaults to 500 KiB)

    Returns:
        FilterResult: kept files in canonical order, skipped files and counters
    """
    patterns = normalize_patterns(ignore_patterns)
    denied = {e for e in (normalize_extension(x) for x in ignored_extensions) if e}

    kept: list[FileRecord] = []
    skipped: list[SkippedFile] = []
    total = 0
    for raw in raw_files:
        total += 1
        reason = precheck(raw, ignore_patterns=patterns, ignored_extensions=denied, max_size=max_size)
        if reason is not None:
            skipped.append(SkippedFile(path=raw.path, reason=reason))
            continue
        try:
            content = raw.read()
            record = None if "\x00" in content else raw.to_record(content)
        except Exception as e:
            logger.warning("Failed to read file %s: %s", raw.path, e)
            skipped.append(SkippedFile(path=raw.path, reason=SkipReason.UNREADABLE, detail=str(e)))
            continue
        if record is None:
            skipped.append(SkippedFile(path=raw.path, reason=SkipReason.BINARY_CONTENT))
            continue
        kept.append(record)

    files = sort_records(kept)
    stats = ProcessingStats(
        total_files=total,
        processed_files=len(files),
        skipped_files=len(skipped),
        total_size=sum(f.size for f in files),
    )
    return FilterResult(files=tuple(files), skipped=tuple(skipped), stats=stats)
