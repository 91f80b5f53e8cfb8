"""Glob and shorthand path matching used by ignore rules and bundles.

Two pattern flavours are supported:

- **Shorthand**: a bare name with neither ``/`` nor ``*`` (e.g. ``node_modules``)
  matches when it appears as a whole path segment anywhere in the path, the
  way a one-line ignore-file rule does.
- **Glob**: ``**`` matches any run of characters including ``/``, ``*`` any
  run excluding ``/`` and ``?`` exactly one character. The slash after ``**``
  stays literal, so ``src/**/*.ts`` needs at least one directory below
  ``src`` and does not cover ``src/app.ts``. Globs are anchored on the full
  relative path and matched case-insensitively.

This is deliberately not a ``.gitignore`` engine: there is no negation and no
nested ignore-file discovery.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING

from context_pack.exceptions import InvalidPatternError
from context_pack.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

_GLOB_TOKEN = re.compile(r"\*\*|\*|\?")
_GLOB_TRANSLATION = {
    "**": ".*",
    "*": "[^/]*",
    "?": ".",
}


def normalize_path(path: str) -> str:
    """Return `path` with every backslash turned into a forward slash."""
    return path.replace("\\", "/")


def normalize_patterns(patterns: Iterable[str]) -> list[str]:
    """Normalize a sequence of patterns.

    Strip whitespace, replace backslashes with forward slashes and drop
    empty entries.

    Args:
        patterns (Iterable[str]): the patterns to normalize

    Returns:
        list[str]: the normalized patterns, in input order
    """
    out: list[str] = []
    for p in patterns:
        p2 = (p or "").strip()
        if not p2:
            continue
        out.append(normalize_path(p2))
    return out


def is_shorthand(pattern: str) -> bool:
    """Whether `pattern` is a bare segment name rather than a glob."""
    return "/" not in pattern and "*" not in pattern


@lru_cache(maxsize=1024)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into an anchored, case-insensitive regex.

    Everything but the three wildcards is matched literally.

    Args:
        pattern (str): the glob pattern, e.g. ``src/**/*.ts``

    Raises:
        InvalidPatternError: if the translated expression does not compile.

    Returns:
        re.Pattern[str]: the compiled full-path expression
    """
    pieces: list[str] = []
    pos = 0
    for m in _GLOB_TOKEN.finditer(pattern):
        pieces.append(re.escape(pattern[pos : m.start()]))
        pieces.append(_GLOB_TRANSLATION[m.group()])
        pos = m.end()
    pieces.append(re.escape(pattern[pos:]))
    try:
        return re.compile(f"^{''.join(pieces)}$", re.IGNORECASE)
    except re.error as e:
        raise InvalidPatternError(pattern=pattern, message=str(e)) from e


def _segment_match(path: str, name: str) -> bool:
    return path == name or path.startswith(f"{name}/") or path.endswith(f"/{name}") or f"/{name}/" in path


def pattern_matches(path: str, pattern: str) -> bool:
    """Check a single, already normalized path against one pattern.

    A pattern that cannot be compiled is logged and never matches.

    Args:
        path (str): slash-normalized relative path
        pattern (str): glob or shorthand pattern

    Returns:
        bool: True if the pattern matches the path
    """
    if not pattern:
        return False
    if pattern == path:
        return True
    if is_shorthand(pattern):
        return _segment_match(path, pattern)
    try:
        regex = glob_to_regex(pattern)
    except InvalidPatternError as e:
        logger.warning("Invalid pattern %s: %s", pattern, e.message)
        return False
    return regex.match(path) is not None


def matches(path: str, patterns: Sequence[str]) -> bool:
    """Check if a path matches at least one of the provided patterns.

    Args:
        path (str): the relative path of the file, e.g. ``src/components/App.tsx``
        patterns (Sequence[str]): glob or shorthand patterns

    Returns:
        bool: True on the first matching pattern, False if none match
    """
    normalized = normalize_path(path)
    return any(pattern_matches(normalized, p) for p in patterns)
