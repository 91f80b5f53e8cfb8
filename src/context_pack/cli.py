"""
context_pack: pack a project's files into LLM-ready context.

Overview
--------
Files are discovered (``git ls-files`` when available, a filesystem walk
otherwise), filtered by ignore patterns, denied extensions, a size cap and a
binary-content check, optionally narrowed to a named bundle, then rendered as
XML, Markdown or JSON. With ``--split`` the output is packed into parts of at
most ``--max-tokens`` (estimated at four characters per token); a file too
large for one part is cut, preferably at a line boundary, and continued in
the next part.

Usage
-----
Run ``python -m context_pack.cli --help`` for full options. Common examples:
    - Whole project as one XML document:
        context-pack --output context.xml

    - Backend bundle as Markdown, split into 8k-token parts:
        context-pack --bundle default-backend --split --max-tokens 8000 --output backend.md

    - Print the tree and extension statistics as well:
        context-pack --output context.json --tree --stats
"""

from __future__ import annotations

import argparse
import re
from pathlib import Path
from typing import TYPE_CHECKING

from context_pack import __version__
from context_pack.config import (
    ALL_BUNDLES,
    DEFAULT_BUNDLES,
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_IGNORED_EXTENSIONS,
    DEFAULT_MAX_TOKENS,
    MAX_FILE_SIZE,
    OutputFormat,
)
from context_pack.file_manipulation import discover_files, make_raw_files
from context_pack.filters import filter_files
from context_pack.logging import logger, setup_logging
from context_pack.output_construction import file_type_stats, render_tree
from context_pack.pipeline import ContextCache
from context_pack.settings import (
    ProjectConfig,
    Settings,
    env_default,
    find_project_config,
    load_project_config,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from context_pack.config import Chunk

_SUFFIX_FORMATS = {
    ".xml": OutputFormat.XML,
    ".md": OutputFormat.MARKDOWN,
    ".markdown": OutputFormat.MARKDOWN,
    ".json": OutputFormat.JSON,
}


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        prog="context-pack",
        description="Pack project files into LLM context (xml/md/json).",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--repo", type=str, default=".", help="Project root.")
    p.add_argument(
        "--output",
        type=str,
        required=True,
        help="Output file (.xml, .md or .json).",
    )
    p.add_argument(
        "--format",
        type=str,
        choices=[f.value for f in OutputFormat],
        default="",
        help="Force format (default: from the output suffix, else xml).",
    )
    p.add_argument("--no-git", action="store_true", help="Do not use git ls-files.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument(
        "--config",
        type=str,
        default=env_default("CONTEXT_PACK_CONFIG"),
        help="YAML project config (ignore rules and bundles).",
    )

    p.add_argument(
        "--bundle",
        type=str,
        default=ALL_BUNDLES,
        help="Bundle id to export (default: all files).",
    )
    p.add_argument(
        "--split",
        action="store_true",
        help="Split output into parts bounded by --max-tokens.",
    )
    p.add_argument(
        "--max-tokens",
        type=int,
        default=int(env_default("CONTEXT_PACK_MAX_TOKENS", str(DEFAULT_MAX_TOKENS))),
        help="Approximate token budget per part (4 chars per token).",
    )

    p.add_argument(
        "--ignore",
        action="append",
        default=[],
        help="Extra ignore pattern, glob or bare name (repeatable).",
    )
    p.add_argument(
        "--ignore-ext",
        action="append",
        default=[],
        help="Extra denied extension, e.g. .csv (repeatable).",
    )
    p.add_argument(
        "--no-default-ignores",
        action="store_true",
        help="Do not apply the built-in ignore patterns and extensions.",
    )
    p.add_argument(
        "--max-file-size",
        type=int,
        default=MAX_FILE_SIZE,
        help="Skip files larger than this many bytes.",
    )

    p.add_argument("--tree", action="store_true", help="Print the project tree.")
    p.add_argument("--stats", action="store_true", help="Print per-extension statistics.")
    args = p.parse_args(argv)
    return Settings(**vars(args))


def resolve_format(settings: Settings) -> OutputFormat:
    """Pick the output format: explicit `--format`, else the output suffix, else xml."""
    fmt = (settings.format or "").strip().lower()
    if fmt:
        return OutputFormat(fmt)
    return _SUFFIX_FORMATS.get(Path(settings.output).suffix.lower(), OutputFormat.XML)


def chunk_output_path(output: Path, index: int, total: int) -> Path:
    """Where chunk `index` of `total` is written; a single chunk goes to `output` itself."""
    if total == 1:
        return output
    return output.with_name(f"{output.stem}.part{index}-of-{total}{output.suffix}")


def stale_part_files(output: Path) -> list[Path]:
    """Part files named after `output`, e.g. ``ctx.part2-of-5.md`` for ``ctx.md``."""
    if not output.parent.is_dir():
        return []
    pattern = re.compile(rf"{re.escape(output.stem)}\.part\d+-of-\d+{re.escape(output.suffix)}")
    return sorted(p for p in output.parent.iterdir() if p.is_file() and pattern.fullmatch(p.name))


def write_chunks(output: Path, chunks: Sequence[Chunk]) -> list[Path]:
    for stale in stale_part_files(output):
        logger.info("Removing stale part file %s", stale)
        stale.unlink()
    written: list[Path] = []
    for chunk in chunks:
        path = chunk_output_path(output, chunk.index, chunk.total)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(chunk.content, encoding="utf-8")
        written.append(path)
    return written


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    repo = Path(settings.repo).resolve()

    config_path = find_project_config(repo, settings.config)
    project = load_project_config(config_path) if config_path else ProjectConfig()

    defaults_on = not settings.no_default_ignores
    ignore_patterns = [
        *(DEFAULT_IGNORE_PATTERNS if defaults_on else ()),
        *project.ignore_patterns,
        *settings.ignore,
    ]
    ignored_extensions = [
        *(DEFAULT_IGNORED_EXTENSIONS if defaults_on else ()),
        *project.ignored_extensions,
        *settings.ignore_ext,
    ]
    bundles = project.bundles or DEFAULT_BUNDLES

    paths = discover_files(repo, ignore_patterns, no_git=settings.no_git)
    result = filter_files(
        make_raw_files(paths, repo),
        ignore_patterns=ignore_patterns,
        ignored_extensions=ignored_extensions,
        max_size=settings.max_file_size,
    )
    logger.info(
        "Filtered %d of %d files (%d skipped)",
        result.stats.processed_files,
        result.stats.total_files,
        result.stats.skipped_files,
    )

    fmt = resolve_format(settings)
    chunks = ContextCache().get_chunks(
        result.files,
        bundles=bundles,
        bundle_id=settings.bundle,
        output_format=fmt,
        enable_splitting=settings.split,
        max_tokens=settings.max_tokens,
    )

    if settings.tree:
        selected_paths = sorted({part.path for chunk in chunks for part in chunk.files})
        print(render_tree(selected_paths))
    if settings.stats:
        selected = {part.path for chunk in chunks for part in chunk.files}
        for stat in file_type_stats([f for f in result.files if f.path in selected]):
            print(f"{stat.extension}\t{stat.count} files\t{stat.size} bytes")

    if not chunks:
        print("No files matched.")
        return 0

    out_path = Path(settings.output)
    written = write_chunks(out_path, chunks)
    total_chars = sum(len(c.content) for c in chunks)
    tokens = sum(c.estimated_tokens for c in chunks)
    files = len({part.path for chunk in chunks for part in chunk.files})
    for path, chunk in zip(written, chunks, strict=True):
        print(f"Wrote {path} [{chunk.label}] entries={len(chunk.files)} ~{chunk.estimated_tokens} tokens")
    print(f"format={fmt} files={files} chunks={len(chunks)} chars={total_chars} ~{tokens} tokens")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
