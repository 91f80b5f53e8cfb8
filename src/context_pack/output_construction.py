"""Rendering of packed chunks, plus the project tree and extension statistics.

Three chunk formats are available, all lossless for path, content and split
metadata:

- ``xml``: a ``<project_context>`` container with one ``<file>`` element per
  part; content is embedded verbatim in a CDATA section. Content containing
  the CDATA terminator ``]]>`` still renders, but the result is then not
  re-parseable as XML byte for byte. That is a known limitation.
- ``md``: an optional part heading, then a ``### File:`` heading and a fenced
  code block tagged with the file extension for each part. The fence is
  always three backticks, so content that itself holds a line of three
  backticks closes the block early and the rest renders as Markdown. That is a
  known limitation too.
- ``json``: one indented JSON document with optional ``meta`` and an ordered
  ``files`` list.
"""

from __future__ import annotations

import json
from functools import wraps
from typing import TYPE_CHECKING, Any
from xml.sax.saxutils import quoteattr

from context_pack.config import ExtensionStat, OutputFormat

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from context_pack.config import FilePart, FileRecord

    RendererFn = Callable[..., str]

EMPTY_TREE = "No files match active bundle."

RENDERERS: dict[OutputFormat, Callable[..., str]] = {}


def register_renderer(
    key: OutputFormat | list[OutputFormat],
) -> Callable[[RendererFn], RendererFn]:
    """Decorator to register a chunk renderer for one or more output formats.

    Args:
        key (OutputFormat | list[OutputFormat]): the format(s) the decorated function renders.

    Returns:
        Callable[[RendererFn], RendererFn]: A decorator that registers the given function
        in the RENDERERS mapping under the specified key(s) and returns the original function.
    """

    def decorator(func: RendererFn) -> RendererFn:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            return func(*args, **kwargs)

        if isinstance(key, list):
            for k in key:
                RENDERERS[k] = wrapper
        else:
            RENDERERS[key] = wrapper
        return wrapper

    return decorator


@register_renderer(OutputFormat.XML)
def render_xml(parts: Sequence[FilePart], part: int | None = None, total: int | None = None) -> str:
    """Render parts as a ``<project_context>`` document with CDATA bodies."""
    part_attr = f' part="{part}" total_parts="{total}"' if part else ""
    entries: list[str] = []
    for f in parts:
        split_attr = f' split_part="{f.part_index}" split_total="{f.total_parts}"' if f.is_split else ""
        entries.append(
            f"  <file path={quoteattr(f.path)}{split_attr}>\n<![CDATA[\n{f.content}\n]]>\n  </file>",
        )
    body = "\n".join(entries)
    return f"<project_context{part_attr}>\n{body}\n</project_context>"


@register_renderer(OutputFormat.MARKDOWN)
def render_markdown(parts: Sequence[FilePart], part: int | None = None, total: int | None = None) -> str:
    """Render parts as markdown sections with fenced code blocks."""
    header = f"# Project Context - Part {part} of {total}\n\n" if part else ""
    sections: list[str] = []
    for f in parts:
        split_label = f" (Part {f.part_index} of {f.total_parts})" if f.is_split else ""
        sections.append(f"### File: {f.path}{split_label}\n```{f.extension}\n{f.content}\n```")
    return header + "\n\n".join(sections)


@register_renderer(OutputFormat.JSON)
def render_json(parts: Sequence[FilePart], part: int | None = None, total: int | None = None) -> str:
    """Render parts as a single indented JSON document."""
    data: dict[str, Any] = {}
    if part:
        data["meta"] = {"part": part, "totalParts": total}
    files: list[dict[str, Any]] = []
    for f in parts:
        item: dict[str, Any] = {"path": f.path, "content": f.content}
        if f.is_split:
            item["split"] = {"part": f.part_index, "total": f.total_parts}
        files.append(item)
    data["files"] = files
    return json.dumps(data, indent=2, ensure_ascii=False)


def render_chunk(
    parts: Sequence[FilePart],
    output_format: OutputFormat | str,
    *,
    part: int | None = None,
    total: int | None = None,
) -> str:
    """Render the parts of one chunk in the requested format.

    Args:
        parts (Sequence[FilePart]): the chunk's parts, in order
        output_format (OutputFormat | str): one of ``xml``, ``md`` or ``json``
        part (int | None): 1-based chunk number when splitting, else None
        total (int | None): total number of chunks when splitting, else None

    Returns:
        str: the rendered chunk, or "" for a chunk without parts
    """
    if not parts:
        return ""
    renderer = RENDERERS[OutputFormat(output_format)]
    return renderer(parts, part=part, total=total)


def build_tree_lines(rel_paths: Sequence[str]) -> list[str]:
    """Build a visual tree representation of file paths.

    Folders are listed before files at each level, both sorted
    case-insensitively.

    Args:
        rel_paths (Sequence[str]): file paths relative to the root, using POSIX separators (e.g. "src/main.py")

    Returns:
        list[str]: the tree lines, starting with the "." root
    """
    rels = sorted(
        {p.strip("/").replace("\\", "/") for p in rel_paths if p.strip()},
        key=str.lower,
    )
    tree: dict[str, Any] = {}
    for rp in rels:
        cur = tree
        parts = rp.split("/")
        for i, part in enumerate(parts):
            if i == len(parts) - 1:
                cur.setdefault("__files__", set()).add(part)
            else:
                cur = cur.setdefault(part, {})

    lines: list[str] = ["."]

    def walk(node: dict[str, Any], prefix: str) -> None:
        dirs = sorted([k for k in node if k != "__files__"], key=str.lower)
        files = sorted(node.get("__files__", set()), key=str.lower)
        entries: list[tuple[str, str, Any]] = []
        entries.extend(("dir", d, node[d]) for d in dirs)
        entries.extend(("file", f, None) for f in files)
        for idx, (kind, name, child) in enumerate(entries):
            last = idx == len(entries) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + name)
            if kind == "dir":
                ext = "    " if last else "│   "
                walk(child, prefix + ext)

    walk(tree, "")
    return lines


def render_tree(rel_paths: Sequence[str]) -> str:
    """Render the project tree as text, or a sentinel when there are no files."""
    if not rel_paths:
        return EMPTY_TREE
    return "\n".join(build_tree_lines(rel_paths)) + "\n"


def file_type_stats(files: Sequence[FileRecord]) -> list[ExtensionStat]:
    """Count files and bytes per extension, most common extension first."""
    counts: dict[str, list[int]] = {}
    for f in files:
        ext = f".{f.extension}" if f.extension else "no-ext"
        bucket = counts.setdefault(ext, [0, 0])
        bucket[0] += 1
        bucket[1] += f.size
    ordered = sorted(counts.items(), key=lambda kv: -kv[1][0])
    return [ExtensionStat(extension=ext, count=c, size=s) for ext, (c, s) in ordered]
