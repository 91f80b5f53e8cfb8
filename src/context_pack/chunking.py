"""Deterministic packing of an ordered file set into size-bounded chunks.

Without splitting, every file lands unsplit in one "Full Context" chunk. With
splitting, files are packed in order into chunks of at most ``max_tokens``
(approximately), and a file that does not fit is cut into parts that continue
in fresh chunks. Concatenating a file's parts in ``part_index`` order always
gives back its exact content.

Token counts are estimated, not tokenized: the default estimator assumes
four characters per token. Any object implementing `TokenEstimator` can be
passed instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from context_pack.config import (
    CHARS_PER_TOKEN,
    CHUNK_OVERHEAD,
    DEFAULT_MAX_TOKENS,
    MIN_USABLE_SPACE,
    PER_FILE_OVERHEAD,
    SPLIT_SEARCH_RATIO,
    SPLIT_SEARCH_WINDOW,
    Chunk,
    FilePart,
    OutputFormat,
)
from context_pack.logging import logger
from context_pack.output_construction import render_chunk

if TYPE_CHECKING:
    from collections.abc import Sequence

    from context_pack.config import FileRecord

FULL_CONTEXT_LABEL = "Full Context"


class TokenEstimator(Protocol):
    """Converts between a token budget and a character budget."""

    def chars_for_tokens(self, tokens: int) -> int:
        """Character allowance for a budget of `tokens`."""
        ...

    def estimate(self, text: str) -> int:
        """Approximate token count of `text`."""
        ...


@dataclass(frozen=True)
class CharRatioEstimator:
    """Fixed characters-per-token approximation. Not a tokenizer."""

    chars_per_token: int = CHARS_PER_TOKEN

    def chars_for_tokens(self, tokens: int) -> int:
        return tokens * self.chars_per_token

    def estimate(self, text: str) -> int:
        return math.ceil(len(text) / self.chars_per_token)


DEFAULT_ESTIMATOR = CharRatioEstimator()


def estimate_tokens(text: str, estimator: TokenEstimator = DEFAULT_ESTIMATOR) -> int:
    """Estimate the token count of `text` with `estimator`."""
    return estimator.estimate(text)


def chunk_label(index: int, total: int) -> str:
    return f"Part {index} of {total}"


def find_split_point(text: str, max_chars: int, start: int = 0) -> int:
    """Choose how many characters of `text`, from `start`, go into the current part.

    Prefers cutting just after the last newline found within the search
    window (``min(1000, 20% of max_chars)`` characters) before the limit;
    otherwise cuts at exactly `max_chars`. Always returns at least 1 while
    text remains, so the caller makes progress even with no room left.

    Args:
        text (str): the file content
        max_chars (int): characters available in the current chunk
        start (int): offset of the first character not yet placed

    Returns:
        int: the length of the next part, ``len(text) - start`` if everything fits
    """
    remaining = len(text) - start
    if remaining <= max_chars:
        return remaining
    max_chars = max(max_chars, 1)
    window = min(SPLIT_SEARCH_WINDOW, max_chars * SPLIT_SEARCH_RATIO)
    last_newline = text.rfind("\n", start, start + max_chars) - start
    if last_newline >= 0 and last_newline > max_chars - window:
        return last_newline + 1
    return max_chars


@dataclass
class _PartDraft:
    record: FileRecord
    content: str
    part_index: int
    total_parts: int = 1

    def freeze(self) -> FilePart:
        return FilePart(
            path=self.record.path,
            name=self.record.name,
            extension=self.record.extension,
            content=self.content,
            size=self.record.size,
            part_index=self.part_index,
            total_parts=self.total_parts,
        )


def plan_chunks(files: Sequence[FileRecord], limit_chars: int) -> list[list[FilePart]]:
    """Bin-pack `files`, in order, into chunks of at most `limit_chars` characters.

    Every chunk starts charged with CHUNK_OVERHEAD and every part with
    PER_FILE_OVERHEAD. When less than MIN_USABLE_SPACE is left in a non-empty
    chunk it is closed before more content is placed. A file that does not
    fit is cut with `find_split_point`; its continuation always starts a new
    chunk. Each loop iteration either closes a chunk that holds content or
    consumes content, so the loop ends in O(total content length).

    Args:
        files (Sequence[FileRecord]): files in canonical order
        limit_chars (int): character budget of one chunk

    Returns:
        list[list[FilePart]]: the parts of each chunk, in order
    """
    chunks: list[list[_PartDraft]] = []
    current: list[_PartDraft] = []
    current_size = CHUNK_OVERHEAD

    for record in files:
        content = record.content
        pos = 0
        drafts: list[_PartDraft] = []
        # An empty file still yields one (empty) part.
        while pos < len(content) or not drafts:
            available = limit_chars - current_size - PER_FILE_OVERHEAD
            if available < MIN_USABLE_SPACE and current:
                chunks.append(current)
                current = []
                current_size = CHUNK_OVERHEAD
                continue

            cut = find_split_point(content, available, start=pos)
            piece = content[pos : pos + cut]
            pos += cut

            draft = _PartDraft(record=record, content=piece, part_index=len(drafts) + 1)
            drafts.append(draft)
            current.append(draft)
            current_size += len(piece) + PER_FILE_OVERHEAD

            if pos < len(content):
                chunks.append(current)
                current = []
                current_size = CHUNK_OVERHEAD

        if len(drafts) > 1:
            for d in drafts:
                d.total_parts = len(drafts)

    if current:
        chunks.append(current)

    return [[d.freeze() for d in chunk] for chunk in chunks]


def pack_chunks(
    files: Sequence[FileRecord],
    *,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    enable_splitting: bool = False,
    output_format: OutputFormat | str = OutputFormat.XML,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> tuple[Chunk, ...]:
    """Pack files into rendered chunks.

    Args:
        files (Sequence[FileRecord]): files in canonical order
        max_tokens (int): token budget per chunk, only enforced when splitting
        enable_splitting (bool): when False, produce one "Full Context" chunk
        output_format (OutputFormat | str): the wire format each chunk is rendered to
        estimator (TokenEstimator): budget/character conversion

    Returns:
        tuple[Chunk, ...]: the chunks in order; empty when `files` is empty
    """
    if not files:
        return ()

    fmt = OutputFormat(output_format)
    if not enable_splitting:
        parts = tuple(FilePart.whole(f) for f in files)
        content = render_chunk(parts, fmt)
        return (
            Chunk(
                label=FULL_CONTEXT_LABEL,
                content=content,
                files=parts,
                estimated_tokens=estimator.estimate(content),
            ),
        )

    planned = plan_chunks(files, estimator.chars_for_tokens(max_tokens))
    total = len(planned)
    out: list[Chunk] = []
    for index, parts in enumerate(planned, start=1):
        content = render_chunk(parts, fmt, part=index, total=total)
        out.append(
            Chunk(
                label=chunk_label(index, total),
                content=content,
                files=tuple(parts),
                index=index,
                total=total,
                estimated_tokens=estimator.estimate(content),
            ),
        )
    logger.debug("Packed %d files into %d chunks", len(files), total)
    return tuple(out)
