"""Bundle selection and packing behind an explicit memoization cache.

`build_context` is the pure pipeline. `ContextCache` keys its results on the
file-set fingerprint plus every other input, so a repeated request with
unchanged inputs returns the very same chunk tuple without recomputing it.
"""

from __future__ import annotations

import hashlib
from collections import OrderedDict
from typing import TYPE_CHECKING

from context_pack.bundles import find_bundle, resolve_selection
from context_pack.chunking import DEFAULT_ESTIMATOR, pack_chunks
from context_pack.config import ALL_BUNDLES, DEFAULT_MAX_TOKENS, OutputFormat

if TYPE_CHECKING:
    from collections.abc import Hashable, Sequence

    from context_pack.chunking import TokenEstimator
    from context_pack.config import Bundle, Chunk, FileRecord


def file_set_fingerprint(files: Sequence[FileRecord]) -> str:
    """Compute a SHA-256 digest identifying a file set.

    Args:
        files (Sequence[FileRecord]): the files, in canonical order

    Returns:
        str: hex digest over every path and content
    """
    h = hashlib.sha256()
    for f in files:
        h.update(f.path.encode("utf-8", errors="surrogatepass"))
        h.update(b"\x00")
        h.update(f.content.encode("utf-8", errors="surrogatepass"))
        h.update(b"\x00")
    return h.hexdigest()


def build_context(
    files: Sequence[FileRecord],
    *,
    bundles: Sequence[Bundle] = (),
    bundle_id: str = ALL_BUNDLES,
    output_format: OutputFormat | str = OutputFormat.XML,
    enable_splitting: bool = False,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> tuple[Chunk, ...]:
    """Select the active bundle from `files` and pack the selection into chunks.

    Args:
        files (Sequence[FileRecord]): filtered files in canonical order
        bundles (Sequence[Bundle]): the configured bundles
        bundle_id (str): active bundle id, or ``"all"``
        output_format (OutputFormat | str): chunk wire format
        enable_splitting (bool): split into budgeted parts when True
        max_tokens (int): token budget per chunk
        estimator (TokenEstimator): budget/character conversion

    Returns:
        tuple[Chunk, ...]: the rendered chunks; empty if nothing is selected
    """
    selected = resolve_selection(files, bundles, bundle_id)
    return pack_chunks(
        selected,
        max_tokens=max_tokens,
        enable_splitting=enable_splitting,
        output_format=output_format,
        estimator=estimator,
    )


class ContextCache:
    """LRU cache of packed chunks keyed on every pipeline input."""

    def __init__(self, maxsize: int = 32, estimator: TokenEstimator = DEFAULT_ESTIMATOR) -> None:
        self.maxsize = maxsize
        self.estimator = estimator
        self.hits = 0
        self.misses = 0
        self._entries: OrderedDict[Hashable, tuple[Chunk, ...]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def key(
        self,
        files: Sequence[FileRecord],
        *,
        bundles: Sequence[Bundle],
        bundle_id: str,
        output_format: OutputFormat | str,
        enable_splitting: bool,
        max_tokens: int,
    ) -> tuple[Hashable, ...]:
        """Build the cache key; the bundle's patterns are part of its identity."""
        bundle = find_bundle(bundles, bundle_id) if bundle_id != ALL_BUNDLES else None
        patterns = bundle.patterns if bundle is not None else ()
        return (
            file_set_fingerprint(files),
            bundle_id,
            patterns,
            OutputFormat(output_format),
            bool(enable_splitting),
            int(max_tokens),
        )

    def get_chunks(
        self,
        files: Sequence[FileRecord],
        *,
        bundles: Sequence[Bundle] = (),
        bundle_id: str = ALL_BUNDLES,
        output_format: OutputFormat | str = OutputFormat.XML,
        enable_splitting: bool = False,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> tuple[Chunk, ...]:
        """Return cached chunks for these inputs, computing them on a miss."""
        key = self.key(
            files,
            bundles=bundles,
            bundle_id=bundle_id,
            output_format=output_format,
            enable_splitting=enable_splitting,
            max_tokens=max_tokens,
        )
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            self._entries.move_to_end(key)
            return cached

        self.misses += 1
        chunks = build_context(
            files,
            bundles=bundles,
            bundle_id=bundle_id,
            output_format=output_format,
            enable_splitting=enable_splitting,
            max_tokens=max_tokens,
            estimator=self.estimator,
        )
        self._entries[key] = chunks
        if len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)
        return chunks
