from __future__ import annotations

from typing import TYPE_CHECKING

from context_pack.config import ALL_BUNDLES, Bundle
from context_pack.logging import logger
from context_pack.patterns import matches, normalize_patterns

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from context_pack.config import FileRecord


def find_bundle(bundles: Iterable[Bundle], bundle_id: str) -> Bundle | None:
    """Return the bundle with id `bundle_id`, or None if there is none."""
    return next((b for b in bundles if b.id == bundle_id), None)


def select_bundle(
    files: Sequence[FileRecord],
    bundle: Bundle | str,
) -> tuple[FileRecord, ...]:
    """Restrict an already-filtered file set to one bundle.

    ``"all"`` returns the input unchanged. A bundle matching nothing yields an
    empty tuple, which downstream stages treat as a normal, empty result.

    Args:
        files (Sequence[FileRecord]): files in canonical order
        bundle (Bundle | str): the bundle to apply, or ``"all"``

    Returns:
        tuple[FileRecord, ...]: the selected files, order preserved
    """
    if isinstance(bundle, str):
        if bundle != ALL_BUNDLES:
            msg = f"Unknown bundle selector {bundle!r}; pass a Bundle or {ALL_BUNDLES!r}"
            raise ValueError(msg)
        return tuple(files)
    patterns = normalize_patterns(bundle.patterns)
    return tuple(f for f in files if matches(f.path, patterns))


def resolve_selection(
    files: Sequence[FileRecord],
    bundles: Iterable[Bundle],
    bundle_id: str,
) -> tuple[FileRecord, ...]:
    """Apply the bundle named `bundle_id`, falling back to every file if it is unknown.

    Args:
        files (Sequence[FileRecord]): files in canonical order
        bundles (Iterable[Bundle]): the configured bundles
        bundle_id (str): the active bundle id, or ``"all"``

    Returns:
        tuple[FileRecord, ...]: the selected files
    """
    if bundle_id == ALL_BUNDLES:
        return tuple(files)
    bundle = find_bundle(bundles, bundle_id)
    if bundle is None:
        logger.warning("Unknown bundle %s, using all files", bundle_id)
        return tuple(files)
    return select_bundle(files, bundle)


def ensure_unique_ids(bundles: Iterable[Bundle]) -> list[Bundle]:
    """Check that bundle ids are unique.

    Raises:
        ValueError: if two bundles share an id.

    Returns:
        list[Bundle]: the bundles, in input order
    """
    seen: set[str] = set()
    out: list[Bundle] = []
    for b in bundles:
        if b.id in seen:
            msg = f"Duplicate bundle id: {b.id}"
            raise ValueError(msg)
        seen.add(b.id)
        out.append(b)
    return out
