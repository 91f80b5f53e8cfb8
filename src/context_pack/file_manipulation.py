"""Discovery and lazy reading of project files on disk.

This is the host-side reader feeding the filter pipeline: it never decides
inclusion itself beyond pruning ignored directories during the walk.
"""

from __future__ import annotations

import os
import stat
import subprocess  # noqa: S404
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

from context_pack.config import RawFile
from context_pack.exceptions import NotAGitRepositoryError
from context_pack.logging import logger
from context_pack.patterns import matches, normalize_patterns

if TYPE_CHECKING:
    from collections.abc import Sequence


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path).replace("\\", "/")


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode)


def git_ls_files(repo: Path) -> list[Path]:
    """Get the list of tracked files in a git repository using `git ls-files`.

    Args:
        repo (Path): the root of the git repository to query

    Raises:
        NotAGitRepositoryError: if `.git` is missing.

    Returns:
        list[Path]: the list of tracked files within the repository
    """
    git_dir = repo / ".git"
    if not git_dir.exists():
        raise NotAGitRepositoryError(folder=repo)
    out = subprocess.run(
        ["git", "ls-files"],  # noqa: S607
        cwd=str(repo),
        text=True,
        capture_output=True,
        check=True,
    )
    files: list[Path] = []
    for line in out.stdout.splitlines():
        line = line.strip()  # noqa: PLW2901
        if not line:
            continue
        files.append((repo / line).resolve())
    return files


def walk_files(repo: Path, ignore_patterns: Sequence[str] = ()) -> list[Path]:
    """Walk the directory tree rooted at `repo` and return a list of all files.

    Directories whose relative path matches an ignore pattern are pruned, so
    large trees such as ``node_modules`` are never descended into.

    Args:
        repo (Path): the root directory to walk
        ignore_patterns (Sequence[str]): glob or shorthand patterns to prune

    Returns:
        list[Path]: a list of all files found
    """
    patterns = normalize_patterns(ignore_patterns)
    results: list[Path] = []
    for root, dirs, files in os.walk(repo):
        base = Path(root)
        dirs[:] = [d for d in dirs if not matches(relpath(base / d, repo), patterns)]
        for f in files:
            p = base / f
            if p.is_file():
                results.append(p)
    return results


def discover_files(repo: Path, ignore_patterns: Sequence[str] = (), *, no_git: bool = False) -> list[Path]:
    """List candidate files, preferring `git ls-files` over a filesystem walk.

    Args:
        repo (Path): the project root
        ignore_patterns (Sequence[str]): patterns used to prune the walk
        no_git (bool): skip git entirely

    Returns:
        list[Path]: regular files under `repo`
    """
    files: list[Path] = []
    if not no_git:
        try:
            files = git_ls_files(repo)
        except (NotAGitRepositoryError, OSError, subprocess.CalledProcessError) as e:
            logger.info("Falling back to filesystem walk: %s", e)
            files = walk_files(repo, ignore_patterns)
    else:
        files = walk_files(repo, ignore_patterns)
    return [f for f in files if is_regular_file(f)]


def read_text_file(path: Path) -> str:
    """Read a file as UTF-8 text, replacing undecodable bytes."""
    return path.read_text(encoding="utf-8", errors="replace")


def make_raw_files(files: Sequence[Path], repo: Path) -> list[RawFile]:
    """Create RawFile records for `files`, with content loaded on demand.

    Args:
        files (Sequence[Path]): the files to describe
        repo (Path): the root used to compute relative paths

    Returns:
        list[RawFile]: one record per file that could be stat'ed
    """
    recs: list[RawFile] = []
    for f in files:
        try:
            st = f.stat()
        except OSError as e:
            logger.warning("Skipping %s: %s", f, e)
            continue
        recs.append(
            RawFile(
                path=relpath(f, repo),
                name=f.name,
                size=st.st_size,
                loader=partial(read_text_file, f),
            ),
        )
    return recs
