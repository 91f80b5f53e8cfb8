from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from context_pack import file_manipulation
from context_pack.exceptions import NotAGitRepositoryError
from context_pack.file_manipulation import (
    discover_files,
    git_ls_files,
    make_raw_files,
    relpath,
    walk_files,
)


@pytest.mark.unit
def test_relpath_uses_posix_separators(tmp_path: Path) -> None:
    assert relpath(tmp_path / "src" / "app.py", tmp_path) == "src/app.py"


@pytest.mark.unit
def test_walk_files_prunes_ignored_directories(tmp_path: Path) -> None:
    keep = tmp_path / "src" / "app.ts"
    drop = tmp_path / "node_modules" / "pkg" / "index.js"
    keep.parent.mkdir(parents=True)
    drop.parent.mkdir(parents=True)
    keep.write_text("a", encoding="utf-8")
    drop.write_text("b", encoding="utf-8")

    found = walk_files(tmp_path, ["node_modules"])

    assert found == [keep]


@pytest.mark.unit
def test_git_ls_files_requires_git_dir(tmp_path: Path) -> None:
    with pytest.raises(NotAGitRepositoryError):
        git_ls_files(tmp_path)


@pytest.mark.unit
def test_discover_files_falls_back_to_walk(tmp_path: Path, mocker: MockerFixture) -> None:
    file_path = tmp_path / "a.txt"
    file_path.write_text("a", encoding="utf-8")
    mocker.patch.object(file_manipulation, "git_ls_files", side_effect=NotAGitRepositoryError(folder=tmp_path))

    assert discover_files(tmp_path) == [file_path]


@pytest.mark.unit
def test_discover_files_no_git_skips_git(tmp_path: Path, mocker: MockerFixture) -> None:
    git_mock = mocker.patch.object(file_manipulation, "git_ls_files")

    assert discover_files(tmp_path, no_git=True) == []
    git_mock.assert_not_called()


@pytest.mark.unit
def test_make_raw_files_reads_lazily(tmp_path: Path) -> None:
    file_path = tmp_path / "src" / "bad.txt"
    file_path.parent.mkdir(parents=True)
    file_path.write_bytes(b"ok \xff end")

    (raw,) = make_raw_files([file_path], tmp_path)

    assert raw.path == "src/bad.txt"
    assert raw.name == "bad.txt"
    assert raw.size == len(b"ok \xff end")
    assert raw.content is None
    assert raw.read() == "ok � end"


@pytest.mark.unit
def test_make_raw_files_skips_missing_files(tmp_path: Path) -> None:
    assert make_raw_files([tmp_path / "gone.txt"], tmp_path) == []
