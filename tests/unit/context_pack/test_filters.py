import pytest
from pytest_mock import MockerFixture

from context_pack.config import MAX_FILE_SIZE, FileRecord, RawFile, SkipReason
from context_pack.filters import filter_files, has_ignored_extension, sort_records


def raw(path: str, content: str = "x", size: int | None = None) -> RawFile:
    return RawFile(
        path=path,
        name=path.rsplit("/", 1)[-1],
        size=len(content) if size is None else size,
        content=content,
    )


@pytest.mark.unit
def test_filter_files_drops_ignored_paths_first() -> None:
    result = filter_files([raw("node_modules/logo.png")])

    assert result.files == ()
    assert result.skipped[0].reason == SkipReason.IGNORED_PATTERN


@pytest.mark.unit
def test_filter_files_drops_denied_extensions_case_insensitively() -> None:
    result = filter_files([raw("assets/Logo.PNG"), raw("src/app.ts")])

    assert [f.path for f in result.files] == ["src/app.ts"]
    assert result.skipped[0].path == "assets/Logo.PNG"
    assert result.skipped[0].reason == SkipReason.IGNORED_EXTENSION


@pytest.mark.unit
def test_filter_files_accepts_extensions_without_dot() -> None:
    result = filter_files([raw("data.csv"), raw("main.py")], ignore_patterns=[], ignored_extensions=["CSV"])

    assert [f.path for f in result.files] == ["main.py"]


@pytest.mark.unit
def test_filter_files_applies_size_ceiling() -> None:
    at_limit = raw("ok.txt", size=MAX_FILE_SIZE)
    above = raw("big.txt", size=MAX_FILE_SIZE + 1)

    result = filter_files([at_limit, above])

    assert [f.path for f in result.files] == ["ok.txt"]
    assert result.skipped[0].reason == SkipReason.TOO_LARGE


@pytest.mark.unit
def test_filter_files_does_not_read_files_failing_cheap_checks(mocker: MockerFixture) -> None:
    loader = mocker.Mock(return_value="never")
    candidate = RawFile(path="dist/bundle.js", name="bundle.js", size=10, loader=loader)

    filter_files([candidate])

    loader.assert_not_called()


@pytest.mark.unit
def test_filter_files_sniffs_nul_bytes_as_binary() -> None:
    result = filter_files([raw("weird.dat", "abc\x00def"), raw("fine.txt", "hello")])

    assert [f.path for f in result.files] == ["fine.txt"]
    assert result.skipped[0].reason == SkipReason.BINARY_CONTENT


@pytest.mark.unit
def test_filter_files_skips_unreadable_files_and_continues(mocker: MockerFixture) -> None:
    failing = RawFile(
        path="locked.txt",
        name="locked.txt",
        size=3,
        loader=mocker.Mock(side_effect=PermissionError("denied")),
    )
    no_source = RawFile(path="ghost.txt", name="ghost.txt", size=0)

    result = filter_files([failing, raw("ok.txt", "ok"), no_source])

    assert [f.path for f in result.files] == ["ok.txt"]
    reasons = {s.path: s.reason for s in result.skipped}
    assert reasons == {"locked.txt": SkipReason.UNREADABLE, "ghost.txt": SkipReason.UNREADABLE}


@pytest.mark.unit
def test_filter_files_survives_any_loader_failure(mocker: MockerFixture) -> None:
    crashing = RawFile(
        path="broken.txt",
        name="broken.txt",
        size=3,
        loader=mocker.Mock(side_effect=RuntimeError("decoder crashed")),
    )
    wrong_type = RawFile(path="bytes.txt", name="bytes.txt", size=3, loader=lambda: b"abc")

    result = filter_files([crashing, raw("ok.txt", "ok"), wrong_type])

    assert [f.path for f in result.files] == ["ok.txt"]
    reasons = {s.path: s.reason for s in result.skipped}
    assert reasons == {"broken.txt": SkipReason.UNREADABLE, "bytes.txt": SkipReason.UNREADABLE}
    assert result.stats.total_files == 3


@pytest.mark.unit
def test_filter_files_uses_lazy_loader_content() -> None:
    lazy = RawFile(path="src\\main.py", name="main.py", size=12, loader=lambda: "print('hi')\n")

    result = filter_files([lazy])

    assert result.files == (
        FileRecord(path="src/main.py", name="main.py", content="print('hi')\n", size=12),
    )
    assert result.files[0].extension == "py"


@pytest.mark.unit
def test_filter_files_sorts_canonically_regardless_of_input_order() -> None:
    result = filter_files([raw("b.txt"), raw("a/c.txt"), raw("A.txt")])

    assert [f.path for f in result.files] == ["A.txt", "a/c.txt", "b.txt"]


@pytest.mark.unit
def test_filter_files_reports_stats() -> None:
    result = filter_files([raw("a.txt", "12345"), raw("b.png"), raw("c.txt", "12")])

    assert result.stats.total_files == 3
    assert result.stats.processed_files == 2
    assert result.stats.skipped_files == 1
    assert result.stats.total_size == 7


@pytest.mark.unit
def test_filter_files_empty_input() -> None:
    result = filter_files([])

    assert result.files == ()
    assert result.stats.total_files == 0


@pytest.mark.unit
def test_has_ignored_extension_uses_last_segment() -> None:
    assert has_ignored_extension("archive.tar.gz", [".gz"])
    assert not has_ignored_extension("archive.tar.gz", [".tar"])


@pytest.mark.unit
def test_sort_records_is_stable_for_case_variants() -> None:
    recs = [
        FileRecord(path="readme.md", name="readme.md", content="", size=0),
        FileRecord(path="README.md", name="README.md", content="", size=0),
    ]

    assert [r.path for r in sort_records(recs)] == ["README.md", "readme.md"]
