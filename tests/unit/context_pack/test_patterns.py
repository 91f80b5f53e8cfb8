import pytest
from pytest_mock import MockerFixture

from context_pack import patterns
from context_pack.exceptions import InvalidPatternError
from context_pack.patterns import glob_to_regex, is_shorthand, matches, normalize_patterns


@pytest.mark.unit
def test_shorthand_matches_segment_anywhere() -> None:
    assert matches("src/node_modules/x.ts", ["node_modules"])
    assert matches("node_modules/react/index.js", ["node_modules"])
    assert matches("packages/app/node_modules", ["node_modules"])
    assert matches("node_modules", ["node_modules"])


@pytest.mark.unit
def test_shorthand_does_not_match_partial_segment() -> None:
    assert not matches("a/b/c.ts", ["node_modules"])
    assert not matches("src/my_node_modules_backup/x.ts", ["node_modules"])
    assert not matches("distribution/app.js", ["dist"])


@pytest.mark.unit
def test_glob_double_star_crosses_directories() -> None:
    assert matches("src/utils/helper.ts", ["src/**/*.ts"])
    assert matches("src/a/b/c/helper.ts", ["src/**/*.ts"])
    assert matches("lib/deep/x.min.js", ["**/*.min.js"])
    assert not matches("src/utils/helper.js", ["src/**/*.ts"])
    assert not matches("lib/src/helper.ts", ["src/**/*.ts"])


@pytest.mark.unit
def test_glob_double_star_slash_needs_a_directory() -> None:
    assert not matches("src/helper.ts", ["src/**/*.ts"])
    assert not matches("generated/x.py", ["**/generated/*"])
    assert matches("pkg/generated/x.py", ["**/generated/*"])
    assert not matches("x.min.js", ["**/*.min.js"])
    assert glob_to_regex("src/**/*.ts").pattern == r"^src/.*/[^/]*\.ts$"


@pytest.mark.unit
def test_glob_single_star_stays_within_segment() -> None:
    assert matches("src/app.ts", ["src/*.ts"])
    assert not matches("src/utils/app.ts", ["src/*.ts"])
    assert matches("vite.config.ts", ["*.config.*"])
    assert not matches("src/vite.config.ts", ["*.config.*"])


@pytest.mark.unit
def test_glob_question_mark_matches_one_character() -> None:
    assert matches("src/a1.ts", ["src/a?.ts"])
    assert not matches("src/a12.ts", ["src/a?.ts"])


@pytest.mark.unit
def test_glob_is_case_insensitive_and_anchored() -> None:
    assert matches("SRC/App.TS", ["src/*.ts"])
    assert not matches("lib/src/app.ts", ["src/*.ts"])
    assert not matches("src/app.tsx", ["src/*.ts"])


@pytest.mark.unit
def test_regex_metacharacters_are_literal() -> None:
    assert matches("docs/file(1).txt", ["docs/file(1).*"])
    assert not matches("docs/file1.txt", ["docs/file(1).*"])
    assert matches("a+b/c.md", ["a+b/*.md"])
    assert not matches("aab/c.md", ["a+b/*.md"])


@pytest.mark.unit
def test_backslash_paths_are_normalized() -> None:
    assert matches("src\\node_modules\\x.ts", ["node_modules"])
    assert matches("src\\utils\\helper.ts", ["src/**/*.ts"])


@pytest.mark.unit
def test_exact_match_fast_path() -> None:
    assert matches("src/app.ts", ["src/app.ts"])
    assert matches("src/[weird].ts", ["src/[weird].ts"])


@pytest.mark.unit
def test_no_patterns_never_match() -> None:
    assert not matches("src/app.ts", [])
    assert not matches("src/app.ts", [""])


@pytest.mark.unit
def test_invalid_pattern_is_a_non_match_and_others_still_apply(mocker: MockerFixture) -> None:
    real = glob_to_regex

    def fake(pattern: str):
        if pattern == "broken/*":
            raise InvalidPatternError(pattern=pattern, message="boom")
        return real(pattern)

    mocker.patch.object(patterns, "glob_to_regex", side_effect=fake)

    assert not matches("broken/x.ts", ["broken/*"])
    assert matches("src/x.ts", ["broken/*", "src/*.ts"])


@pytest.mark.unit
def test_is_shorthand() -> None:
    assert is_shorthand("node_modules")
    assert is_shorthand(".env")
    assert not is_shorthand("src/app")
    assert not is_shorthand("*.log")


@pytest.mark.unit
def test_normalize_patterns_strips_and_normalizes() -> None:
    assert normalize_patterns(["  src/**/*.py ", "\\tests\\*.py", ""]) == ["src/**/*.py", "/tests/*.py"]
