import json
from pathlib import Path

from context_pack import cli


def write(root: Path, rel: str, content: str | bytes) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


def test_end_to_end_markdown_export(tmp_path: Path) -> None:
    repo = tmp_path / "project"
    write(repo, "src/app.py", "print('app')\n")
    write(repo, "node_modules/lib/index.js", "module.exports = 1;\n")
    write(repo, "assets/logo.png", b"\x89PNG")
    write(repo, "data/blob.dat", b"abc\x00def")

    output = tmp_path / "export.md"

    exit_code = cli.main(["--repo", str(repo), "--output", str(output), "--no-git"])

    assert exit_code == 0
    content = output.read_text(encoding="utf-8")
    assert content == "### File: src/app.py\n```py\nprint('app')\n\n```"


def test_end_to_end_split_json_reconstructs_files(tmp_path: Path) -> None:
    repo = tmp_path / "project"
    originals = {
        "README.md": "# Demo\n" + "Some words here.\n" * 400,
        "src/main.py": "".join(f"def f{i}():\n    return {i}\n\n" for i in range(600)),
        "src/empty.py": "",
        "vite.config.ts": "export default {}\n",
    }
    for rel, text in originals.items():
        write(repo, rel, text)

    output = tmp_path / "out" / "context.json"

    exit_code = cli.main(
        [
            "--repo",
            str(repo),
            "--output",
            str(output),
            "--no-git",
            "--split",
            "--max-tokens",
            "1500",
        ],
    )

    assert exit_code == 0
    part_files = sorted(
        output.parent.glob("context.part*.json"),
        key=lambda p: int(p.name.split(".part")[1].split("-of-")[0]),
    )
    assert len(part_files) > 1

    rebuilt: dict[str, list[tuple[int, str]]] = {}
    for part_file in part_files:
        data = json.loads(part_file.read_text(encoding="utf-8"))
        for entry in data["files"]:
            index = entry.get("split", {}).get("part", 1)
            rebuilt.setdefault(entry["path"], []).append((index, entry["content"]))

    assert set(rebuilt) == set(originals)
    for rel, text in originals.items():
        assert "".join(c for _, c in sorted(rebuilt[rel])) == text
