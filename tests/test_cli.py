from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from spanscope.cli.main import app
from spanscope.ingestion.walker import load_sources, walk_repo
from spanscope.parsing.ir import Language

runner = CliRunner()


def _write_repo(root: Path, fixture_bytes) -> None:
    (root / "src").mkdir()
    (root / "src" / "metrics.c").write_bytes(fixture_bytes("metrics_edge_cases.c"))
    (root / "src" / "dup.c").write_bytes(fixture_bytes("duplicate.c"))
    (root / "build").mkdir()
    (root / "build" / "generated.c").write_text("int gen(void) { return 0; }\n", encoding="utf-8")
    (root / "vendor").mkdir()
    (root / "vendor" / "lib.c").write_text("int lib(void) { return 0; }\n", encoding="utf-8")
    (root / "notes.txt").write_text("not code", encoding="utf-8")
    (root / ".gitignore").write_text("vendor/\n", encoding="utf-8")


def test_walker_respects_ignores(tmp_path: Path, fixture_bytes) -> None:
    _write_repo(tmp_path, fixture_bytes)
    metas = walk_repo(tmp_path)

    assert [m.path.as_posix() for m in metas] == ["src/dup.c", "src/metrics.c"]
    assert all(m.language is Language.C_LIKE for m in metas)
    sources = load_sources(tmp_path, metas)
    assert sources[0].file_id == "src/dup.c"
    assert isinstance(sources[0].text, bytes)


def test_walker_accepts_single_file(tmp_path: Path, fixture_bytes) -> None:
    _write_repo(tmp_path, fixture_bytes)
    target = tmp_path / "src" / "dup.c"
    metas = walk_repo(target)
    assert [m.path.as_posix() for m in metas] == ["dup.c"]
    assert load_sources(target, metas)[0].text == target.read_bytes()


def test_analyze_command_writes_json(tmp_path: Path, fixture_bytes) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    _write_repo(repo, fixture_bytes)
    out_dir = tmp_path / "out"

    result = runner.invoke(app, [
        "analyze", str(repo),
        "--rules-file", str(tmp_path / "no-rules.yaml"),
        "--json-out", str(out_dir),
    ])

    assert result.exit_code == 0, result.output
    assert "Duplicate groups" in result.output
    data = json.loads((out_dir / "report.json").read_text(encoding="utf-8"))
    assert data["summary"]["files_analyzed"] == 2
    names = {s["name"] for f in data["files"] for s in f["spans"]}
    assert {"high_complexity", "process_data", "add"} <= names


def test_analyze_command_missing_path(tmp_path: Path) -> None:
    result = runner.invoke(app, ["analyze", str(tmp_path / "nowhere")])
    assert result.exit_code == 2


def test_init_rules(tmp_path: Path) -> None:
    target = tmp_path / "rules.yaml"
    result = runner.invoke(app, ["init-rules", "--rules-file", str(target)])
    assert result.exit_code == 0, result.output
    assert "k_shingle: 5" in target.read_text(encoding="utf-8")

    again = runner.invoke(app, ["init-rules", "--rules-file", str(target)])
    assert again.exit_code == 1
