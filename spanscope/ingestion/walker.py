from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

import pathspec

from spanscope.parsing.ir import Language, SourceFile
from spanscope.parsing.source import language_for_path


@dataclass(frozen=True)
class FileMeta:
    path: Path
    bytes: int
    language: Language


DEFAULT_INCLUDE = [
    "*.c", "*.h", "*.cc", "*.cpp", "*.cxx", "*.hh", "*.hpp", "*.hxx",
    "*.java", "*.cs", "*.js", "*.mjs", "*.ts", "*.go", "*.rs", "*.swift", "*.kt", "*.php", "*.m",
]

HARD_EXCLUDE_DIRS = {
    ".git", ".hg", ".svn",
    ".venv", "venv", "env",
    "__pycache__",
    "node_modules",
    "dist", "build", ".next", ".turbo",
    ".idea", ".vscode",
    ".cache", ".pytest_cache",
}


def _compile_gitignore(root: Path, extra_excludes: list[str]) -> pathspec.PathSpec:
    lines: list[str] = []
    gi = root / ".gitignore"
    if gi.is_file():
        lines.extend(gi.read_text(encoding="utf-8", errors="ignore").splitlines())
    lines.extend(extra_excludes or [])
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


def walk_repo(
    root: Path,
    include: Optional[list[str]] = None,
    exclude: Optional[list[str]] = None,
    max_bytes: int = 2_000_000,
    follow_symlinks: bool = False,
) -> list[FileMeta]:
    """Files under `root` matching `include`, minus .gitignore and `exclude` hits."""
    root = root.resolve()
    if root.is_file():
        size = root.stat().st_size
        if size > max_bytes:
            return []
        return [FileMeta(path=Path(root.name), bytes=size, language=language_for_path(root))]

    wanted = pathspec.PathSpec.from_lines("gitwildmatch", include or DEFAULT_INCLUDE)
    ignored = _compile_gitignore(root, exclude or [])
    results: list[FileMeta] = []

    for dirpath, dirnames, filenames in os.walk(root, followlinks=follow_symlinks):
        dir_rel = Path(dirpath).relative_to(root)
        dirnames[:] = [
            d for d in dirnames
            if d not in HARD_EXCLUDE_DIRS and not ignored.match_file((dir_rel / d).as_posix() + "/")
        ]

        for fname in filenames:
            rel = dir_rel / fname
            rel_str = rel.as_posix()
            if ignored.match_file(rel_str) or not wanted.match_file(rel_str):
                continue
            try:
                size = (root / rel).stat().st_size
            except FileNotFoundError:
                continue
            if size > max_bytes:
                continue
            results.append(FileMeta(path=rel, bytes=int(size), language=language_for_path(rel)))
    return sorted(results, key=lambda fm: fm.path.as_posix())


def load_sources(root: Path, metas: list[FileMeta]) -> list[SourceFile]:
    """Read matched files as raw bytes; decoding is left to the engine."""
    base = root.resolve()
    if base.is_file():
        base = base.parent
    return [
        SourceFile(file_id=m.path.as_posix(), text=(base / m.path).read_bytes(), language=m.language)
        for m in metas
    ]
