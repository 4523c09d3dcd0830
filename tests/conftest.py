from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from spanscope.analysis.runner import analyze_file
from spanscope.parsing.ir import FileReport, SourceFile

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixture_bytes() -> Callable[[str], bytes]:
    """Read a sample source file from tests/fixtures as raw bytes."""

    def _read(name: str) -> bytes:
        return (FIXTURES / name).read_bytes()

    return _read


@pytest.fixture
def run_file() -> Callable[..., FileReport]:
    """Run the single-file pipeline on inline source text."""

    def _run(text: str | bytes, file_id: str = "sample.c", language: str = "c-like") -> FileReport:
        report = analyze_file(SourceFile(file_id, text, language))
        assert report is not None
        return report

    return _run
