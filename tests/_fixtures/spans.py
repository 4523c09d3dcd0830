"""Lookup helpers shared by the span-level tests."""

from __future__ import annotations

from typing import Iterable

from spanscope.parsing.ir import Span


def by_name(spans: Iterable[Span], name: str) -> Span:
    matches = [s for s in spans if s.name == name]
    assert len(matches) == 1, f"expected one span named {name!r}, got {matches}"
    return matches[0]
