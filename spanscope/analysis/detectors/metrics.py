from __future__ import annotations
from typing import Iterable, Sequence, Set

from spanscope.parsing.ir import ComplexityResult, FileMetrics, Span, SpanKind, Token, TokenKind

TYPE_KINDS = frozenset({SpanKind.CLASS, SpanKind.STRUCT, SpanKind.UNION, SpanKind.ENUM, SpanKind.NESTED_TYPE})


def _lines_of(tok: Token) -> range:
    last = tok.line + tok.text.count("\n") - (1 if tok.text.endswith("\n") else 0)
    return range(tok.line, last + 1)


def total_lines(tokens: Sequence[Token]) -> int:
    """Line count as an editor shows it; a final newline does not open a new line."""
    if not tokens:
        return 0
    return _lines_of(tokens[-1])[-1]


def file_metrics(
    tokens: Sequence[Token],
    spans: Iterable[Span],
    complexity: Iterable[ComplexityResult],
) -> FileMetrics:
    code: Set[int] = set()
    comment: Set[int] = set()
    for tok in tokens:
        if tok.kind is TokenKind.WHITESPACE:
            continue
        (comment if tok.kind is TokenKind.COMMENT else code).update(_lines_of(tok))
    comment -= code

    total = total_lines(tokens)
    spans = list(spans)
    functions = {s.id for s in spans if s.kind is SpanKind.FUNCTION}
    scores = [c.cyclomatic for c in complexity if c.span_id in functions]
    return FileMetrics(
        total_lines=total,
        code_lines=len(code),
        comment_lines=len(comment),
        blank_lines=total - len(code) - len(comment),
        comment_ratio=len(comment) / len(code) if code else 0.0,
        functions=len(functions),
        types=sum(1 for s in spans if s.kind in TYPE_KINDS),
        total_complexity=sum(scores),
        max_complexity=max(scores, default=0),
        average_complexity=sum(scores) / len(scores) if scores else 0.0,
    )
