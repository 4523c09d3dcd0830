from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from spanscope.parsing.ir import ComplexityResult, Span, Token, TokenKind
from spanscope.parsing.structure import owned_tokens, without_directives
from spanscope.parsing.tokenizer import TYPE_KEYWORDS

# +1 each; `else if` is counted through its `if`, `switch`/`default`/bare `else` add nothing
DECISION_KEYWORDS = frozenset({"if", "elif", "for", "while", "case", "catch"})
DECISION_OPERATORS = frozenset({"&&", "||", "?"})

_DECLARATOR_ENDS = frozenset({"=", ";", ",", ")", "{"})
_STATEMENT_EDGES = frozenset({";", "{", "}"})
_TYPE_QUALIFIERS = TYPE_KEYWORDS | frozenset({"typename", "static", "constexpr"})

_NESTING_KEYWORDS = frozenset({"if", "switch", "for", "while", "do", "catch"})


def _is_logical(tokens: Sequence[Token], i: int) -> bool:
    tok = tokens[i]
    if tok.text not in ("&&", "||") or tok.kind is not TokenKind.PUNCTUATION:
        return False
    if tok.text == "&&" and i > 0 and tokens[i - 1].text in TYPE_KEYWORDS:
        return False  # `auto&& x`, `int&& r`
    if tok.text == "&&" and _declares_reference(tokens, i):
        return False  # `std::string&& s = ...`, `std::vector<int>&& v;`
    return True


def _declares_reference(tokens: Sequence[Token], i: int) -> bool:
    """`&&` between a type that opens its statement and the declared name."""
    if i + 2 >= len(tokens) or tokens[i + 1].kind is not TokenKind.IDENTIFIER:
        return False
    if tokens[i + 2].text not in _DECLARATOR_ENDS:
        return False
    angles = 0
    named = False
    for j in range(i - 1, -1, -1):
        tok = tokens[j]
        t = tok.text
        if t in _STATEMENT_EDGES:
            return named and angles == 0
        if angles:
            if t == ">":
                angles += 1
            elif t == ">>":
                angles += 2
            elif t == "<":
                angles -= 1
        elif t in (">", ">>"):
            angles = len(t)
        elif tok.kind is TokenKind.IDENTIFIER:
            named = True
        elif t != "::" and t not in _TYPE_QUALIFIERS:
            return False
    return False


def count_decisions(tokens: Sequence[Token]) -> int:
    """Decision points over a significant-token slice."""
    count = 0
    for i, tok in enumerate(tokens):
        if tok.kind is TokenKind.KEYWORD and tok.text in DECISION_KEYWORDS:
            count += 1
        elif tok.kind is TokenKind.PUNCTUATION and tok.text in DECISION_OPERATORS:
            if tok.text == "?" or _is_logical(tokens, i):
                count += 1
    return count


@dataclass
class _Frame:
    nests: bool
    closes_do: bool = False


def cognitive_complexity(tokens: Sequence[Token]) -> int:
    """Nesting-weighted score: structures add 1 + nesting depth, `else` and logical operators add 1."""
    score = 0
    frames: List[_Frame] = []
    nesting = 0
    pending = False   # the next `{` belongs to a nesting structure
    pending_do = False
    parens = 0
    after_do_body = False
    prev = ""
    for i, tok in enumerate(tokens):
        t = tok.text
        if tok.kind is TokenKind.KEYWORD:
            if t == "while" and after_do_body:
                after_do_body = False
                prev = t
                continue
            if t == "if" and prev == "else":
                pass  # `else if` already scored by its `else`
            elif t in _NESTING_KEYWORDS:
                score += 1 + nesting
                pending = True
                pending_do = t == "do"
            elif t == "else":
                score += 1
                pending = True
        elif tok.kind is TokenKind.PUNCTUATION:
            if t == "?":
                score += 1 + nesting
            elif _is_logical(tokens, i):
                score += 1
            elif t == "(":
                parens += 1
            elif t == ")":
                parens = max(0, parens - 1)
            elif t == "{":
                frames.append(_Frame(nests=pending, closes_do=pending_do))
                if pending:
                    nesting += 1
                pending = pending_do = False
            elif t == "}":
                if frames:
                    frame = frames.pop()
                    if frame.nests:
                        nesting -= 1
                    after_do_body = frame.closes_do
                    prev = t
                    continue
            elif t == ";" and parens == 0:
                pending = pending_do = False
        after_do_body = False
        prev = t
    return score


def analyze_complexity(tokens: Sequence[Token], span: Span, children: Iterable[Span]) -> ComplexityResult:
    body = without_directives(owned_tokens(tokens, span, children, body_only=True))
    decisions = count_decisions(body)
    return ComplexityResult(
        span_id=span.id,
        decision_points=decisions,
        cyclomatic=decisions + 1,
        cognitive=cognitive_complexity(body),
        line_count=span.line_count,
    )


def high_complexity(results: Iterable[ComplexityResult], warn_at: int = 10) -> list[ComplexityResult]:
    """Results at or above `warn_at`, most complex first."""
    hot = [r for r in results if r.cyclomatic >= warn_at]
    hot.sort(key=lambda r: (-r.cyclomatic, r.span_id))
    return hot
