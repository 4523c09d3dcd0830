from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import re
import textwrap

from spanscope.parsing.ir import Diagnostic, DiagnosticKind, DocComment, Span, Token, TokenKind

# ---- Doc comment recognition ----
_LINE_DOC_PREFIXES = ("///", "//!")
_STAR_RE = re.compile(r"^[ \t]*\*(?!/) ?")
_TAG_RE = re.compile(r"^\s*@(\w+)(.*)$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")


def is_block_doc(text: str) -> bool:
    if text.startswith("/*!"):
        return True
    # `/**/` is an empty plain comment and `/*****` opens a banner
    return text.startswith("/**") and not text.startswith("/**/") and not text.startswith("/***")


def is_line_doc(text: str) -> bool:
    return text.startswith(_LINE_DOC_PREFIXES) and not text.startswith("////")


def is_doc(tok: Token) -> bool:
    return tok.kind is TokenKind.COMMENT and (is_block_doc(tok.text) or is_line_doc(tok.text))


def _single_newline(tok: Token) -> bool:
    return tok.kind is TokenKind.WHITESPACE and tok.text.count("\n") == 1


def _doc_runs(tokens: Sequence[Token]) -> List[Tuple[int, int]]:
    """Index ranges [first, last] of each doc comment; `///` runs are merged."""
    runs: List[Tuple[int, int]] = []
    i = 0
    n = len(tokens)
    while i < n:
        tok = tokens[i]
        if tok.kind is not TokenKind.COMMENT or not is_doc(tok):
            i += 1
            continue
        last = i
        if is_line_doc(tok.text):
            while last + 2 < n and _single_newline(tokens[last + 1]) \
                    and tokens[last + 2].kind is TokenKind.COMMENT and is_line_doc(tokens[last + 2].text):
                last += 2
        runs.append((i, last))
        i = last + 1
    return runs


# ---- Body cleanup and tag parsing ----
def strip_decoration(raw: str) -> str:
    """Drop comment delimiters and leading `*` gutters, keeping inner indentation."""
    if raw.startswith("/*"):
        body = raw[3:]
        if body.endswith("*/") and len(raw) >= 5:
            body = body[:-2]
        lines = [_STAR_RE.sub("", line, count=1) for line in body.split("\n")]
    else:
        lines = []
        for line in raw.split("\n"):
            line = line.lstrip()[3:]
            lines.append(line[1:] if line.startswith(" ") else line)
    if lines:
        lines[0] = lines[0].lstrip()
    return textwrap.dedent("\n".join(line.rstrip() for line in lines)).strip("\n")


def parse_tags(body: str) -> Tuple[str, Tuple[Tuple[str, str], ...]]:
    description: List[str] = []
    tags: List[Tuple[str, List[str]]] = []
    in_fence = False
    for line in body.split("\n"):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
        m = None if in_fence else _TAG_RE.match(line)
        if m:
            tags.append((m.group(1), [m.group(2).strip()]))
        elif tags:
            tags[-1][1].append(line)
        else:
            description.append(line)
    return (
        "\n".join(description).strip(),
        tuple((name, "\n".join(value).strip()) for name, value in tags),
    )


# ---- Attachment ----
def _attached_span(tokens: Sequence[Token], after: int, by_start: Dict[int, Span]) -> Optional[Span]:
    k = after + 1
    while k < len(tokens):
        tok = tokens[k]
        if tok.kind is TokenKind.WHITESPACE:
            k += 1
            continue
        if tok.kind is TokenKind.COMMENT:
            if is_doc(tok):
                return None  # a closer doc comment owns the span
            k += 1
            continue
        return by_start.get(k)
    return None


@dataclass(frozen=True)
class DocResult:
    comments: Tuple[DocComment, ...]
    diagnostics: Tuple[Diagnostic, ...]


def extract_doc_comments(tokens: Sequence[Token], spans: Iterable[Span], file_id: str = "") -> DocResult:
    by_start: Dict[int, Span] = {}
    for span in spans:
        by_start.setdefault(span.token_start, span)

    comments: List[DocComment] = []
    diagnostics: List[Diagnostic] = []
    for first, last in _doc_runs(tokens):
        raw = "".join(t.text for t in tokens[first:last + 1])
        description, tags = parse_tags(strip_decoration(raw))
        span = _attached_span(tokens, last, by_start)
        doc = DocComment(
            file_id=file_id,
            text=raw,
            start=tokens[first].start,
            end=tokens[last].end,
            line=tokens[first].line,
            span_id=span.id if span is not None else None,
            description=description,
            tags=tags,
        )
        comments.append(doc)
        if span is None:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.UNATTACHED_DOC_COMMENT,
                file_id=file_id,
                offset=doc.start,
                message=f"documentation comment at line {doc.line} does not precede a span",
            ))
    return DocResult(comments=tuple(comments), diagnostics=tuple(diagnostics))
