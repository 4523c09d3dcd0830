"""Brace-depth structural extraction.

Walks the significant tokens once, keeping a stack of open brace scopes. When a
``{`` arrives, the tokens since the last statement boundary (the *header*)
decide what it opens: a function, a lambda, a class/struct/union/enum, a
namespace or ``extern "C"`` block, or just an anonymous scope (control flow,
initializers). Preprocessor lines are skipped entirely.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from spanscope.parsing.ir import Diagnostic, DiagnosticKind, Language, Span, SpanKind, Token, TokenKind
from spanscope.parsing.source import resolve_language
from spanscope.parsing.tokenizer import TYPE_KEYWORDS

_TYPE_WORDS = {
    "class": SpanKind.CLASS,
    "interface": SpanKind.CLASS,
    "struct": SpanKind.STRUCT,
    "union": SpanKind.UNION,
    "enum": SpanKind.ENUM,
}
_ACCESS_WORDS = frozenset({"public", "private", "protected"})
_ATTRIBUTE_CALLS = frozenset({"__attribute__", "alignas", "__declspec"})
# specifiers that may follow a parameter list
_TRAILING_WORDS = TYPE_KEYWORDS | frozenset({
    "noexcept", "override", "final", "mutable", "constexpr", "throw", "requires",
})
_TRAILING_CALLS = frozenset({"noexcept", "throw", "alignas", "decltype", "requires"})
_TRAILING_PUNCT = frozenset({"->", "*", "&", "&&", "::", "<", ">", ",", "."})
# tokens that can sit right before a function name in a declaration
_DECL_WORDS = TYPE_KEYWORDS | frozenset({
    "static", "inline", "virtual", "extern", "constexpr", "explicit", "friend",
    "function", "fn", "func", "def",
})
_DECL_PUNCT = frozenset({"*", "&", "&&", ">"})
_TYPE_TAIL_WORDS = frozenset({"extends", "implements", "sealed", "permits"})
_KR_PUNCT = frozenset({"*", ",", ";", "[", "]"})

NESTABLE_PARENTS = frozenset({
    SpanKind.FUNCTION, SpanKind.CLASS, SpanKind.STRUCT, SpanKind.UNION,
    SpanKind.ENUM, SpanKind.NESTED_TYPE,
})


@dataclass(frozen=True)
class StructureResult:
    spans: Tuple[Span, ...]
    diagnostics: Tuple[Diagnostic, ...]


@dataclass(frozen=True)
class _Opening:
    kind: SpanKind
    name: str
    qualified: str
    keyword: str
    header: int  # position in the significant-token list


class _Record:
    __slots__ = ("opening", "body", "close", "parent")

    def __init__(self, opening: _Opening, body: int, parent: Optional["_Record"]):
        self.opening = opening
        self.body = body
        self.close: Optional[int] = None
        self.parent = parent


class _Scope:
    __slots__ = ("record", "openers", "at", "inline")

    def __init__(self, record: Optional[_Record], openers: int, at: int, inline: bool = False):
        self.record = record
        self.openers = openers
        self.at = at
        self.inline = inline  # brace-init inside a constructor initializer list


class _Extractor:
    def __init__(self, tokens: Sequence[Token], file_id: str, language: Language):
        self.tokens = tokens
        self.file_id = file_id
        self.language = language
        self.sig: List[int] = []
        self.match: Dict[int, int] = {}       # closer position -> opener position
        self.match_open: Dict[int, int] = {}  # opener position -> closer position
        self.openers: List[Tuple[int, int]] = []
        self.scopes: List[_Scope] = []
        self.records: List[_Record] = []
        self.stmt_start = 0
        self.statements: List[int] = []  # starts of `;`-terminated statements since the last brace
        self.diagnostics: List[Diagnostic] = []

    # -- helpers over the significant-token list --
    def _tok(self, pos: int) -> Token:
        return self.tokens[self.sig[pos]]

    def _paren_open(self) -> bool:
        return bool(self.openers) and self.openers[-1][1] == len(self.scopes)

    def _enclosing(self) -> Optional[_Record]:
        for scope in reversed(self.scopes):
            if scope.record is not None:
                return scope.record
        return None

    def _diag(self, offset: int, message: str) -> None:
        self.diagnostics.append(Diagnostic(
            kind=DiagnosticKind.BRACE_MISMATCH, file_id=self.file_id, offset=offset, message=message,
        ))

    # -- main pass --
    def run(self) -> StructureResult:
        directives = self.language is Language.C_LIKE
        in_directive = False
        line_clean = True
        last_text = ""
        for i, tok in enumerate(self.tokens):
            if tok.kind is TokenKind.WHITESPACE:
                if "\n" in tok.text:
                    if in_directive and last_text != "\\":
                        in_directive = False
                        self.stmt_start = len(self.sig)
                    line_clean = True
                continue
            if tok.kind is TokenKind.COMMENT:
                continue
            if directives and line_clean and tok.text == "#":
                in_directive = True
            line_clean = False
            last_text = tok.text
            if not in_directive:
                self._feed(i, tok)
        return self._finish()

    def _feed(self, index: int, tok: Token) -> None:
        pos = len(self.sig)
        self.sig.append(index)
        if tok.kind is not TokenKind.PUNCTUATION:
            return
        t = tok.text
        if t in ("(", "["):
            self.openers.append((pos, len(self.scopes)))
        elif t in (")", "]"):
            want = "(" if t == ")" else "["
            if self._paren_open() and self._tok(self.openers[-1][0]).text == want:
                o, _ = self.openers.pop()
                self.match[pos] = o
                self.match_open[o] = pos
        elif t == "{":
            self._open(pos)
        elif t == "}":
            self._close(pos)
        elif t == ";":
            if not self._paren_open():
                self.statements.append(self.stmt_start)
                self.stmt_start = pos + 1
        elif t == ":":
            if pos > 0 and self._tok(pos - 1).text in _ACCESS_WORDS:
                self.stmt_start = pos + 1

    def _open(self, pos: int) -> None:
        if self._initializer_entry(pos):
            self.scopes.append(_Scope(None, len(self.openers), pos, inline=True))
            return
        start = self._past_macro_lines(self.stmt_start, pos)
        opening = self._type_opening(start, pos) or self._function_opening(start, pos)
        if opening is None and start == pos:
            opening = self._kr_opening(pos)
        record = None
        if opening is not None:
            record = _Record(opening, pos, self._enclosing())
            self.records.append(record)
        self.scopes.append(_Scope(record, len(self.openers), pos))
        self.stmt_start = pos + 1
        self.statements = []

    def _close(self, pos: int) -> None:
        if not self.scopes:
            self.stmt_start = pos + 1
            self._diag(self._tok(pos).start, "closing brace without a matching opening brace")
            return
        scope = self.scopes.pop()
        del self.openers[scope.openers:]
        if scope.inline:
            self.match[pos] = scope.at
            return
        self.stmt_start = pos + 1
        self.statements = []
        if scope.record is not None:
            scope.record.close = pos

    def _initializer_entry(self, pos: int) -> bool:
        """`{` of `m_{x}` in `Foo(int x) : a(x), m_{x} {`."""
        name = pos - 1
        if name - 1 < self.stmt_start or self._tok(name).kind is not TokenKind.IDENTIFIER:
            return False
        k = name - 1
        while self._tok(k).text == ",":
            closer = k - 1
            opener = self.match.get(closer)
            if opener is None or opener - 1 < self.stmt_start or self._tok(opener - 1).kind is not TokenKind.IDENTIFIER:
                return False
            k = opener - 2
            if k < self.stmt_start:
                return False
        if self._tok(k).text != ":" or k - 1 < self.stmt_start:
            return False
        return self._tok(k - 1).text == ")" and (k - 1) in self.match

    def _past_macro_lines(self, start: int, b: int) -> int:
        """Skip `NAME(...)` macro invocations that end their own line before a header."""
        while start + 1 < b:
            tok = self._tok(start)
            if tok.kind is not TokenKind.IDENTIFIER or not tok.text.isupper() or self._tok(start + 1).text != "(":
                break
            close = self.match_open.get(start + 1)
            if close is None or close + 1 >= b or self._tok(close + 1).line == self._tok(close).line:
                break
            start = close + 1
        return start

    def _kr_opening(self, b: int) -> Optional[_Opening]:
        """`int add(a, b) int a; int b; {`: parameter declarations between `)` and `{`."""
        enclosing = self._enclosing()
        if enclosing is not None and enclosing.opening.kind is not SpanKind.BLOCK:
            return None
        for s in reversed(self.statements):
            close = next((k for k in range(s, b) if self._tok(k).text == ")" and self.match.get(k, -1) >= s), None)
            if close is None:
                continue
            decls = [self._tok(k) for k in range(close + 1, b)]
            if not any(t.kind is TokenKind.IDENTIFIER for t in decls):
                return None
            if not all(t.kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD) or t.text in _KR_PUNCT for t in decls):
                return None
            return self._function_opening(s, close + 1)
        return None

    # -- header classification --
    def _type_opening(self, start: int, b: int) -> Optional[_Opening]:
        depth = 0
        kw_at = None
        for p in range(start, b):
            tok = self._tok(p)
            if tok.text in ("(", "["):
                depth += 1
            elif tok.text in (")", "]"):
                depth -= 1
            elif depth == 0 and tok.kind is TokenKind.KEYWORD and (tok.text in _TYPE_WORDS or tok.text == "namespace"):
                kw_at = p

        if kw_at is None:
            if b - start >= 2 and self._tok(b - 2).text == "extern" and self._tok(b - 1).kind is TokenKind.LITERAL:
                name = f"extern {self._tok(b - 1).text}"
                return _Opening(SpanKind.BLOCK, name, name, "extern", start)
            return None

        kw = self._tok(kw_at).text
        if kw == "namespace":
            parts = [self._tok(p).text for p in range(kw_at + 1, b)]
            if any(part not in ("::", ".") and self._tok(kw_at + 1 + i).kind is not TokenKind.IDENTIFIER
                   for i, part in enumerate(parts)):
                return None
            name = "".join(parts) or "<anonymous>"
            return _Opening(SpanKind.BLOCK, name, name, "namespace", start)

        kind = _TYPE_WORDS[kw]
        keyword = kw
        if kw in ("class", "struct") and kw_at > start and self._tok(kw_at - 1).text == "enum":
            kind, keyword = SpanKind.ENUM, "enum"

        p = kw_at + 1
        while p < b and self._tok(p).text in _ATTRIBUTE_CALLS and p + 1 < b and self._tok(p + 1).text == "(":
            close = self.match_open.get(p + 1)
            if close is None or close >= b:
                return None
            p = close + 1
        if p < b and self._tok(p).text == "[" and p + 1 < b and self._tok(p + 1).text == "[":
            close = self.match_open.get(p)
            if close is None or close >= b:
                return None
            p = close + 1

        parts: List[str] = []
        if p < b and self._tok(p).kind is TokenKind.IDENTIFIER:
            parts.append(self._tok(p).text)
            p += 1
            while p + 1 < b and self._tok(p).text == "::" and self._tok(p + 1).kind is TokenKind.IDENTIFIER:
                parts.append(self._tok(p + 1).text)
                p += 2

        if p < b:
            nxt = self._tok(p)
            if nxt.kind is TokenKind.IDENTIFIER and nxt.text not in _TYPE_TAIL_WORDS:
                return None  # `struct S s {` / `struct S s = {` declare a variable
        for q in range(p, b):
            if self._tok(q).text in ("(", "="):
                return None

        name = parts[-1] if parts else "<anonymous>"
        qualified = "::".join(parts) if parts else name
        return _Opening(kind, name, qualified, keyword, start)

    def _function_opening(self, start: int, b: int) -> Optional[_Opening]:
        k = b - 1
        while k >= start:
            tok = self._tok(k)
            t = tok.text
            if t == "=>":
                return self._arrow(start, k)
            if t == "}":
                o = self.match.get(k)
                if o is None or o - 2 < start or self._tok(o - 2).text not in (":", ","):
                    return None
                k = o - 3  # `name{...}` initializer entry
                continue
            if t == ")":
                o = self.match.get(k)
                if o is None or o <= start:
                    return None
                prev = o - 1
                p = self._tok(prev)
                op = self._operator(start, prev)
                if op is not None:
                    return op
                if p.text == "]":
                    bracket = self.match.get(prev)
                    if bracket is None or bracket < start:
                        return None
                    return _Opening(SpanKind.FUNCTION, "<lambda>", "<lambda>", "", bracket)
                if p.text == ")":
                    k = prev
                    continue
                if p.kind is TokenKind.KEYWORD and p.text in _TRAILING_CALLS:
                    k = prev - 1
                    continue
                if p.kind is TokenKind.IDENTIFIER:
                    if prev - 1 > start and self._tok(prev - 1).text in (":", ","):
                        k = prev - 2  # member initializer list entry
                        continue
                    return self._named(start, prev)
                return None
            if tok.kind is TokenKind.IDENTIFIER or (tok.kind is TokenKind.KEYWORD and t in _TRAILING_WORDS) or t in _TRAILING_PUNCT:
                k -= 1
                continue
            return None
        return None

    def _named(self, start: int, prev: int) -> Optional[_Opening]:
        parts = [self._tok(prev).text]
        q = prev
        if q - 1 >= start and self._tok(q - 1).text == "~":
            parts[0] = "~" + parts[0]
            q -= 1
        while q - 2 >= start and self._tok(q - 1).text == "::" and self._tok(q - 2).kind is TokenKind.IDENTIFIER:
            parts.insert(0, self._tok(q - 2).text)
            q -= 2
        enclosing = self._enclosing()
        if enclosing is not None and enclosing.opening.kind is SpanKind.FUNCTION:
            # inside a body only a declaration-shaped header defines a function
            if q - 1 < start or not self._declarator(self._tok(q - 1)):
                return None
        return _Opening(SpanKind.FUNCTION, parts[-1], "::".join(parts), "", start)

    @staticmethod
    def _declarator(tok: Token) -> bool:
        return tok.kind is TokenKind.IDENTIFIER or tok.text in _DECL_WORDS or tok.text in _DECL_PUNCT

    def _operator(self, start: int, prev: int) -> Optional[_Opening]:
        for j in range(prev, max(start, prev - 3) - 1, -1):
            if self._tok(j).text != "operator":
                continue
            rest = [self._tok(x) for x in range(j + 1, prev + 1)]
            sep = " " if rest and rest[0].kind is not TokenKind.PUNCTUATION else ""
            name = "operator" + sep + " ".join(r.text for r in rest if r.kind is not TokenKind.PUNCTUATION) \
                if sep else "operator" + "".join(r.text for r in rest)
            parts = [name]
            q = j
            while q - 2 >= start and self._tok(q - 1).text == "::" and self._tok(q - 2).kind is TokenKind.IDENTIFIER:
                parts.insert(0, self._tok(q - 2).text)
                q -= 2
            return _Opening(SpanKind.FUNCTION, name, "::".join(parts), "", start)
        return None

    def _arrow(self, start: int, k: int) -> Optional[_Opening]:
        j = k - 1
        if j < start:
            return None
        if self._tok(j).text == ")":
            head = self.match.get(j)
            if head is None or head < start:
                return None
            if head - 1 >= start and self._tok(head - 1).text == "async":
                head -= 1
        elif self._tok(j).kind is TokenKind.IDENTIFIER:
            head = j
        else:
            return None
        return _Opening(SpanKind.FUNCTION, "<lambda>", "<lambda>", "", head)

    # -- result assembly --
    def _finish(self) -> StructureResult:
        if self.scopes:
            eof = self.tokens[-1].end if self.tokens else 0
            self._diag(eof, f"{len(self.scopes)} brace(s) still open at end of file; unclosed spans dropped")

        closed = [r for r in self.records if r.close is not None]
        closed.sort(key=lambda r: (self.sig[r.opening.header], -self.sig[r.close]))
        ids: Dict[int, str] = {}
        built: Dict[int, Span] = {}
        spans: List[Span] = []
        for n, rec in enumerate(closed):
            ids[id(rec)] = f"{self.file_id}#{n}"
        for rec in closed:
            parent = rec.parent
            while parent is not None and parent.close is None:
                parent = parent.parent
            parent_span = built.get(id(parent)) if parent is not None else None
            kind = rec.opening.kind
            if kind in (SpanKind.CLASS, SpanKind.STRUCT, SpanKind.UNION, SpanKind.ENUM) \
                    and parent_span is not None and parent_span.kind in NESTABLE_PARENTS:
                kind = SpanKind.NESTED_TYPE
            first = self.tokens[self.sig[rec.opening.header]]
            last = self.tokens[self.sig[rec.close]]
            span = Span(
                id=ids[id(rec)],
                file_id=self.file_id,
                kind=kind,
                name=rec.opening.name,
                qualified_name=rec.opening.qualified,
                keyword=rec.opening.keyword,
                start=first.start,
                end=last.end,
                start_line=first.line,
                end_line=last.line,
                depth=parent_span.depth + 1 if parent_span is not None else 0,
                parent_id=parent_span.id if parent_span is not None else None,
                token_start=self.sig[rec.opening.header],
                body_token=self.sig[rec.body],
                token_end=self.sig[rec.close] + 1,
            )
            built[id(rec)] = span
            spans.append(span)
        return StructureResult(spans=tuple(spans), diagnostics=tuple(self.diagnostics))


def extract_spans(tokens: Iterable[Token], file_id: str = "", language: Union[Language, str] = Language.C_LIKE) -> StructureResult:
    """Delimit function/type/block spans from a file's full token list."""
    seq = tokens if isinstance(tokens, (list, tuple)) else list(tokens)
    return _Extractor(seq, file_id, resolve_language(language)).run()


def children_by_parent(spans: Iterable[Span]) -> Dict[Optional[str], List[Span]]:
    out: Dict[Optional[str], List[Span]] = {}
    for span in spans:
        out.setdefault(span.parent_id, []).append(span)
    return out


def owned_tokens(tokens: Sequence[Token], span: Span, children: Iterable[Span], body_only: bool = False) -> List[Token]:
    """Significant tokens of `span` minus those inside its nested spans."""
    i = span.body_token if body_only else span.token_start
    out: List[Token] = []
    for child in sorted(children, key=lambda c: c.token_start):
        if child.token_start > i:
            out.extend(tokens[i:child.token_start])
        i = max(i, child.token_end)
    out.extend(tokens[i:span.token_end])
    return [t for t in out if t.significant]


def without_directives(tokens: Sequence[Token]) -> List[Token]:
    """Drop preprocessor lines (``#if``, ``#define`` ...) from a significant-token slice."""
    out: List[Token] = []
    directive_line = 0
    prev: Optional[Token] = None
    for tok in tokens:
        if directive_line:
            continued = prev is not None and prev.text == "\\" and tok.line == directive_line + 1
            if tok.line == directive_line or continued:
                directive_line = tok.line
                prev = tok
                continue
            directive_line = 0
        if tok.text == "#" and (prev is None or prev.line < tok.line):
            directive_line = tok.line
        else:
            out.append(tok)
        prev = tok
    return out
