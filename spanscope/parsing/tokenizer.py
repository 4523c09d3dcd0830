"""Tolerant lexer for curly-brace source text.

Every character of the input lands in exactly one token; whitespace runs and
comments are tokens too, so callers can reason about adjacency. Malformed
input (unterminated comments or strings, stray bytes) never raises: the
lexer closes the token at the best available point and records a diagnostic.
"""
from __future__ import annotations
from dataclasses import dataclass
import re
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from spanscope.parsing.ir import Diagnostic, DiagnosticKind, Language, Token, TokenKind
from spanscope.parsing.source import ESCAPED_BYTES_RE, byte_length, decode_source, resolve_language

C_KEYWORDS = frozenset({
    "alignas", "alignof", "asm", "auto", "bool", "break", "case", "catch", "char",
    "char16_t", "char32_t", "char8_t", "class", "const", "const_cast", "consteval",
    "constexpr", "constinit", "continue", "decltype", "default", "delete", "do",
    "double", "dynamic_cast", "else", "enum", "explicit", "export", "extern",
    "final", "float", "for", "friend", "goto", "if", "inline", "int", "long",
    "mutable", "namespace", "new", "noexcept", "operator", "override", "private",
    "protected", "public", "register", "reinterpret_cast", "requires", "return",
    "short", "signed", "sizeof", "static", "static_assert", "static_cast",
    "struct", "switch", "template", "this", "thread_local", "throw", "try",
    "typedef", "typeid", "typename", "union", "unsigned", "using", "virtual",
    "void", "volatile", "wchar_t", "while",
    # Java / C# / JS words that shape structure or branching
    "extends", "implements", "interface", "finally", "instanceof", "function",
})

GENERIC_KEYWORDS = frozenset({
    "if", "else", "elif", "for", "while", "do", "switch", "case", "default",
    "catch", "try", "finally", "return", "class", "struct", "enum", "function",
    "def", "fn", "func", "break", "continue",
})

# Keywords naming a type; `&&` right after one of these is a reference declarator.
TYPE_KEYWORDS = frozenset({
    "auto", "bool", "char", "char16_t", "char32_t", "char8_t", "const", "double",
    "float", "int", "long", "short", "signed", "unsigned", "void", "volatile",
    "wchar_t",
})

_PUNCTUATORS = (
    ">>=", "<<=", "...", "->*", "<=>",
    "::", "->", "=>", "++", "--", "&&", "||", "==", "!=", "<=", ">=", "<<", ">>",
    "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "##", ".*", "?.", "??",
)
_PUNCT_RE = re.compile("|".join(re.escape(p) for p in _PUNCTUATORS))
_WS_RE = re.compile(r"[\s\ufeff]+")
_IDENT_RE = re.compile(r"(?:[^\W\d]|\$)[\w$\u0300-\u036f\u200c\u200d]*")
_NUMBER_RE = re.compile(r"\.?\d(?:[eEpP][+-]|'(?=\w)|[\w.])*")

_STRING_PREFIXES = frozenset({"L", "u", "U", "u8"})
_RAW_PREFIXES = frozenset({"R", "LR", "uR", "UR", "u8R"})
_RAW_DELIM_RE = re.compile(r'[^\s()\\"]{0,16}\(')

PLACEHOLDER = "\ufffd"


@dataclass(frozen=True)
class _Dialect:
    keywords: frozenset
    bool_literals: frozenset
    line_comments: Tuple[str, ...]
    quotes: str
    char_quote: Optional[str]
    prefixed_strings: bool
    multiline_quotes: str = ""


_DIALECTS = {
    Language.C_LIKE: _Dialect(
        keywords=C_KEYWORDS,
        bool_literals=frozenset({"true", "false", "nullptr"}),
        line_comments=("//",),
        quotes="\"'`",
        char_quote="'",
        prefixed_strings=True,
    ),
    Language.SCRIPT: _Dialect(
        keywords=C_KEYWORDS,
        bool_literals=frozenset({"true", "false", "null", "nil", "undefined"}),
        line_comments=("//",),
        quotes="\"'`",
        char_quote=None,
        prefixed_strings=False,
        multiline_quotes="`",
    ),
    Language.UNKNOWN: _Dialect(
        keywords=GENERIC_KEYWORDS,
        bool_literals=frozenset({"true", "false", "null", "nil", "None", "True", "False"}),
        line_comments=("//", "#"),
        quotes="\"'`",
        char_quote=None,
        prefixed_strings=False,
        multiline_quotes="`",
    ),
}


class _Lexer:
    def __init__(self, text: str, dialect: _Dialect, file_id: str, diagnostics: List[Diagnostic]):
        self.text = text
        self.n = len(text)
        self.dialect = dialect
        self.file_id = file_id
        self.diagnostics = diagnostics
        self.pos = 0
        self.byte = 0
        self.line = 1
        self.col = 1

    def tokens(self) -> Iterator[Token]:
        while self.pos < self.n:
            yield self._next()

    def _take(self, end: int, kind: TokenKind, literal: Optional[str] = None) -> Token:
        raw = self.text[self.pos:end]
        size = byte_length(raw)
        shown = ESCAPED_BYTES_RE.sub(PLACEHOLDER, raw) if not raw.isascii() else raw
        tok = Token(kind=kind, text=shown, start=self.byte, end=self.byte + size,
                    line=self.line, column=self.col, literal=literal)
        newlines = raw.count("\n")
        if newlines:
            self.line += newlines
            self.col = len(raw) - raw.rfind("\n")
        else:
            self.col += len(raw)
        self.pos = end
        self.byte += size
        return tok

    def _diag(self, kind: DiagnosticKind, message: str) -> None:
        self.diagnostics.append(Diagnostic(kind=kind, file_id=self.file_id, offset=self.byte, message=message))

    def _next(self) -> Token:
        text, pos, d = self.text, self.pos, self.dialect

        m = _WS_RE.match(text, pos)
        if m:
            return self._take(m.end(), TokenKind.WHITESPACE)

        if text.startswith("/*", pos):
            close = text.find("*/", pos + 2)
            if close == -1:
                self._diag(DiagnosticKind.UNTERMINATED_COMMENT,
                           f"block comment opened at line {self.line} is never closed")
                return self._take(self.n, TokenKind.COMMENT)
            return self._take(close + 2, TokenKind.COMMENT)

        for marker in d.line_comments:
            if text.startswith(marker, pos):
                end = text.find("\n", pos)
                return self._take(self.n if end == -1 else end, TokenKind.COMMENT)

        ch = text[pos]
        if ch in d.quotes:
            return self._quoted(pos, ch)

        m = _IDENT_RE.match(text, pos)
        if m:
            word = m.group()
            after = m.end()
            if d.prefixed_strings and after < self.n:
                nxt = text[after]
                if nxt == '"' and word in _RAW_PREFIXES:
                    return self._raw_string(after)
                if nxt in "\"'" and word in _STRING_PREFIXES:
                    return self._quoted(after, nxt)
            if word in d.bool_literals:
                return self._take(after, TokenKind.LITERAL, "BOOL")
            if word in d.keywords:
                return self._take(after, TokenKind.KEYWORD)
            return self._take(after, TokenKind.IDENTIFIER)

        m = _NUMBER_RE.match(text, pos)
        if m:
            return self._take(m.end(), TokenKind.LITERAL, "NUM")

        m = ESCAPED_BYTES_RE.match(text, pos)
        if m:
            return self._take(m.end(), TokenKind.PUNCTUATION)

        m = _PUNCT_RE.match(text, pos)
        if m:
            return self._take(m.end(), TokenKind.PUNCTUATION)
        return self._take(pos + 1, TokenKind.PUNCTUATION)

    def _quoted(self, quote_at: int, quote: str) -> Token:
        text = self.text
        i = quote_at + 1
        while i < self.n:
            c = text[i]
            if c == "\\":
                i += 2
                continue
            if c == quote:
                return self._take(i + 1, TokenKind.LITERAL, self._role(quote))
            if c == "\n" and quote not in self.dialect.multiline_quotes:
                break
            i += 1
        self._diag(DiagnosticKind.UNTERMINATED_STRING,
                   f"literal opened with {quote} at line {self.line} runs to end of line")
        return self._take(min(i, self.n), TokenKind.LITERAL, self._role(quote))

    def _raw_string(self, quote_at: int) -> Token:
        m = _RAW_DELIM_RE.match(self.text, quote_at + 1)
        if not m:
            return self._quoted(quote_at, '"')
        delim = m.group()[:-1]
        close = self.text.find(")" + delim + '"', m.end())
        if close == -1:
            self._diag(DiagnosticKind.UNTERMINATED_STRING,
                       f"raw string opened at line {self.line} is never closed")
            return self._take(self.n, TokenKind.LITERAL, "STR")
        return self._take(close + len(delim) + 2, TokenKind.LITERAL, "STR")

    def _role(self, quote: str) -> str:
        return "CHR" if quote == self.dialect.char_quote else "STR"


class TokenStream:
    """Restartable token sequence over one file.

    Each iteration lexes from the start again; ``diagnostics`` holds the
    anomalies seen by the most recent complete pass.
    """

    def __init__(self, text: Union[str, bytes], language: Union[Language, str] = Language.C_LIKE, file_id: str = ""):
        self.file_id = file_id
        self.language = resolve_language(language)
        self.text, self._encoding = decode_source(text, file_id)
        self.diagnostics: Tuple[Diagnostic, ...] = ()

    def __iter__(self) -> Iterator[Token]:
        found: List[Diagnostic] = list(self._encoding)
        lexer = _Lexer(self.text, _DIALECTS[self.language], self.file_id, found)
        yield from lexer.tokens()
        self.diagnostics = tuple(sorted(found, key=lambda dg: dg.offset))


def tokenize(text: Union[str, bytes], language: Union[Language, str] = Language.C_LIKE, file_id: str = "") -> TokenStream:
    return TokenStream(text, language, file_id)


def significant(tokens: Iterable[Token]) -> Iterator[Token]:
    return (t for t in tokens if t.significant)
