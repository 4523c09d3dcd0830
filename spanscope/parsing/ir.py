from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple, Union


class Language(str, Enum):
    C_LIKE = "c-like"
    SCRIPT = "script"  # JS/TS/Go: C-like, plus multi-line backtick strings
    UNKNOWN = "unknown"


class TokenKind(str, Enum):
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    LITERAL = "literal"
    PUNCTUATION = "punctuation"
    COMMENT = "comment"
    WHITESPACE = "whitespace"


class SpanKind(str, Enum):
    FUNCTION = "function"
    CLASS = "class"
    STRUCT = "struct"
    UNION = "union"
    ENUM = "enum"
    NESTED_TYPE = "nested-type"
    BLOCK = "block"


class DiagnosticKind(str, Enum):
    UNTERMINATED_COMMENT = "UnterminatedComment"
    UNTERMINATED_STRING = "UnterminatedString"
    BRACE_MISMATCH = "BraceMismatch"
    ENCODING_WARNING = "EncodingWarning"
    UNATTACHED_DOC_COMMENT = "UnattachedDocComment"


class DuplicateKind(str, Enum):
    EXACT = "exact"
    NEAR = "near"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    start: int  # UTF-8 byte offset, inclusive
    end: int    # UTF-8 byte offset, exclusive
    line: int
    column: int
    literal: Optional[str] = None  # NUM | STR | CHR | BOOL for literal tokens

    @property
    def significant(self) -> bool:
        return self.kind is not TokenKind.WHITESPACE and self.kind is not TokenKind.COMMENT


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    file_id: str
    offset: int
    message: str


@dataclass(frozen=True)
class SourceFile:
    file_id: str
    text: Union[str, bytes]
    language: Union[Language, str] = Language.C_LIKE


@dataclass(frozen=True)
class Span:
    id: str
    file_id: str
    kind: SpanKind
    name: str
    qualified_name: str
    keyword: str  # introducing keyword for types/blocks, "" for functions
    start: int
    end: int
    start_line: int
    end_line: int
    depth: int
    parent_id: Optional[str]
    token_start: int  # index of the first header token in the file's token list
    body_token: int   # index of the opening brace
    token_end: int    # one past the closing brace

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

    def contains(self, other: "Span") -> bool:
        return self.start <= other.start and other.end <= self.end


@dataclass(frozen=True)
class DocComment:
    file_id: str
    text: str
    start: int
    end: int
    line: int
    span_id: Optional[str]
    description: str
    tags: Tuple[Tuple[str, str], ...] = ()

    def tag_values(self, name: str) -> list[str]:
        return [value for tag, value in self.tags if tag == name]


@dataclass(frozen=True)
class ComplexityResult:
    span_id: str
    decision_points: int
    cyclomatic: int
    cognitive: int
    line_count: int


@dataclass(frozen=True)
class Fingerprint:
    span_id: str
    file_id: str
    start: int
    canonical: str
    token_count: int
    shingles: Tuple[int, ...]


@dataclass(frozen=True)
class NearPair:
    first: str
    second: str
    similarity: float


@dataclass(frozen=True)
class DuplicateGroup:
    kind: DuplicateKind
    representative: str
    members: Tuple[str, ...]
    similarity: float
    pairs: Tuple[NearPair, ...] = ()


@dataclass(frozen=True)
class NameCollision:
    name: str
    span_ids: Tuple[str, ...]
    file_ids: Tuple[str, ...]


@dataclass(frozen=True)
class FileMetrics:
    total_lines: int
    code_lines: int
    comment_lines: int  # lines holding comments but no code
    blank_lines: int
    comment_ratio: float  # comment_lines / code_lines
    functions: int
    types: int  # class/struct/union/enum spans, nested ones included
    total_complexity: int  # cyclomatic, summed over function spans
    max_complexity: int
    average_complexity: float


@dataclass(frozen=True)
class FileReport:
    file_id: str
    language: Language
    token_count: int
    spans: Tuple[Span, ...]
    doc_comments: Tuple[DocComment, ...]
    complexity: Tuple[ComplexityResult, ...]
    fingerprints: Tuple[Fingerprint, ...]
    diagnostics: Tuple[Diagnostic, ...]
    metrics: Optional[FileMetrics] = None


@dataclass(frozen=True)
class Report:
    files: Mapping[str, FileReport]
    duplicate_groups: Tuple[DuplicateGroup, ...] = ()
    name_collisions: Tuple[NameCollision, ...] = ()
    diagnostics: Tuple[Diagnostic, ...] = ()
    cancelled: bool = False
    _span_index: Dict[str, Span] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for fr in self.files.values():
            for span in fr.spans:
                self._span_index[span.id] = span

    def span(self, span_id: str) -> Span:
        return self._span_index[span_id]

    def location(self, span_id: str) -> tuple[str, int, int]:
        span = self._span_index[span_id]
        return span.file_id, span.start, span.end

    def complexity_for(self, span_id: str) -> Optional[ComplexityResult]:
        span = self._span_index.get(span_id)
        if span is None:
            return None
        for result in self.files[span.file_id].complexity:
            if result.span_id == span_id:
                return result
        return None
