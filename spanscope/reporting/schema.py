from __future__ import annotations
from typing import List, Dict, Literal, Optional, Tuple
from pydantic import BaseModel, Field

SpanKindName = Literal["function", "class", "struct", "union", "enum", "nested-type", "block"]
DuplicateKindName = Literal["exact", "near"]


class SpanJSON(BaseModel):
    id: str = Field(..., description="Stable identifier: <file_id>#<ordinal>")
    kind: SpanKindName
    name: str = Field(..., description="Raw name as written, Unicode preserved")
    qualified_name: str
    start: int = Field(..., ge=0, description="UTF-8 byte offset, inclusive")
    end: int = Field(..., ge=0, description="UTF-8 byte offset, exclusive")
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    depth: int = Field(..., ge=0)
    parent_id: Optional[str] = None


class DocCommentJSON(BaseModel):
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    line: int = Field(..., ge=1)
    span_id: Optional[str] = Field(None, description="Span the comment documents, if any")
    description: str = ""
    tags: List[Tuple[str, str]] = Field(default_factory=list, description="Ordered (tag, value) pairs")
    text: str


class ComplexityJSON(BaseModel):
    span_id: str
    decision_points: int = Field(..., ge=0)
    cyclomatic: int = Field(..., ge=1)
    cognitive: int = Field(..., ge=0)
    line_count: int = Field(..., ge=1)


class DiagnosticJSON(BaseModel):
    kind: str
    file_id: str
    offset: int = Field(..., ge=0)
    message: str


class FileMetricsJSON(BaseModel):
    total_lines: int = Field(..., ge=0)
    code_lines: int = Field(..., ge=0)
    comment_lines: int = Field(..., ge=0)
    blank_lines: int = Field(..., ge=0)
    comment_ratio: float = Field(..., ge=0.0, description="Comment-only lines per code line")
    functions: int = Field(..., ge=0)
    types: int = Field(..., ge=0)
    total_complexity: int = Field(..., ge=0)
    max_complexity: int = Field(..., ge=0)
    average_complexity: float = Field(..., ge=0.0)


class FileReportJSON(BaseModel):
    file_id: str
    language: str
    token_count: int = Field(..., ge=0)
    metrics: Optional[FileMetricsJSON] = None
    spans: List[SpanJSON]
    doc_comments: List[DocCommentJSON]
    complexity: List[ComplexityJSON]


class NearPairJSON(BaseModel):
    first: str
    second: str
    similarity: float = Field(..., ge=0.0, le=1.0)


class DuplicateGroupJSON(BaseModel):
    kind: DuplicateKindName
    representative: str
    members: List[str] = Field(..., min_length=2)
    similarity: float = Field(..., ge=0.0, le=1.0)
    pairs: List[NearPairJSON] = Field(default_factory=list)


class NameCollisionJSON(BaseModel):
    name: str
    span_ids: List[str]
    file_ids: List[str]


class SummaryJSON(BaseModel):
    files_analyzed: int = Field(..., ge=0)
    spans: int = Field(..., ge=0)
    by_kind: Dict[str, int] = Field(..., description="Span counts per kind")
    total_lines: int = Field(0, ge=0)
    code_lines: int = Field(0, ge=0)
    comment_lines: int = Field(0, ge=0)
    max_complexity: int = Field(0, ge=0, description="Highest function cyclomatic complexity")
    duplicate_groups: int = Field(..., ge=0)
    diagnostics: int = Field(..., ge=0)
    cancelled: bool = False


class ReportJSON(BaseModel):
    summary: SummaryJSON
    files: List[FileReportJSON]
    duplicate_groups: List[DuplicateGroupJSON]
    name_collisions: List[NameCollisionJSON]
    diagnostics: List[DiagnosticJSON]
