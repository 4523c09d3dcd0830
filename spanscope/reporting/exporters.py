from __future__ import annotations
from collections import Counter
from dataclasses import asdict
from pathlib import Path
import json

from spanscope.parsing.ir import Report
from spanscope.reporting.schema import (
    ComplexityJSON, DiagnosticJSON, DocCommentJSON, DuplicateGroupJSON, FileMetricsJSON, FileReportJSON,
    NameCollisionJSON, NearPairJSON, ReportJSON, SpanJSON, SummaryJSON,
)


def report_to_json(report: Report) -> ReportJSON:
    files: list[FileReportJSON] = []
    kinds: Counter[str] = Counter()
    for fr in report.files.values():
        kinds.update(s.kind.value for s in fr.spans)
        files.append(FileReportJSON(
            file_id=fr.file_id,
            language=fr.language.value,
            token_count=fr.token_count,
            metrics=FileMetricsJSON(**asdict(fr.metrics)) if fr.metrics is not None else None,
            spans=[
                SpanJSON(
                    id=s.id, kind=s.kind.value, name=s.name, qualified_name=s.qualified_name,
                    start=s.start, end=s.end, start_line=s.start_line, end_line=s.end_line,
                    depth=s.depth, parent_id=s.parent_id,
                ) for s in fr.spans
            ],
            doc_comments=[
                DocCommentJSON(
                    start=d.start, end=d.end, line=d.line, span_id=d.span_id,
                    description=d.description, tags=list(d.tags), text=d.text,
                ) for d in fr.doc_comments
            ],
            complexity=[
                ComplexityJSON(
                    span_id=c.span_id, decision_points=c.decision_points, cyclomatic=c.cyclomatic,
                    cognitive=c.cognitive, line_count=c.line_count,
                ) for c in fr.complexity
            ],
        ))

    metrics = [fr.metrics for fr in report.files.values() if fr.metrics is not None]
    groups = [
        DuplicateGroupJSON(
            kind=g.kind.value,
            representative=g.representative,
            members=list(g.members),
            similarity=g.similarity,
            pairs=[NearPairJSON(first=p.first, second=p.second, similarity=p.similarity) for p in g.pairs],
        ) for g in report.duplicate_groups
    ]
    return ReportJSON(
        summary=SummaryJSON(
            files_analyzed=len(report.files),
            spans=sum(kinds.values()),
            by_kind=dict(sorted(kinds.items())),
            total_lines=sum(m.total_lines for m in metrics),
            code_lines=sum(m.code_lines for m in metrics),
            comment_lines=sum(m.comment_lines for m in metrics),
            max_complexity=max((m.max_complexity for m in metrics), default=0),
            duplicate_groups=len(groups),
            diagnostics=len(report.diagnostics),
            cancelled=report.cancelled,
        ),
        files=files,
        duplicate_groups=groups,
        name_collisions=[
            NameCollisionJSON(name=c.name, span_ids=list(c.span_ids), file_ids=list(c.file_ids))
            for c in report.name_collisions
        ],
        diagnostics=[
            DiagnosticJSON(kind=d.kind.value, file_id=d.file_id, offset=d.offset, message=d.message)
            for d in report.diagnostics
        ],
    )


def export_json_report(report: Report, reports_dir: Path) -> Path:
    reports_dir.mkdir(parents=True, exist_ok=True)
    out = reports_dir / "report.json"
    payload = report_to_json(report)
    out.write_text(json.dumps(payload.model_dump(), indent=2, ensure_ascii=False), encoding="utf-8")
    return out
