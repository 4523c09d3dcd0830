from __future__ import annotations

import os
import threading
import typing as t
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from spanscope.analysis.detectors.complexity import analyze_complexity
from spanscope.analysis.detectors.docs import extract_doc_comments
from spanscope.analysis.detectors.duplication import fingerprint, fingerprinted, group_duplicates, name_collisions
from spanscope.analysis.detectors.metrics import file_metrics
from spanscope.core.config import EngineConfig, load_config
from spanscope.core.errors import ConfigError
from spanscope.logging import get_logger
from spanscope.parsing.ir import Diagnostic, FileReport, Report, SourceFile
from spanscope.parsing.source import resolve_language
from spanscope.parsing.structure import children_by_parent, extract_spans
from spanscope.parsing.tokenizer import TokenStream

logger = get_logger("runner")

SourceInput = t.Union[SourceFile, t.Tuple[str, t.Union[str, bytes]], t.Tuple[str, t.Union[str, bytes], str]]


def _as_source(item: SourceInput) -> SourceFile:
    if isinstance(item, SourceFile):
        return item
    return SourceFile(*item)


def _cancelled(cancel: threading.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


def analyze_file(
    source: SourceFile,
    config: EngineConfig | None = None,
    cancel: threading.Event | None = None,
) -> FileReport | None:
    """Single-file pipeline. Returns None when `cancel` fires mid-way."""
    config = config or EngineConfig()
    stream = TokenStream(source.text, source.language, source.file_id)
    tokens = list(stream)
    if _cancelled(cancel):
        return None

    structure = extract_spans(tokens, source.file_id, stream.language)
    children = children_by_parent(structure.spans)
    docs = extract_doc_comments(tokens, structure.spans, source.file_id)
    if _cancelled(cancel):
        return None

    complexity = tuple(
        analyze_complexity(tokens, span, children.get(span.id, ()))
        for span in structure.spans
    )
    fingerprints = tuple(
        fingerprint(tokens, span, children.get(span.id, ()), config.shingle_size)
        for span in structure.spans if fingerprinted(span)
    )
    diagnostics = sorted(
        (*stream.diagnostics, *structure.diagnostics, *docs.diagnostics),
        key=lambda d: (d.offset, d.kind.value),
    )
    logger.debug("%s: %d tokens, %d spans, %d diagnostics",
                 source.file_id, len(tokens), len(structure.spans), len(diagnostics))
    return FileReport(
        file_id=source.file_id,
        language=stream.language,
        token_count=len(tokens),
        spans=structure.spans,
        doc_comments=docs.comments,
        complexity=complexity,
        fingerprints=fingerprints,
        diagnostics=tuple(diagnostics),
        metrics=file_metrics(tokens, structure.spans, complexity),
    )


def _validate(inputs: t.Iterable[SourceInput]) -> list[SourceFile]:
    sources: list[SourceFile] = []
    seen: set[str] = set()
    for item in inputs:
        src = _as_source(item)
        if src.file_id in seen:
            raise ConfigError(f"duplicate file id: {src.file_id!r}")
        seen.add(src.file_id)
        resolve_language(src.language)
        sources.append(src)
    return sources


def _merge(files: dict[str, FileReport], config: EngineConfig) -> Report:
    ordered = {fid: files[fid] for fid in sorted(files)}
    fingerprints = [fp for fr in ordered.values() for fp in fr.fingerprints]
    spans = [span for fr in ordered.values() for span in fr.spans]
    groups = group_duplicates(
        fingerprints,
        threshold=config.similarity_threshold,
        near=config.detect_near_duplicates,
    )
    collisions = name_collisions(spans, config.ignored_names) if config.detect_name_collisions else []
    diagnostics: list[Diagnostic] = [d for fr in ordered.values() for d in fr.diagnostics]
    return Report(
        files=ordered,
        duplicate_groups=tuple(groups),
        name_collisions=tuple(collisions),
        diagnostics=tuple(diagnostics),
    )


def _partial(files: dict[str, FileReport]) -> Report:
    ordered = {fid: files[fid] for fid in sorted(files)}
    diagnostics = tuple(d for fr in ordered.values() for d in fr.diagnostics)
    return Report(files=ordered, diagnostics=diagnostics, cancelled=True)


def analyze(
    inputs: t.Iterable[SourceInput],
    config: EngineConfig | t.Mapping[str, t.Any] | None = None,
    cancel: threading.Event | None = None,
) -> Report:
    """Analyze a set of files and merge their duplicate state.

    Per-file work runs on a thread pool; duplicate grouping only starts once
    every file has finished. Setting `cancel` stops outstanding files and
    returns the completed ones with ``cancelled=True`` and no groups.
    """
    if config is None:
        config = EngineConfig()
    elif not isinstance(config, EngineConfig):
        config = load_config(**config)
    sources = _validate(inputs)
    logger.info("analyzing %d file(s)", len(sources))

    files: dict[str, FileReport] = {}
    if sources:
        workers = min(config.max_workers or os.cpu_count() or 1, len(sources))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="spanscope")
        try:
            pending: set[Future] = {pool.submit(analyze_file, src, config, cancel) for src in sources}
            while pending:
                done, pending = wait(pending, timeout=0.05, return_when=FIRST_COMPLETED)
                for fut in done:
                    result = fut.result()
                    if result is not None:
                        files[result.file_id] = result
                if _cancelled(cancel):
                    break
        finally:
            pool.shutdown(wait=True, cancel_futures=True)

    if _cancelled(cancel):
        logger.info("run cancelled after %d of %d file(s)", len(files), len(sources))
        return _partial(files)

    report = _merge(files, config)
    logger.info("analysis finished: %d span(s), %d duplicate group(s)",
                sum(len(fr.spans) for fr in report.files.values()), len(report.duplicate_groups))
    return report
