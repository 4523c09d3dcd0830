"""Language hints and byte-level decoding of incoming source text.

Text handed to the engine may be ``bytes`` straight from disk. Invalid UTF-8
is decoded with ``surrogateescape`` so every escaped byte still occupies one
byte of offset space; the tokenizer later turns those runs into placeholder
tokens.
"""
from __future__ import annotations
from pathlib import Path
import re
from typing import List, Tuple, Union

from spanscope.core.errors import ConfigError
from spanscope.parsing.ir import Diagnostic, DiagnosticKind, Language

_ALIASES = {
    "c-like": Language.C_LIKE,
    "c": Language.C_LIKE,
    "h": Language.C_LIKE,
    "cpp": Language.C_LIKE,
    "c++": Language.C_LIKE,
    "cc": Language.C_LIKE,
    "cxx": Language.C_LIKE,
    "hpp": Language.C_LIKE,
    "java": Language.C_LIKE,
    "cs": Language.C_LIKE,
    "csharp": Language.C_LIKE,
    "c#": Language.C_LIKE,
    "js": Language.SCRIPT,
    "javascript": Language.SCRIPT,
    "ts": Language.SCRIPT,
    "typescript": Language.SCRIPT,
    "go": Language.SCRIPT,
    "rust": Language.C_LIKE,
    "swift": Language.C_LIKE,
    "kotlin": Language.C_LIKE,
    "php": Language.C_LIKE,
    "objc": Language.C_LIKE,
    "script": Language.SCRIPT,
    "unknown": Language.UNKNOWN,
    "generic": Language.UNKNOWN,
}

_SUFFIX_MAP = {
    ".c": Language.C_LIKE, ".h": Language.C_LIKE,
    ".cc": Language.C_LIKE, ".cpp": Language.C_LIKE, ".cxx": Language.C_LIKE,
    ".hh": Language.C_LIKE, ".hpp": Language.C_LIKE, ".hxx": Language.C_LIKE,
    ".java": Language.C_LIKE, ".cs": Language.C_LIKE,
    ".js": Language.SCRIPT, ".mjs": Language.SCRIPT, ".ts": Language.SCRIPT,
    ".go": Language.SCRIPT, ".rs": Language.C_LIKE, ".swift": Language.C_LIKE,
    ".kt": Language.C_LIKE, ".php": Language.C_LIKE, ".m": Language.C_LIKE,
}

# surrogateescape maps each undecodable byte to U+DC80..U+DCFF
ESCAPED_BYTES_RE = re.compile("[\udc80-\udcff]+")


def resolve_language(hint: Union[Language, str, None]) -> Language:
    if isinstance(hint, Language):
        return hint
    if hint is None:
        return Language.C_LIKE
    lang = _ALIASES.get(str(hint).strip().lower())
    if lang is None:
        raise ConfigError(f"unsupported language hint: {hint!r}")
    return lang


def language_for_path(path: Path) -> Language:
    return _SUFFIX_MAP.get(path.suffix.lower(), Language.UNKNOWN)


def byte_length(text: str) -> int:
    if text.isascii():
        return len(text)
    return len(text.encode("utf-8", "surrogateescape"))


def decode_source(data: Union[str, bytes], file_id: str = "") -> Tuple[str, List[Diagnostic]]:
    """Return text safe for lexing plus one EncodingWarning per invalid byte run."""
    if isinstance(data, str):
        try:
            data.encode("utf-8")
            return data, []
        except UnicodeEncodeError:
            data = data.encode("utf-8", "surrogatepass")
    text = bytes(data).decode("utf-8", "surrogateescape")

    diagnostics: List[Diagnostic] = []
    offset = 0
    last = 0
    for m in ESCAPED_BYTES_RE.finditer(text):
        offset += byte_length(text[last:m.start()])
        run = len(m.group())
        diagnostics.append(Diagnostic(
            kind=DiagnosticKind.ENCODING_WARNING,
            file_id=file_id,
            offset=offset,
            message=f"invalid UTF-8: {run} byte(s) replaced with U+FFFD placeholder",
        ))
        offset += run
        last = m.end()
    return text, diagnostics
