from __future__ import annotations


class SpanscopeError(Exception):
    """Base class for errors raised by the analysis engine."""


class ConfigError(SpanscopeError, ValueError):
    """Rejected engine setup: bad option values or an unsupported language hint."""
