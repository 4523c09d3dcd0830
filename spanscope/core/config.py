from __future__ import annotations
from typing import Any, FrozenSet, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from spanscope.core.errors import ConfigError

# Names too generic to flag when several files define a function with them.
DEFAULT_IGNORED_NAMES: FrozenSet[str] = frozenset({
    "main", "get", "set", "add", "remove", "create", "update", "find", "search",
    "init", "initialize", "start", "stop", "run", "execute", "parse", "read",
    "write", "open", "close", "load", "save", "reset", "print", "test", "handle",
    "process", "validate", "check", "convert", "transform", "calculate", "compute",
    "size", "empty", "clear", "swap", "begin", "end", "data", "at",
    "min", "max", "abs", "sqrt", "pow", "exp", "floor", "ceil", "round",
})


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    shingle_size: int = Field(5, gt=0, description="Tokens per shingle window (k)")
    similarity_threshold: float = Field(0.8, gt=0.0, le=1.0, description="Jaccard similarity a near-duplicate pair must exceed")
    max_workers: Optional[int] = Field(None, ge=1, description="Per-file worker pool size; None uses os.cpu_count()")
    detect_near_duplicates: bool = True
    detect_name_collisions: bool = True
    ignored_names: FrozenSet[str] = Field(default_factory=lambda: DEFAULT_IGNORED_NAMES)

    @classmethod
    def from_rules(cls, rules: Mapping[str, Any] | None) -> "EngineConfig":
        rules = rules or {}
        dup = rules.get("duplication") or {}
        eng = rules.get("engine") or {}
        values: dict[str, Any] = {}
        if "k_shingle" in dup:
            values["shingle_size"] = dup["k_shingle"]
        if "similarity_threshold" in dup:
            values["similarity_threshold"] = dup["similarity_threshold"]
        if "near_duplicates" in dup:
            values["detect_near_duplicates"] = dup["near_duplicates"]
        if "name_collisions" in dup:
            values["detect_name_collisions"] = dup["name_collisions"]
        if dup.get("ignored_names") is not None:
            values["ignored_names"] = frozenset(str(n) for n in dup["ignored_names"])
        if "max_workers" in eng:
            values["max_workers"] = eng["max_workers"]
        return load_config(**values)


def load_config(rules: Mapping[str, Any] | None = None, **overrides: Any) -> EngineConfig:
    """Build a validated EngineConfig, reporting bad values as a single ConfigError."""
    if rules is not None:
        base = EngineConfig.from_rules(rules)
        if not overrides:
            return base
        merged = base.model_dump()
        merged.update(overrides)
        overrides = merged
    try:
        return EngineConfig(**overrides)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"invalid engine configuration: {problems}") from exc
