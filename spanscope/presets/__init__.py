from __future__ import annotations
from pathlib import Path
import copy
import yaml

from spanscope.core.config import DEFAULT_IGNORED_NAMES

DEFAULT_RULES_PATH = Path("presets/rules.yaml")

DEFAULT_RULES = {
    "complexity": {"warn_at": 10},
    "duplication": {
        "k_shingle": 5,
        "similarity_threshold": 0.80,
        "near_duplicates": True,
        "name_collisions": True,
        "ignored_names": sorted(DEFAULT_IGNORED_NAMES),
    },
    "engine": {"max_workers": None},
}

def load_rules(rules_path: Path | None) -> dict:
    p = rules_path or DEFAULT_RULES_PATH
    if p.exists():
        try:
            loaded = yaml.safe_load(p.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError):
            return copy.deepcopy(DEFAULT_RULES)
        if isinstance(loaded, dict) and loaded:
            return loaded
    return copy.deepcopy(DEFAULT_RULES)

def save_rules(rules: dict, rules_path: Path | None) -> Path:
    p = rules_path or DEFAULT_RULES_PATH
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(yaml.safe_dump(rules, sort_keys=False, allow_unicode=True), encoding="utf-8")
    return p
