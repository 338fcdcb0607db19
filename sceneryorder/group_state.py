from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

import toml

from .file_utils import write_text_atomic
from .logging_utils import log_warn
from .models import CATEGORY_ORDER, SceneryCategory


@dataclass(slots=True)
class CollapsedGroups:
    """Which category groups are folded in the listing. Groups start expanded."""

    flags: Dict[SceneryCategory, bool] = field(default_factory=dict)

    def is_collapsed(self, category: SceneryCategory) -> bool:
        return self.flags.get(category, False)

    def set_collapsed(self, category: SceneryCategory | str, collapsed: bool) -> None:
        self.flags[SceneryCategory(category)] = collapsed

    def toggle(self, category: SceneryCategory | str) -> bool:
        key = SceneryCategory(category)
        self.flags[key] = not self.is_collapsed(key)
        return self.flags[key]

    def to_dict(self) -> Dict[str, bool]:
        return {category.value: self.is_collapsed(category) for category in CATEGORY_ORDER}


def load_collapsed_groups(path: Path) -> CollapsedGroups:
    groups = CollapsedGroups()
    if not path.exists():
        return groups
    try:
        raw = toml.loads(path.read_text(encoding="utf-8"))
    except toml.TomlDecodeError:
        log_warn(f"Ignoring unreadable group state file {path}.")
        return groups
    for name, collapsed in raw.get("collapsed", {}).items():
        try:
            groups.set_collapsed(name, bool(collapsed))
        except ValueError:
            log_warn(f"Ignoring unknown category '{name}' in {path}.")
    return groups


def save_collapsed_groups(path: Path, groups: CollapsedGroups) -> None:
    write_text_atomic(path, toml.dumps({"collapsed": groups.to_dict()}))
