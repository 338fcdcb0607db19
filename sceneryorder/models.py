from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .errors import EntryValidationError
from .text_utils import NamePredicate, is_default_autogen_name, normalize_folder_name

RawOverlapGraph = Dict[str, List[str]]


class SceneryCategory(str, Enum):
    FIXED_HIGH_PRIORITY = "FixedHighPriority"
    AIRPORT = "Airport"
    DEFAULT_AIRPORT = "DefaultAirport"
    LIBRARY = "Library"
    OTHER = "Other"
    OVERLAY = "Overlay"
    AIRPORT_MESH = "AirportMesh"
    MESH = "Mesh"
    UNRECOGNIZED = "Unrecognized"


CATEGORY_ORDER: Tuple[SceneryCategory, ...] = tuple(SceneryCategory)
DRAGGABLE_CATEGORIES: Tuple[SceneryCategory, ...] = tuple(
    category for category in CATEGORY_ORDER if category is not SceneryCategory.UNRECOGNIZED
)


def category_order_index(category: SceneryCategory | str) -> int:
    return CATEGORY_ORDER.index(SceneryCategory(category))


def coerce_category(value: SceneryCategory | str) -> SceneryCategory:
    try:
        return SceneryCategory(value)
    except ValueError as exc:
        raise EntryValidationError(f"Unknown scenery category: {value!r}") from exc


@dataclass(slots=True)
class SceneryEntry:
    folder_name: str
    category: SceneryCategory
    enabled: bool = True
    sort_order: int = 0
    continent: str | None = None
    missing_libraries: List[str] = field(default_factory=list)
    duplicate_tiles: List[str] = field(default_factory=list)
    duplicate_airports: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.folder_name, str) or not normalize_folder_name(self.folder_name):
            raise EntryValidationError("Scenery entry requires a non-empty folder name")
        if isinstance(self.sort_order, bool) or not isinstance(self.sort_order, int) or self.sort_order < 0:
            raise EntryValidationError(
                f"Invalid sort order {self.sort_order!r} for '{self.folder_name}'"
            )
        self.category = coerce_category(self.category)

    @property
    def is_unrecognized(self) -> bool:
        return self.category is SceneryCategory.UNRECOGNIZED

    @property
    def has_missing_libraries(self) -> bool:
        return bool(self.missing_libraries)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.duplicate_tiles or self.duplicate_airports)

    def copy(self) -> "SceneryEntry":
        return SceneryEntry(
            folder_name=self.folder_name,
            category=self.category,
            enabled=self.enabled,
            sort_order=self.sort_order,
            continent=self.continent,
            missing_libraries=list(self.missing_libraries),
            duplicate_tiles=list(self.duplicate_tiles),
            duplicate_airports=list(self.duplicate_airports),
        )

    def to_update(self) -> "EntryUpdate":
        return EntryUpdate(folder_name=self.folder_name, enabled=self.enabled, sort_order=self.sort_order)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "folder_name": self.folder_name,
            "category": self.category.value,
            "enabled": self.enabled,
            "sort_order": self.sort_order,
            "missing_libraries": list(self.missing_libraries),
        }
        if self.continent is not None:
            data["continent"] = self.continent
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SceneryEntry":
        try:
            folder_name = normalize_folder_name(str(data["folder_name"]))
            category = data.get("category", SceneryCategory.UNRECOGNIZED.value)
        except KeyError as exc:
            raise EntryValidationError(f"Scenery entry is missing field {exc}") from exc
        return cls(
            folder_name=folder_name,
            category=category,
            enabled=bool(data.get("enabled", True)),
            sort_order=data.get("sort_order", 0),
            continent=data.get("continent"),
            missing_libraries=list(data.get("missing_libraries", [])),
        )


def is_auto_generated(entry: SceneryEntry | str, predicate: NamePredicate | None = None) -> bool:
    name = entry.folder_name if isinstance(entry, SceneryEntry) else entry
    matcher = predicate or is_default_autogen_name
    return matcher(name)


@dataclass(frozen=True, slots=True)
class EntryUpdate:
    folder_name: str
    enabled: bool
    sort_order: int

    def to_dict(self) -> Dict[str, Any]:
        return {"folder_name": self.folder_name, "enabled": self.enabled, "sort_order": self.sort_order}


@dataclass(slots=True)
class IndexData:
    entries: List[SceneryEntry]
    tile_overlaps: RawOverlapGraph = field(default_factory=dict)
    airport_overlaps: RawOverlapGraph = field(default_factory=dict)
    needs_sync: bool = False


class SyncState(str, Enum):
    CLEAN = "clean"
    LOCALLY_DIRTY = "locally_dirty"
    DRIFTED = "drifted"


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Last backend-confirmed state of every entry.

    Instances are never edited in place; every operation returns a new
    snapshot so the committed state can only be replaced wholesale.
    """

    entries: Tuple[SceneryEntry, ...] = ()

    @classmethod
    def from_entries(cls, entries: Iterable[SceneryEntry]) -> "Snapshot":
        return cls(tuple(entry.copy() for entry in entries))

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def get(self, folder_name: str) -> SceneryEntry | None:
        for entry in self.entries:
            if entry.folder_name == folder_name:
                return entry.copy()
        return None

    def restore(self) -> List[SceneryEntry]:
        return [entry.copy() for entry in self.entries]

    def without(self, folder_name: str) -> "Snapshot":
        remaining = sorted(
            (entry.copy() for entry in self.entries if entry.folder_name != folder_name),
            key=lambda item: item.sort_order,
        )
        for index, entry in enumerate(remaining):
            entry.sort_order = index
        return Snapshot(tuple(remaining))

    def with_category(self, folder_name: str, category: SceneryCategory) -> "Snapshot":
        updated: List[SceneryEntry] = []
        for entry in self.entries:
            clone = entry.copy()
            if clone.folder_name == folder_name:
                clone.category = category
            updated.append(clone)
        return Snapshot(tuple(updated))

    def changed_folders(self, current: Sequence[SceneryEntry]) -> List[str]:
        """Folders whose enabled flag or position differs from the snapshot."""

        lookup = {entry.folder_name: entry for entry in self.entries}
        changed: List[str] = []
        for entry in current:
            original = lookup.get(entry.folder_name)
            if original is None:
                changed.append(entry.folder_name)
                continue
            if entry.enabled != original.enabled or entry.sort_order != original.sort_order:
                changed.append(entry.folder_name)
        return changed

    def differs_from(self, current: Sequence[SceneryEntry]) -> bool:
        if len(current) != len(self.entries):
            return True
        return bool(self.changed_folders(current))


@dataclass(frozen=True, slots=True)
class SceneryStats:
    total_count: int = 0
    enabled_count: int = 0
    missing_deps_count: int = 0
    duplicate_tiles_count: int = 0
    duplicate_airports_count: int = 0
    duplicates_count: int = 0

    @classmethod
    def from_entries(cls, entries: Sequence[SceneryEntry]) -> "SceneryStats":
        return cls(
            total_count=len(entries),
            enabled_count=sum(1 for entry in entries if entry.enabled),
            missing_deps_count=sum(1 for entry in entries if entry.has_missing_libraries),
            duplicate_tiles_count=sum(1 for entry in entries if entry.duplicate_tiles),
            duplicate_airports_count=sum(1 for entry in entries if entry.duplicate_airports),
            duplicates_count=sum(1 for entry in entries if entry.has_conflicts),
        )


class ChangeKind(str, Enum):
    LOADED = "loaded"
    TOGGLED = "toggled"
    MOVED = "moved"
    REORDERED = "reordered"
    CATEGORY_CHANGED = "category_changed"
    DELETED = "deleted"
    APPLIED = "applied"
    RESET = "reset"
    CONFLICTS_UPDATED = "conflicts_updated"
    CLEARED = "cleared"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    kind: ChangeKind
    folder_name: str | None = None
    detail: str | None = None
