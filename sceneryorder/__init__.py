"""Core package for the scenery load-order engine."""

from .backend import SceneryBackend, TomlIndexBackend
from .conflict_resolver import (
    AsyncioScheduler,
    ConflictResolver,
    ImmediateScheduler,
    ManualScheduler,
    RecalcScheduler,
    active_conflicts,
    recompute_conflicts,
)
from .errors import (
    ApiErrorCode,
    ApplyInProgressError,
    BackendError,
    EntryValidationError,
    NoIndexLoadedError,
    SceneryError,
    parse_backend_error,
)
from .group_state import CollapsedGroups, load_collapsed_groups, save_collapsed_groups
from .load_config import EngineConfig, load_engine_config
from .models import (
    CATEGORY_ORDER,
    DRAGGABLE_CATEGORIES,
    ChangeEvent,
    ChangeKind,
    EntryUpdate,
    IndexData,
    SceneryCategory,
    SceneryEntry,
    SceneryStats,
    Snapshot,
    SyncState,
    category_order_index,
    is_auto_generated,
)
from .reconciler import SceneryEngine
from .report import export_report, print_conflict_details, print_load_order

__all__ = [
    "SceneryBackend",
    "TomlIndexBackend",
    "AsyncioScheduler",
    "ConflictResolver",
    "ImmediateScheduler",
    "ManualScheduler",
    "RecalcScheduler",
    "active_conflicts",
    "recompute_conflicts",
    "ApiErrorCode",
    "ApplyInProgressError",
    "BackendError",
    "EntryValidationError",
    "NoIndexLoadedError",
    "SceneryError",
    "parse_backend_error",
    "CollapsedGroups",
    "load_collapsed_groups",
    "save_collapsed_groups",
    "EngineConfig",
    "load_engine_config",
    "CATEGORY_ORDER",
    "DRAGGABLE_CATEGORIES",
    "ChangeEvent",
    "ChangeKind",
    "EntryUpdate",
    "IndexData",
    "SceneryCategory",
    "SceneryEntry",
    "SceneryStats",
    "Snapshot",
    "SyncState",
    "category_order_index",
    "is_auto_generated",
    "SceneryEngine",
    "export_report",
    "print_conflict_details",
    "print_load_order",
]
