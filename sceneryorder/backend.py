"""Backend collaborators for the load-order engine.

``SceneryBackend`` is the contract the engine talks to. ``TomlIndexBackend`` is
a file-based implementation that keeps the package index, the raw overlap
graphs and the last-synced pack order in a single TOML document::

    format_version = 1

    [[entries]]
    folder_name = "KSEA Demo Area"
    category = "Airport"
    enabled = true
    sort_order = 0
    missing_libraries = []

    [tile_overlaps]
    "KSEA Demo Area" = ["Ortho_Seattle"]

    [airport_overlaps]

    [sync]
    order = ["KSEA Demo Area", "Ortho_Seattle"]
    disabled = []

``needs_sync`` is reported whenever the entries no longer match ``[sync]``,
e.g. after another tool edited the index by hand.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any, Dict, List, Protocol, Sequence

import toml

from .errors import ApiErrorCode, BackendError, EntryValidationError
from .file_utils import backup_file, write_text_atomic
from .logging_utils import log_info, log_warn
from .models import EntryUpdate, IndexData, RawOverlapGraph, SceneryCategory, SceneryEntry
from .order_mutator import renumber, sorted_entries


INDEX_FORMAT_VERSION = 1


class SceneryBackend(Protocol):
    async def load_index(self) -> IndexData: ...

    async def apply_changes(self, updates: Sequence[EntryUpdate]) -> None: ...

    async def update_category(self, folder_name: str, category: SceneryCategory) -> None: ...

    async def delete_entry(self, folder_name: str) -> None: ...

    async def index_exists(self) -> bool: ...

    async def reset_index(self) -> None: ...


def _read_graph(raw: Any) -> RawOverlapGraph:
    if not isinstance(raw, dict):
        return {}
    return {str(name): [str(other) for other in partners] for name, partners in raw.items()}


def _prune_graph(graph: RawOverlapGraph, folder_name: str) -> RawOverlapGraph:
    return {
        name: [other for other in partners if other != folder_name]
        for name, partners in graph.items()
        if name != folder_name
    }


class TomlIndexBackend:
    def __init__(
        self,
        index_path: Path,
        backup_dir: Path | None = None,
        scenery_root: Path | None = None,
    ) -> None:
        self.index_path = index_path
        self.backup_dir = backup_dir
        self.scenery_root = scenery_root

    # -- document io -----------------------------------------------------

    def _read_document(self) -> Dict[str, Any]:
        if not self.index_path.exists():
            raise BackendError(ApiErrorCode.NOT_FOUND, f"Index file {self.index_path} not found.")
        raw_text = self.index_path.read_text(encoding="utf-8")
        try:
            document = toml.loads(raw_text)
        except toml.TomlDecodeError as exc:
            raise BackendError(
                ApiErrorCode.CORRUPTED_DATA,
                f"Invalid TOML in index file: {self.index_path}",
                details=str(exc),
            ) from exc
        version = document.get("format_version", INDEX_FORMAT_VERSION)
        if not isinstance(version, int) or version > INDEX_FORMAT_VERSION:
            raise BackendError(
                ApiErrorCode.MIGRATION_FAILED,
                f"Index format version {version!r} is newer than supported ({INDEX_FORMAT_VERSION}).",
            )
        return document

    def _read_entries(self, document: Dict[str, Any]) -> List[SceneryEntry]:
        try:
            entries = [SceneryEntry.from_dict(item) for item in document.get("entries", [])]
        except EntryValidationError as exc:
            raise BackendError(ApiErrorCode.CORRUPTED_DATA, str(exc)) from exc
        names = [entry.folder_name for entry in entries]
        if len(names) != len(set(names)):
            raise BackendError(ApiErrorCode.CORRUPTED_DATA, "Index lists the same folder more than once.")
        return renumber(entries)

    def _write_document(
        self,
        entries: Sequence[SceneryEntry],
        document: Dict[str, Any],
        sync: Dict[str, List[str]] | None = None,
    ) -> None:
        if self.backup_dir is not None and self.index_path.exists():
            backup_file(self.index_path, self.backup_dir)
        payload: Dict[str, Any] = {
            "format_version": INDEX_FORMAT_VERSION,
            "entries": [entry.to_dict() for entry in sorted_entries(entries)],
            "tile_overlaps": _read_graph(document.get("tile_overlaps")),
            "airport_overlaps": _read_graph(document.get("airport_overlaps")),
        }
        if sync is not None:
            payload["sync"] = sync
        elif isinstance(document.get("sync"), dict):
            payload["sync"] = document["sync"]
        write_text_atomic(self.index_path, toml.dumps(payload))

    @staticmethod
    def _sync_state(entries: Sequence[SceneryEntry]) -> Dict[str, List[str]]:
        ordered = sorted_entries(entries)
        return {
            "order": [entry.folder_name for entry in ordered],
            "disabled": [entry.folder_name for entry in ordered if not entry.enabled],
        }

    def _needs_sync(self, entries: Sequence[SceneryEntry], document: Dict[str, Any]) -> bool:
        synced = document.get("sync")
        if not isinstance(synced, dict):
            return bool(entries)
        current = self._sync_state(entries)
        return (
            list(synced.get("order", [])) != current["order"]
            or sorted(synced.get("disabled", [])) != sorted(current["disabled"])
        )

    @staticmethod
    def _find(entries: Sequence[SceneryEntry], folder_name: str) -> SceneryEntry:
        for entry in entries:
            if entry.folder_name == folder_name:
                return entry
        raise BackendError(ApiErrorCode.NOT_FOUND, f"Scenery entry '{folder_name}' not found.")

    # -- collaborator contract --------------------------------------------

    async def load_index(self) -> IndexData:
        document = self._read_document()
        entries = self._read_entries(document)
        return IndexData(
            entries=entries,
            tile_overlaps=_read_graph(document.get("tile_overlaps")),
            airport_overlaps=_read_graph(document.get("airport_overlaps")),
            needs_sync=self._needs_sync(entries, document),
        )

    async def apply_changes(self, updates: Sequence[EntryUpdate]) -> None:
        document = self._read_document()
        entries = self._read_entries(document)
        lookup = {entry.folder_name: entry for entry in entries}
        for update in updates:
            entry = lookup.get(update.folder_name)
            if entry is None:
                raise BackendError(ApiErrorCode.NOT_FOUND, f"Scenery entry '{update.folder_name}' not found.")
            entry.enabled = update.enabled
            entry.sort_order = update.sort_order
        entries = renumber(entries)
        self._write_document(entries, document, sync=self._sync_state(entries))
        log_info(f"Wrote {len(updates)} entries to {self.index_path}", scope="backend")

    async def update_category(self, folder_name: str, category: SceneryCategory) -> None:
        document = self._read_document()
        entries = self._read_entries(document)
        entry = self._find(entries, folder_name)
        target = SceneryCategory(category)
        if SceneryCategory.UNRECOGNIZED in (entry.category, target) and entry.category is not target:
            raise BackendError(
                ApiErrorCode.VALIDATION_FAILED,
                f"Cannot move '{folder_name}' into or out of {SceneryCategory.UNRECOGNIZED.value}.",
            )
        entry.category = target
        self._write_document(entries, document)

    async def delete_entry(self, folder_name: str) -> None:
        document = self._read_document()
        entries = self._read_entries(document)
        self._find(entries, folder_name)
        if self.scenery_root is not None:
            self._remove_folder(folder_name)

        remaining = renumber(entry for entry in entries if entry.folder_name != folder_name)
        document["tile_overlaps"] = _prune_graph(_read_graph(document.get("tile_overlaps")), folder_name)
        document["airport_overlaps"] = _prune_graph(_read_graph(document.get("airport_overlaps")), folder_name)
        synced = document.get("sync")
        sync: Dict[str, List[str]] | None = None
        if isinstance(synced, dict):
            sync = {
                "order": [name for name in synced.get("order", []) if name != folder_name],
                "disabled": [name for name in synced.get("disabled", []) if name != folder_name],
            }
        self._write_document(remaining, document, sync=sync)

    async def index_exists(self) -> bool:
        if not self.index_path.exists():
            return False
        return bool(self._read_document().get("entries"))

    async def reset_index(self) -> None:
        if not self.index_path.exists():
            return
        if self.backup_dir is not None:
            backup_file(self.index_path, self.backup_dir)
        try:
            self.index_path.unlink()
        except PermissionError as exc:
            raise BackendError(
                ApiErrorCode.PERMISSION_DENIED, f"Cannot remove {self.index_path}", details=str(exc)
            ) from exc
        log_info(f"Removed index file {self.index_path}", scope="backend")

    def _remove_folder(self, folder_name: str) -> None:
        root = self.scenery_root.resolve()
        target = (root / folder_name).resolve()
        if target == root or root not in target.parents:
            raise BackendError(
                ApiErrorCode.SECURITY_VIOLATION,
                f"Refusing to delete '{folder_name}' outside of {root}.",
            )
        if not target.exists():
            log_warn(f"Scenery folder {target} already missing; removing index entry only.", scope="backend")
            return
        try:
            shutil.rmtree(target)
        except PermissionError as exc:
            raise BackendError(ApiErrorCode.PERMISSION_DENIED, f"Cannot delete {target}", details=str(exc)) from exc
