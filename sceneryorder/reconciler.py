"""Staged editing of the scenery load order against the backend's ground truth.

``SceneryEngine`` owns the in-memory entries and the snapshot of the last
backend-confirmed state. Local edits (enable/disable, moves) are staged until
``apply_changes``; category changes and deletions are written through to the
backend immediately and folded into the snapshot so they never show up as
pending edits.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Sequence

from .backend import SceneryBackend
from .conflict_resolver import AsyncioScheduler, ConflictResolver, ImmediateScheduler, RecalcScheduler, Scheduler
from .errors import (
    ApiErrorCode,
    ApplyInProgressError,
    BackendError,
    EntryValidationError,
    NoIndexLoadedError,
    parse_backend_error,
)
from .load_config import EngineConfig
from .logging_utils import log_error, log_info, log_ok, log_warn
from .models import (
    ChangeEvent,
    ChangeKind,
    EntryUpdate,
    IndexData,
    SceneryCategory,
    SceneryEntry,
    SceneryStats,
    Snapshot,
    SyncState,
    coerce_category,
)
from .order_mutator import (
    StepKind,
    assign_dense_order,
    find_category_crossing,
    group_by_category,
    move_across_category,
    move_entry,
    plan_step,
    remove_entry,
    renumber,
    reorder_entries,
    reorder_within_category,
    sorted_entries,
    swap_entries,
)

SCOPE = "scenery"

ChangeListener = Callable[[ChangeEvent], None]


class SceneryEngine:
    def __init__(
        self,
        backend: SceneryBackend,
        config: EngineConfig | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or EngineConfig()
        self.resolver = ConflictResolver(self.config.auto_generated_predicate)
        if scheduler is None:
            scheduler = AsyncioScheduler() if self.config.debounce_recompute else ImmediateScheduler()
        self._recalc = RecalcScheduler(self._recompute_and_notify, scheduler)

        self._entries: List[SceneryEntry] = []
        self._snapshot = Snapshot()
        self._loaded = False
        self._listeners: List[ChangeListener] = []

        self.needs_sync = False
        self.is_loading = False
        self.is_saving = False
        self.error: str | None = None
        self.index_exists = False
        self.needs_index_reset = False

    # -- notifications ------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: ChangeKind, folder_name: str | None = None, detail: str | None = None) -> None:
        event = ChangeEvent(kind=kind, folder_name=folder_name, detail=detail)
        for listener in list(self._listeners):
            listener(event)

    # -- queries --------------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def entries(self) -> List[SceneryEntry]:
        """Copies of the current entries in load order."""

        return [entry.copy() for entry in sorted_entries(self._entries)]

    @property
    def snapshot(self) -> Snapshot:
        """A detached copy of the last confirmed state."""

        return Snapshot.from_entries(self._snapshot.entries)

    @property
    def grouped_entries(self) -> Dict[SceneryCategory, List[SceneryEntry]]:
        return group_by_category(entry.copy() for entry in self._entries)

    @property
    def stats(self) -> SceneryStats:
        return SceneryStats.from_entries(self._entries)

    @property
    def has_local_changes(self) -> bool:
        if not self._loaded:
            return False
        return self._snapshot.differs_from(self._entries)

    @property
    def has_changes(self) -> bool:
        return self.needs_sync or self.has_local_changes

    @property
    def sync_state(self) -> SyncState:
        if self.needs_sync:
            return SyncState.DRIFTED
        if self.has_local_changes:
            return SyncState.LOCALLY_DIRTY
        return SyncState.CLEAN

    @property
    def recompute_pending(self) -> bool:
        return self._recalc.pending

    def get_entry(self, folder_name: str) -> SceneryEntry | None:
        entry = self._find(folder_name)
        return entry.copy() if entry is not None else None

    def pending_updates(self) -> List[EntryUpdate]:
        """Updates for the entries whose enabled flag or position was edited locally."""

        changed = set(self._snapshot.changed_folders(self._entries))
        return [entry.to_update() for entry in sorted_entries(self._entries) if entry.folder_name in changed]

    # -- helpers --------------------------------------------------------------

    def _find(self, folder_name: str) -> SceneryEntry | None:
        for entry in self._entries:
            if entry.folder_name == folder_name:
                return entry
        return None

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise NoIndexLoadedError("No scenery index loaded.")

    def _record_failure(self, context: str, exc: BaseException) -> BackendError | None:
        structured = parse_backend_error(exc)
        if structured is not None:
            self.error = structured.message
            log_error(f"{context} [{structured.code.value}]: {structured.message}", scope=SCOPE)
        else:
            self.error = str(exc)
            log_error(f"{context}: {exc}", scope=SCOPE)
        return structured

    def _raise_write_failure(self, context: str, exc: Exception) -> None:
        """Record a failed backend write and re-raise it.

        A structured failure that arrived in another shape (mapping, JSON text)
        is raised as ``BackendError`` so callers see its code; opaque failures
        propagate unchanged.
        """

        structured = self._record_failure(context, exc)
        if structured is not None and structured is not exc:
            raise structured from exc
        raise exc

    def _recompute_and_notify(self) -> bool:
        changed = self.resolver.recompute(self._entries)
        if changed:
            self._emit(ChangeKind.CONFLICTS_UPDATED)
        return changed

    def recompute_conflicts(self) -> bool:
        """Recompute conflict sets now, superseding any deferred recompute."""

        self._recalc.cancel()
        return self._recompute_and_notify()

    def schedule_recompute(self) -> None:
        self._recalc.schedule()

    # -- loading --------------------------------------------------------------

    async def load_index_status(self) -> bool:
        """Ask the backend whether an index has been built yet."""

        try:
            self.index_exists = bool(await self.backend.index_exists())
        except Exception as exc:
            self.index_exists = False
            log_error(f"Failed to load scenery index status: {exc}", scope=SCOPE)
        return self.index_exists

    async def load_index(self) -> IndexData:
        self.is_loading = True
        self.error = None
        try:
            await self.load_index_status()
            data = await self.backend.load_index()
        except Exception as exc:
            structured = self._record_failure("Failed to load scenery data", exc)
            if structured is not None and structured.code is ApiErrorCode.MIGRATION_FAILED:
                self.needs_index_reset = True
            raise
        finally:
            self.is_loading = False

        names = [entry.folder_name for entry in data.entries]
        if len(names) != len(set(names)):
            raise EntryValidationError("Backend returned the same folder more than once.")

        self._recalc.cancel()
        self._entries = renumber(entry.copy() for entry in data.entries)
        self.resolver.load(data.tile_overlaps, data.airport_overlaps)
        self._recompute_and_notify()
        self._snapshot = Snapshot.from_entries(self._entries)
        self.needs_sync = data.needs_sync
        self._loaded = True
        self.needs_index_reset = False

        log_info(f"Loaded {len(self._entries)} scenery packages.", scope=SCOPE)
        if self.needs_sync:
            log_warn("Pack list on disk differs from the index; apply to resync.", scope=SCOPE)
        self._emit(ChangeKind.LOADED)
        return data

    def clear(self) -> None:
        self._recalc.cancel()
        self._entries = []
        self._snapshot = Snapshot()
        self.resolver.clear()
        self._loaded = False
        self.needs_sync = False
        self.error = None
        self.needs_index_reset = False
        self._emit(ChangeKind.CLEARED)

    async def reset_index(self) -> bool:
        """Discard the backend index (e.g. one written by a newer version) and drop local state.

        The index has to be rebuilt afterwards; failures are recorded and
        reported as False.
        """

        try:
            await self.backend.reset_index()
        except Exception as exc:
            self._record_failure("Failed to reset scenery index", exc)
            return False
        self.clear()
        self.index_exists = False
        log_info("Scenery index reset; rebuild it before loading again.", scope=SCOPE)
        return True

    # -- local edits ----------------------------------------------------------

    def set_enabled(self, folder_name: str, enabled: bool) -> bool:
        self._require_loaded()
        entry = self._find(folder_name)
        if entry is None:
            log_warn(f"Cannot change unknown entry '{folder_name}'.", scope=SCOPE)
            return False
        if entry.enabled != enabled:
            entry.enabled = enabled
            self._emit(ChangeKind.TOGGLED, folder_name, "enabled" if enabled else "disabled")
        return True

    def toggle_enabled(self, folder_name: str) -> bool:
        self._require_loaded()
        entry = self._find(folder_name)
        if entry is None:
            log_warn(f"Cannot toggle unknown entry '{folder_name}'.", scope=SCOPE)
            return False
        return self.set_enabled(folder_name, not entry.enabled)

    def move_entry(self, folder_name: str, target_index: int) -> bool:
        self._require_loaded()
        ordered = move_entry(self._entries, folder_name, target_index)
        if ordered is None:
            log_warn(f"Cannot move unknown entry '{folder_name}'.", scope=SCOPE)
            return False
        self._entries = ordered
        self.recompute_conflicts()
        self._emit(ChangeKind.MOVED, folder_name, str(target_index))
        return True

    def reorder_entries(self, new_order: Sequence[SceneryEntry | str]) -> None:
        """Replace the whole order, e.g. once a drag-and-drop has finished."""

        self._require_loaded()
        self._entries = reorder_entries(self._entries, new_order)
        self.recompute_conflicts()
        self._emit(ChangeKind.REORDERED)

    async def move_up(self, folder_name: str) -> bool:
        return await self._step(folder_name, -1)

    async def move_down(self, folder_name: str) -> bool:
        return await self._step(folder_name, 1)

    async def _step(self, folder_name: str, direction: int) -> bool:
        self._require_loaded()
        plan = plan_step(self._entries, folder_name, direction)
        if plan is None:
            log_warn(f"Move of '{folder_name}' rejected.", scope=SCOPE)
            return False
        if plan.kind is StepKind.SWAP:
            self._entries = swap_entries(self._entries, plan.folder_name, plan.neighbor)
            self._recalc.schedule()
            self._emit(ChangeKind.MOVED, folder_name, plan.neighbor)
            return True
        return await self.update_category(folder_name, plan.category)

    # -- backend writes -------------------------------------------------------

    async def update_category(self, folder_name: str, category: SceneryCategory | str) -> bool:
        """Change a category locally, then persist it; roll back if the write fails."""

        self._require_loaded()
        entry = self._find(folder_name)
        if entry is None:
            log_warn(f"Cannot recategorize unknown entry '{folder_name}'.", scope=SCOPE)
            return False
        target = coerce_category(category)
        if target is entry.category:
            return True
        if SceneryCategory.UNRECOGNIZED in (entry.category, target):
            log_warn(
                f"'{folder_name}' cannot move into or out of {SceneryCategory.UNRECOGNIZED.value}.",
                scope=SCOPE,
            )
            return False

        previous = entry.category
        entry.category = target
        try:
            await self.backend.update_category(folder_name, target)
        except Exception as exc:
            current = self._find(folder_name)
            if current is not None:
                current.category = previous
            self._raise_write_failure("Failed to update category", exc)

        self._snapshot = self._snapshot.with_category(folder_name, target)
        self._recalc.schedule()
        self._emit(ChangeKind.CATEGORY_CHANGED, folder_name, target.value)
        return True

    async def complete_drag(self, new_order: Sequence[SceneryEntry | str], moved_folder: str) -> bool:
        """Commit a drag-and-drop result.

        The moved entry takes the category of the group it was dropped into;
        nothing else is recategorized. The order is rolled back along with the
        category if the backend refuses the change.
        """

        self._require_loaded()
        moved = self._find(moved_folder)
        if moved is None:
            log_warn(f"Cannot drag unknown entry '{moved_folder}'.", scope=SCOPE)
            return False
        if moved.is_unrecognized:
            log_warn(
                f"'{moved_folder}' is {SceneryCategory.UNRECOGNIZED.value} and cannot be dragged.",
                scope=SCOPE,
            )
            return False

        candidate = reorder_entries([entry.copy() for entry in self._entries], new_order)
        position = [entry.folder_name for entry in candidate].index(moved_folder)
        neighbors = candidate[max(position - 1, 0):position] + candidate[position + 1:position + 2]
        if neighbors and all(neighbor.is_unrecognized for neighbor in neighbors):
            log_warn(
                f"'{moved_folder}' cannot be dropped inside the {SceneryCategory.UNRECOGNIZED.value} group.",
                scope=SCOPE,
            )
            return False

        previous = [entry.folder_name for entry in sorted_entries(self._entries)]
        self.reorder_entries(new_order)
        target = find_category_crossing(sorted_entries(self._entries), moved_folder)
        if target is None:
            return True
        try:
            return await self.update_category(moved_folder, target)
        except Exception:
            self.reorder_entries(previous)
            raise

    async def drop_entry(self, folder_name: str, category: SceneryCategory | str, index: int) -> bool:
        """Drop ``folder_name`` at ``index`` of the ``category`` group."""

        self._require_loaded()
        entry = self._find(folder_name)
        if entry is None:
            log_warn(f"Cannot drop unknown entry '{folder_name}'.", scope=SCOPE)
            return False
        target = coerce_category(category)

        if target is entry.category:
            ordered = reorder_within_category(self._entries, folder_name, index)
            if ordered is None:
                log_warn(f"Reordering '{folder_name}' rejected.", scope=SCOPE)
                return False
            self._entries = ordered
            self.recompute_conflicts()
            self._emit(ChangeKind.REORDERED, folder_name)
            return True

        previous = [item.folder_name for item in sorted_entries(self._entries)]
        ordered = move_across_category(self._entries, folder_name, target, index)
        if ordered is None:
            log_warn(f"Moving '{folder_name}' to {target.value} rejected.", scope=SCOPE)
            return False
        self._entries = ordered
        try:
            changed = await self.update_category(folder_name, target)
        except Exception:
            self._entries = reorder_entries(self._entries, previous)
            self.recompute_conflicts()
            raise
        self.recompute_conflicts()
        self._emit(ChangeKind.REORDERED, folder_name)
        return changed

    async def delete_entry(self, folder_name: str) -> None:
        """Delete a package through the backend, then drop it locally and from the snapshot."""

        try:
            await self.backend.delete_entry(folder_name)
        except Exception as exc:
            self._raise_write_failure("Failed to delete scenery entry", exc)

        self._entries = remove_entry(self._entries, folder_name)
        self._snapshot = self._snapshot.without(folder_name)
        self._recalc.schedule()
        log_info(f"Deleted scenery entry '{folder_name}'.", scope=SCOPE)
        self._emit(ChangeKind.DELETED, folder_name)

    # -- transaction ----------------------------------------------------------

    async def apply_changes(self) -> List[EntryUpdate]:
        """Push the full order to the backend and commit it as the new snapshot.

        Only one apply may run at a time; a second call is rejected rather than
        queued. On failure entries, snapshot and ``needs_sync`` stay as they were.
        """

        if self.is_saving:
            raise ApplyInProgressError("An apply is already in progress.")
        self._require_loaded()

        self.is_saving = True
        self.error = None
        normalized = assign_dense_order([entry.copy() for entry in sorted_entries(self._entries)])
        updates = [entry.to_update() for entry in normalized]
        try:
            await self.backend.apply_changes(updates)
        except Exception as exc:
            self._raise_write_failure("Failed to apply changes", exc)
        finally:
            self.is_saving = False

        # categories confirmed while the apply was awaiting live in the snapshot
        confirmed = {entry.folder_name: entry.category for entry in self._snapshot.entries}
        for entry in normalized:
            entry.category = confirmed.get(entry.folder_name, entry.category)
        self._entries = renumber(self._entries)
        self._snapshot = Snapshot.from_entries(normalized)
        self.needs_sync = False
        log_ok(f"Applied load order for {len(updates)} scenery packages.", scope=SCOPE)
        self._emit(ChangeKind.APPLIED)
        return updates

    def reset_changes(self) -> bool:
        """Throw away local edits and return to the last confirmed snapshot."""

        if not self._loaded:
            return False
        self._entries = self._snapshot.restore()
        self.recompute_conflicts()
        self._emit(ChangeKind.RESET)
        return True
