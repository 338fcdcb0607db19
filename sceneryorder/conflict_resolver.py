"""Order-dependent conflict detection over the raw overlap graphs.

The backend reports which packages cover the same geography regardless of load
order. Whether such an overlap is an *active* conflict depends on the current
order once auto-generated exclusion packages are involved:

* an auto-generated package never conflicts itself;
* an ordinary package conflicts with an auto-generated partner only when it
  loads after that partner;
* two ordinary packages always conflict with each other.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Mapping, Protocol, Sequence

from .logging_utils import log_debug
from .models import RawOverlapGraph, SceneryEntry
from .text_utils import NamePredicate, is_default_autogen_name

TILE_ATTRIBUTE = "duplicate_tiles"
AIRPORT_ATTRIBUTE = "duplicate_airports"


def active_conflicts(
	entry: SceneryEntry,
	overlaps: Mapping[str, Sequence[str]],
	entry_map: Mapping[str, SceneryEntry],
	is_auto_generated: NamePredicate = is_default_autogen_name,
) -> List[str]:
	"""Return the overlap partners of ``entry`` that currently conflict with it."""

	if is_auto_generated(entry.folder_name):
		return []
	partners = overlaps.get(entry.folder_name)
	if not partners:
		return []

	active: List[str] = []
	for other_name in partners:
		other = entry_map.get(other_name)
		if other is None:
			continue
		if is_auto_generated(other_name):
			if entry.sort_order > other.sort_order:
				active.append(other_name)
			continue
		active.append(other_name)
	return active


def recompute_conflicts(
	entries: Sequence[SceneryEntry],
	overlaps: Mapping[str, Sequence[str]],
	attribute: str = TILE_ATTRIBUTE,
	is_auto_generated: NamePredicate = is_default_autogen_name,
) -> bool:
	"""Refresh one derived conflict field on every entry.

	A field is only replaced when its contents change, so unchanged entries keep
	the same list object. Returns True when at least one entry was updated.
	"""

	entry_map: Dict[str, SceneryEntry] = {entry.folder_name: entry for entry in entries}
	changed = False
	for entry in entries:
		updated = active_conflicts(entry, overlaps, entry_map, is_auto_generated)
		if getattr(entry, attribute) != updated:
			setattr(entry, attribute, updated)
			changed = True
	return changed


class ConflictResolver:
	"""Holds the overlap graphs of the loaded index and recomputes both conflict fields."""

	def __init__(self, is_auto_generated: NamePredicate = is_default_autogen_name) -> None:
		self.is_auto_generated = is_auto_generated
		self._tile_overlaps: RawOverlapGraph = {}
		self._airport_overlaps: RawOverlapGraph = {}

	def load(self, tile_overlaps: Mapping[str, Sequence[str]], airport_overlaps: Mapping[str, Sequence[str]]) -> None:
		self._tile_overlaps = {name: list(partners) for name, partners in tile_overlaps.items()}
		self._airport_overlaps = {name: list(partners) for name, partners in airport_overlaps.items()}

	def clear(self) -> None:
		self._tile_overlaps = {}
		self._airport_overlaps = {}

	@property
	def has_overlaps(self) -> bool:
		return bool(self._tile_overlaps or self._airport_overlaps)

	def raw_partners(self, folder_name: str) -> List[str]:
		return list(self._tile_overlaps.get(folder_name, []))

	def recompute(self, entries: Sequence[SceneryEntry]) -> bool:
		tiles_changed = recompute_conflicts(entries, self._tile_overlaps, TILE_ATTRIBUTE, self.is_auto_generated)
		airports_changed = recompute_conflicts(
			entries, self._airport_overlaps, AIRPORT_ATTRIBUTE, self.is_auto_generated
		)
		if tiles_changed or airports_changed:
			log_debug("Conflict sets updated after order change.", scope="scenery")
		return tiles_changed or airports_changed


class CancelHandle(Protocol):
	def cancel(self) -> None: ...


class Scheduler(Protocol):
	def call_soon(self, callback: Callable[[], None]) -> CancelHandle: ...


class _DoneHandle:
	def cancel(self) -> None:
		return None


class ImmediateScheduler:
	"""Runs the callback inline. Each request becomes its own recompute."""

	def call_soon(self, callback: Callable[[], None]) -> CancelHandle:
		callback()
		return _DoneHandle()


class AsyncioScheduler:
	"""Defers the callback by one turn of the running event loop.

	Outside of a running loop there is nothing to yield to and the callback
	runs inline.
	"""

	def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
		self._loop = loop

	def call_soon(self, callback: Callable[[], None]) -> CancelHandle:
		loop = self._loop
		if loop is None:
			try:
				loop = asyncio.get_running_loop()
			except RuntimeError:
				callback()
				return _DoneHandle()
		return loop.call_soon(callback)


class _ManualHandle:
	def __init__(self, callback: Callable[[], None]) -> None:
		self.callback = callback
		self.cancelled = False

	def cancel(self) -> None:
		self.cancelled = True


class ManualScheduler:
	"""Queues callbacks until ``run_pending`` is called."""

	def __init__(self) -> None:
		self._queue: List[_ManualHandle] = []

	def call_soon(self, callback: Callable[[], None]) -> CancelHandle:
		handle = _ManualHandle(callback)
		self._queue.append(handle)
		return handle

	@property
	def pending_count(self) -> int:
		return sum(1 for handle in self._queue if not handle.cancelled)

	def run_pending(self) -> int:
		queued, self._queue = self._queue, []
		executed = 0
		for handle in queued:
			if handle.cancelled:
				continue
			handle.callback()
			executed += 1
		return executed


class RecalcScheduler:
	"""Coalesces bursts of recompute requests into one trailing recompute."""

	def __init__(self, callback: Callable[[], object], scheduler: Scheduler | None = None) -> None:
		self._callback = callback
		self._scheduler: Scheduler = scheduler or ImmediateScheduler()
		self._handle: CancelHandle | None = None
		self._armed = False

	@property
	def pending(self) -> bool:
		return self._armed

	def schedule(self) -> None:
		if self._handle is not None:
			self._handle.cancel()
		self._armed = True
		self._handle = None
		handle = self._scheduler.call_soon(self._fire)
		if self._armed:
			self._handle = handle

	def flush(self) -> None:
		"""Run the recompute now, replacing any pending deferred one."""

		self.cancel()
		self._callback()

	def cancel(self) -> None:
		if self._handle is not None:
			self._handle.cancel()
		self._handle = None
		self._armed = False

	def _fire(self) -> None:
		self._handle = None
		self._armed = False
		self._callback()
