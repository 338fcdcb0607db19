"""Shared fixtures: an in-memory backend and a few small indexes."""

from __future__ import annotations

from typing import Dict, List, Sequence

import pytest

from sceneryorder import (
    EntryUpdate,
    IndexData,
    ManualScheduler,
    SceneryCategory,
    SceneryEngine,
    SceneryEntry,
)


class FakeBackend:
    """Records every call; any operation can be told to fail with ``fail_with``."""

    def __init__(self, data: IndexData) -> None:
        self.data = data
        self.applied: List[List[EntryUpdate]] = []
        self.category_updates: List[tuple] = []
        self.deleted: List[str] = []
        self.load_calls = 0
        self.has_index = True
        self.reset_calls = 0
        self.fail_with: Dict[str, BaseException] = {}

    def _maybe_fail(self, operation: str) -> None:
        exc = self.fail_with.get(operation)
        if exc is not None:
            raise exc

    async def load_index(self) -> IndexData:
        self.load_calls += 1
        self._maybe_fail("load_index")
        return IndexData(
            entries=[entry.copy() for entry in self.data.entries],
            tile_overlaps={k: list(v) for k, v in self.data.tile_overlaps.items()},
            airport_overlaps={k: list(v) for k, v in self.data.airport_overlaps.items()},
            needs_sync=self.data.needs_sync,
        )

    async def apply_changes(self, updates: Sequence[EntryUpdate]) -> None:
        self._maybe_fail("apply_changes")
        self.applied.append(list(updates))

    async def update_category(self, folder_name: str, category: SceneryCategory) -> None:
        self._maybe_fail("update_category")
        self.category_updates.append((folder_name, category))

    async def delete_entry(self, folder_name: str) -> None:
        self._maybe_fail("delete_entry")
        self.deleted.append(folder_name)

    async def index_exists(self) -> bool:
        self._maybe_fail("index_exists")
        return self.has_index

    async def reset_index(self) -> None:
        self._maybe_fail("reset_index")
        self.reset_calls += 1
        self.has_index = False


def make_entry(name: str, category: SceneryCategory | str, order: int, enabled: bool = True) -> SceneryEntry:
    return SceneryEntry(folder_name=name, category=category, enabled=enabled, sort_order=order)


def orders(engine: SceneryEngine) -> Dict[str, int]:
    return {entry.folder_name: entry.sort_order for entry in engine.entries}


def names(engine: SceneryEngine) -> List[str]:
    return [entry.folder_name for entry in engine.entries]


@pytest.fixture
def scenario_data() -> IndexData:
    return IndexData(
        entries=[
            make_entry("P1", SceneryCategory.AIRPORT, 0),
            make_entry("P2", SceneryCategory.AIRPORT, 1),
            make_entry("P3", SceneryCategory.UNRECOGNIZED, 2),
        ],
        tile_overlaps={"P1": ["P2"], "P2": ["P1"]},
    )


@pytest.fixture
def mixed_data() -> IndexData:
    return IndexData(
        entries=[
            make_entry("KSEA Airport", SceneryCategory.AIRPORT, 0),
            make_entry("KBFI Airport", SceneryCategory.AIRPORT, 1),
            make_entry("Global Airports", SceneryCategory.DEFAULT_AIRPORT, 2),
            make_entry("OpenSceneryX", SceneryCategory.LIBRARY, 3),
            make_entry("Ortho_Seattle", SceneryCategory.MESH, 4),
            make_entry("Ortho_Tacoma", SceneryCategory.MESH, 5),
            make_entry("mystery_folder", SceneryCategory.UNRECOGNIZED, 6),
        ],
        tile_overlaps={
            "Ortho_Seattle": ["Ortho_Tacoma"],
            "Ortho_Tacoma": ["Ortho_Seattle"],
        },
        airport_overlaps={
            "KSEA Airport": ["Global Airports"],
            "Global Airports": ["KSEA Airport"],
        },
    )


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def scenario_backend(scenario_data: IndexData) -> FakeBackend:
    return FakeBackend(scenario_data)


@pytest.fixture
def mixed_backend(mixed_data: IndexData) -> FakeBackend:
    return FakeBackend(mixed_data)


@pytest.fixture
def mixed_engine(mixed_backend: FakeBackend, scheduler: ManualScheduler) -> SceneryEngine:
    return SceneryEngine(mixed_backend, scheduler=scheduler)
