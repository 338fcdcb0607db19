"""
Unit tests for the pure order and category operations.
"""

import random

import pytest

from sceneryorder import EntryValidationError, SceneryCategory
from sceneryorder.order_mutator import (
    StepKind,
    find_category_crossing,
    group_by_category,
    is_dense,
    move_across_category,
    move_entry,
    plan_step,
    remove_entry,
    renumber,
    reorder_entries,
    reorder_within_category,
    swap_entries,
)

from conftest import make_entry


def _names(ordered):
    return [entry.folder_name for entry in ordered]


@pytest.fixture
def entries(mixed_data):
    return mixed_data.entries


class TestMoveEntry:

    def test_move_to_front(self, entries):
        ordered = move_entry(entries, "Ortho_Tacoma", 0)
        assert _names(ordered)[0] == "Ortho_Tacoma"
        assert [entry.sort_order for entry in ordered] == list(range(len(entries)))

    def test_target_is_clamped(self, entries):
        ordered = move_entry(entries, "KSEA Airport", 99)
        assert _names(ordered)[-1] == "KSEA Airport"
        ordered = move_entry(ordered, "KSEA Airport", -4)
        assert _names(ordered)[0] == "KSEA Airport"

    def test_unknown_folder_is_noop(self, entries):
        assert move_entry(entries, "nope", 1) is None
        assert [entry.sort_order for entry in entries] == list(range(len(entries)))

    def test_categories_never_change(self, entries):
        before = {entry.folder_name: entry.category for entry in entries}
        move_entry(entries, "mystery_folder", 0)
        assert {entry.folder_name: entry.category for entry in entries} == before

    def test_random_sequences_stay_dense(self, entries):
        rng = random.Random(1234)
        current = list(entries)
        for _ in range(200):
            action = rng.choice(["move", "reorder", "remove"])
            if action == "move":
                current = move_entry(current, rng.choice(current).folder_name, rng.randint(-3, 12))
            elif action == "reorder":
                shuffled = list(current)
                rng.shuffle(shuffled)
                current = reorder_entries(current, shuffled)
            elif len(current) > 2:
                current = remove_entry(current, rng.choice(current).folder_name)
            assert is_dense(current)


class TestPlanStep:

    def test_swap_within_category(self, entries):
        plan = plan_step(entries, "KBFI Airport", -1)
        assert plan.kind is StepKind.SWAP
        assert plan.neighbor == "KSEA Airport"

    def test_step_across_boundary_becomes_recategorize(self, entries):
        plan = plan_step(entries, "Global Airports", -1)
        assert plan.kind is StepKind.RECATEGORIZE
        assert plan.category is SceneryCategory.AIRPORT

    def test_step_next_to_unrecognized_rejected(self, entries):
        assert plan_step(entries, "Ortho_Tacoma", 1) is None
        assert plan_step(entries, "mystery_folder", -1) is None

    def test_edges_rejected(self, entries):
        assert plan_step(entries, "KSEA Airport", -1) is None
        assert plan_step(entries, "mystery_folder", 1) is None

    def test_invalid_direction(self, entries):
        with pytest.raises(EntryValidationError):
            plan_step(entries, "KSEA Airport", 2)

    def test_swap_entries(self, entries):
        ordered = swap_entries(entries, "KSEA Airport", "KBFI Airport")
        assert _names(ordered)[:2] == ["KBFI Airport", "KSEA Airport"]
        with pytest.raises(EntryValidationError):
            swap_entries(entries, "KSEA Airport", "ghost")


class TestReorder:

    def test_bulk_reorder_by_names(self, entries):
        names = list(reversed(_names(entries)))
        ordered = reorder_entries(entries, names)
        assert _names(ordered) == names
        assert is_dense(ordered)

    def test_mismatched_set_rejected(self, entries):
        with pytest.raises(EntryValidationError):
            reorder_entries(entries, _names(entries)[:-1])
        with pytest.raises(EntryValidationError):
            reorder_entries(entries, _names(entries) + ["ghost"])

    def test_duplicates_rejected(self, entries):
        names = _names(entries)
        names[1] = names[0]
        with pytest.raises(EntryValidationError):
            reorder_entries(entries, names)

    def test_within_category(self, entries):
        ordered = reorder_within_category(entries, "Ortho_Tacoma", 0)
        assert _names(ordered)[4:6] == ["Ortho_Tacoma", "Ortho_Seattle"]
        assert is_dense(ordered)

    def test_within_unrecognized_rejected(self, entries):
        assert reorder_within_category(entries, "mystery_folder", 0) is None

    def test_across_category(self, entries):
        ordered = move_across_category(entries, "Ortho_Tacoma", SceneryCategory.AIRPORT, 1)
        assert _names(ordered)[:3] == ["KSEA Airport", "Ortho_Tacoma", "KBFI Airport"]
        # only the order changes here
        assert ordered[1].category is SceneryCategory.MESH

    def test_across_into_empty_group_uses_display_position(self, entries):
        ordered = move_across_category(entries, "KBFI Airport", SceneryCategory.OVERLAY, 0)
        names = _names(ordered)
        assert names.index("KBFI Airport") == names.index("OpenSceneryX") + 1

    def test_across_never_touches_unrecognized(self, entries):
        assert move_across_category(entries, "mystery_folder", SceneryCategory.MESH, 0) is None
        assert move_across_category(entries, "Ortho_Tacoma", SceneryCategory.UNRECOGNIZED, 0) is None


class TestCategoryCrossing:

    def test_moved_entry_adopts_group_above(self, entries):
        ordered = move_entry(entries, "Ortho_Tacoma", 1)
        assert find_category_crossing(ordered, "Ortho_Tacoma") is SceneryCategory.AIRPORT

    def test_top_position_uses_group_below(self, entries):
        ordered = move_entry(entries, "OpenSceneryX", 0)
        assert find_category_crossing(ordered, "OpenSceneryX") is SceneryCategory.AIRPORT

    def test_same_group_is_not_a_crossing(self, entries):
        ordered = move_entry(entries, "KBFI Airport", 0)
        assert find_category_crossing(ordered, "KBFI Airport") is None

    def test_unrecognized_neighbour_is_skipped(self):
        ordered = renumber([
            make_entry("U", SceneryCategory.UNRECOGNIZED, 0),
            make_entry("B", SceneryCategory.AIRPORT, 1),
            make_entry("A", SceneryCategory.MESH, 2),
        ])
        assert find_category_crossing(ordered, "B") is SceneryCategory.MESH


class TestRemoveAndGroup:

    def test_remove_renumbers(self, scenario_data):
        ordered = remove_entry(scenario_data.entries, "P2")
        assert [(entry.folder_name, entry.sort_order) for entry in ordered] == [("P1", 0), ("P3", 1)]

    def test_group_by_category_keeps_order(self, entries):
        groups = group_by_category(entries)
        assert list(groups) == list(SceneryCategory)
        assert _names(groups[SceneryCategory.MESH]) == ["Ortho_Seattle", "Ortho_Tacoma"]
        assert groups[SceneryCategory.OVERLAY] == []
