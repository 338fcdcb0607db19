from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Sequence

from .errors import EntryValidationError
from .models import CATEGORY_ORDER, SceneryCategory, SceneryEntry, category_order_index

UNRECOGNIZED = SceneryCategory.UNRECOGNIZED


class StepKind(str, Enum):
    SWAP = "swap"
    RECATEGORIZE = "recategorize"


@dataclass(frozen=True, slots=True)
class StepPlan:
    kind: StepKind
    folder_name: str
    neighbor: str
    category: SceneryCategory | None = None


def sorted_entries(entries: Iterable[SceneryEntry]) -> List[SceneryEntry]:
    return sorted(entries, key=lambda entry: entry.sort_order)


def assign_dense_order(ordered: Sequence[SceneryEntry]) -> List[SceneryEntry]:
    """Give ``ordered`` the sort orders 0..n-1 in sequence order."""

    result = list(ordered)
    for index, entry in enumerate(result):
        entry.sort_order = index
    return result


def renumber(entries: Iterable[SceneryEntry]) -> List[SceneryEntry]:
    return assign_dense_order(sorted_entries(entries))


def is_dense(entries: Sequence[SceneryEntry]) -> bool:
    return sorted(entry.sort_order for entry in entries) == list(range(len(entries)))


def group_by_category(entries: Iterable[SceneryEntry]) -> Dict[SceneryCategory, List[SceneryEntry]]:
    groups: Dict[SceneryCategory, List[SceneryEntry]] = {category: [] for category in CATEGORY_ORDER}
    for entry in sorted_entries(entries):
        groups[entry.category].append(entry)
    return groups


def _index_of(ordered: Sequence[SceneryEntry], folder_name: str) -> int:
    for index, entry in enumerate(ordered):
        if entry.folder_name == folder_name:
            return index
    return -1


def _clamp(value: int, lower: int, upper: int) -> int:
    return min(max(value, lower), upper)


def move_entry(entries: Iterable[SceneryEntry], folder_name: str, target_index: int) -> List[SceneryEntry] | None:
    """Move one entry to ``target_index`` of the full order.

    Returns the renumbered order, or None when the folder is unknown.
    """

    ordered = sorted_entries(entries)
    current = _index_of(ordered, folder_name)
    if current == -1:
        return None
    target = _clamp(target_index, 0, len(ordered) - 1)
    moved = ordered.pop(current)
    ordered.insert(target, moved)
    return assign_dense_order(ordered)


def plan_step(entries: Iterable[SceneryEntry], folder_name: str, direction: int) -> StepPlan | None:
    """Work out what a single move up (-1) or down (+1) means.

    A step into a neighbour of another category turns into a category change
    and leaves the order untouched. Steps touching an Unrecognized entry are
    rejected.
    """

    if direction not in (-1, 1):
        raise EntryValidationError(f"Step direction must be -1 or 1, got {direction!r}")
    ordered = sorted_entries(entries)
    current = _index_of(ordered, folder_name)
    if current == -1:
        return None
    neighbor_index = current + direction
    if neighbor_index < 0 or neighbor_index >= len(ordered):
        return None

    entry = ordered[current]
    neighbor = ordered[neighbor_index]
    if entry.category is UNRECOGNIZED or neighbor.category is UNRECOGNIZED:
        return None
    if neighbor.category is entry.category:
        return StepPlan(StepKind.SWAP, entry.folder_name, neighbor.folder_name)
    return StepPlan(StepKind.RECATEGORIZE, entry.folder_name, neighbor.folder_name, neighbor.category)


def swap_entries(entries: Iterable[SceneryEntry], first: str, second: str) -> List[SceneryEntry]:
    ordered = sorted_entries(entries)
    a = _index_of(ordered, first)
    b = _index_of(ordered, second)
    if a == -1 or b == -1:
        raise EntryValidationError(f"Cannot swap unknown entries '{first}' and '{second}'")
    ordered[a], ordered[b] = ordered[b], ordered[a]
    return assign_dense_order(ordered)


def reorder_entries(
    entries: Iterable[SceneryEntry],
    new_order: Sequence[SceneryEntry | str],
) -> List[SceneryEntry]:
    """Replace the full order with ``new_order`` (entries or folder names)."""

    lookup = {entry.folder_name: entry for entry in entries}
    names = [item.folder_name if isinstance(item, SceneryEntry) else item for item in new_order]
    if len(names) != len(set(names)):
        raise EntryValidationError("New order lists the same folder more than once")
    if set(names) != set(lookup):
        missing = sorted(set(lookup) - set(names))
        unknown = sorted(set(names) - set(lookup))
        raise EntryValidationError(
            f"New order does not match the loaded entries (missing: {missing}, unknown: {unknown})"
        )
    return assign_dense_order([lookup[name] for name in names])


def _group_insert_position(ordered: Sequence[SceneryEntry], category: SceneryCategory, index: int) -> int:
    members = [position for position, entry in enumerate(ordered) if entry.category is category]
    if members:
        if index >= len(members):
            return members[-1] + 1
        return members[max(index, 0)]

    # empty group: enter where its category sits in display order
    rank = category_order_index(category)
    for position, entry in enumerate(ordered):
        if category_order_index(entry.category) > rank:
            return position
    return len(ordered)


def reorder_within_category(
    entries: Iterable[SceneryEntry], folder_name: str, index: int
) -> List[SceneryEntry] | None:
    """Move an entry to ``index`` inside its own category group."""

    ordered = sorted_entries(entries)
    current = _index_of(ordered, folder_name)
    if current == -1:
        return None
    moved = ordered.pop(current)
    if moved.category is UNRECOGNIZED:
        ordered.insert(current, moved)
        return None
    position = _group_insert_position(ordered, moved.category, index)
    ordered.insert(position, moved)
    return assign_dense_order(ordered)


def move_across_category(
    entries: Iterable[SceneryEntry],
    folder_name: str,
    category: SceneryCategory | str,
    index: int,
) -> List[SceneryEntry] | None:
    """Place an entry at ``index`` of another category group.

    Only the order changes here; the caller is responsible for giving the
    moved entry its new category. Unrecognized is never a source or target.
    """

    target = SceneryCategory(category)
    ordered = sorted_entries(entries)
    current = _index_of(ordered, folder_name)
    if current == -1 or target is UNRECOGNIZED:
        return None
    if ordered[current].category is UNRECOGNIZED:
        return None
    moved = ordered.pop(current)
    position = _group_insert_position(ordered, target, index)
    ordered.insert(position, moved)
    return assign_dense_order(ordered)


def find_category_crossing(ordered: Sequence[SceneryEntry], folder_name: str) -> SceneryCategory | None:
    """Return the category a dropped entry should adopt, or None if it stays put.

    The group is decided by the neighbour above the drop position, falling back
    to the neighbour below when the entry lands at the very top.
    """

    current = _index_of(ordered, folder_name)
    if current == -1:
        return None
    moved = ordered[current]
    if moved.category is UNRECOGNIZED:
        return None
    neighbors = []
    if current > 0:
        neighbors.append(ordered[current - 1])
    if current + 1 < len(ordered):
        neighbors.append(ordered[current + 1])
    if any(neighbor.category is moved.category for neighbor in neighbors):
        return None
    for neighbor in neighbors:
        if neighbor.category is not UNRECOGNIZED:
            return neighbor.category
    return None


def remove_entry(entries: Iterable[SceneryEntry], folder_name: str) -> List[SceneryEntry]:
    return renumber(entry for entry in entries if entry.folder_name != folder_name)


__all__ = [
    "StepKind",
    "StepPlan",
    "sorted_entries",
    "assign_dense_order",
    "renumber",
    "is_dense",
    "group_by_category",
    "move_entry",
    "plan_step",
    "swap_entries",
    "reorder_entries",
    "reorder_within_category",
    "move_across_category",
    "find_category_crossing",
    "remove_entry",
]
