from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Sequence

from openpyxl import Workbook

from .group_state import CollapsedGroups
from .logging_utils import log_conflict, log_info, log_ok, log_warn
from .models import CATEGORY_ORDER, SceneryCategory, SceneryEntry, SceneryStats
from .text_utils import display_key


def print_load_order(
    grouped: Dict[SceneryCategory, List[SceneryEntry]],
    collapsed: CollapsedGroups | None = None,
) -> None:
    for category in CATEGORY_ORDER:
        group = grouped.get(category, [])
        if not group:
            continue
        folded = collapsed is not None and collapsed.is_collapsed(category)
        marker = "+" if folded else "-"
        log_info(f"{marker} {category.value} ({len(group)})")
        if folded:
            continue
        for entry in group:
            state = "on " if entry.enabled else "off"
            flags = []
            if entry.has_conflicts:
                flags.append("conflicts")
            if entry.has_missing_libraries:
                flags.append("missing libraries")
            suffix = f"  [{', '.join(flags)}]" if flags else ""
            log_info(f"{entry.sort_order:>4} {state} {entry.folder_name}{suffix}", indent=2)


def print_conflict_details(entries: Sequence[SceneryEntry]) -> None:
    conflicting = [entry for entry in entries if entry.duplicate_tiles]
    if conflicting:
        log_conflict("Overlapping scenery tiles detected:")
        for entry in sorted(conflicting, key=lambda item: display_key(item.folder_name)):
            log_conflict(f"{entry.folder_name}: {', '.join(entry.duplicate_tiles)}", indent=2)
    else:
        log_ok("No tile conflicts found.")

    airports = [entry for entry in entries if entry.duplicate_airports]
    if airports:
        log_conflict("Duplicate airports detected:")
        for entry in sorted(airports, key=lambda item: display_key(item.folder_name)):
            log_conflict(f"{entry.folder_name}: {', '.join(entry.duplicate_airports)}", indent=2)
    else:
        log_ok("No airport conflicts found.")

    missing = [entry for entry in entries if entry.missing_libraries]
    for entry in missing:
        log_warn(f"{entry.folder_name} is missing libraries: {', '.join(entry.missing_libraries)}")


def _build_conflict_rows(entries: Sequence[SceneryEntry]) -> List[List[str]]:
    rows: List[List[str]] = []
    for entry in entries:
        for other in entry.duplicate_tiles:
            rows.append(["tiles", entry.folder_name, other])
        for other in entry.duplicate_airports:
            rows.append(["airport", entry.folder_name, other])
    return rows


def export_report(
    output_path: Path,
    entries: Sequence[SceneryEntry],
    stats: SceneryStats,
) -> None:
    """Write an Excel report of the load order, active conflicts and counters."""

    output_path.parent.mkdir(parents=True, exist_ok=True)

    workbook = Workbook()

    # Load order sheet
    order_sheet = workbook.active
    if not order_sheet:
        order_sheet = workbook.create_sheet("load_order")
    else:
        order_sheet.title = "load_order"
    order_sheet.append([
        "sort order",
        "folder name",
        "category",
        "enabled",
        "continent",
        "missing libraries",
        "tile conflicts",
        "airport conflicts",
    ])
    for entry in sorted(entries, key=lambda item: item.sort_order):
        order_sheet.append(
            [
                entry.sort_order,
                entry.folder_name,
                entry.category.value,
                "yes" if entry.enabled else "no",
                entry.continent or "",
                ", ".join(entry.missing_libraries),
                ", ".join(entry.duplicate_tiles),
                ", ".join(entry.duplicate_airports),
            ]
        )

    # Conflicts sheet
    conflicts_sheet = workbook.create_sheet("conflicts")
    conflicts_sheet.append(["kind", "package", "conflicts with"])
    for row in _build_conflict_rows(sorted(entries, key=lambda item: item.sort_order)):
        conflicts_sheet.append(row)

    # Summary sheet
    summary_sheet = workbook.create_sheet("summary")
    summary_sheet.append(["metric", "value"])
    summary_sheet.append(["total packages", stats.total_count])
    summary_sheet.append(["enabled packages", stats.enabled_count])
    summary_sheet.append(["missing dependencies", stats.missing_deps_count])
    summary_sheet.append(["tile conflicts", stats.duplicate_tiles_count])
    summary_sheet.append(["airport conflicts", stats.duplicate_airports_count])
    summary_sheet.append(["packages with conflicts", stats.duplicates_count])

    workbook.save(output_path)
    workbook.close()


__all__ = ["print_load_order", "print_conflict_details", "export_report"]
