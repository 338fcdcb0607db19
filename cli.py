from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import List, Tuple

from sceneryorder import (
    ApiErrorCode,
    BackendError,
    ImmediateScheduler,
    SceneryCategory,
    SceneryEngine,
    TomlIndexBackend,
    export_report,
    load_collapsed_groups,
    load_engine_config,
    print_conflict_details,
    print_load_order,
    save_collapsed_groups,
)
from sceneryorder.file_utils import restore_backup
from sceneryorder.logging_utils import log_error, log_info, log_warn, set_log_level


def _name_value(raw: str) -> Tuple[str, str]:
    if "=" not in raw:
        raise argparse.ArgumentTypeError(f"Expected NAME=VALUE, got '{raw}'")
    name, value = raw.rsplit("=", 1)
    return name.strip(), value.strip()


def _category(raw: str) -> SceneryCategory:
    try:
        return SceneryCategory(raw)
    except ValueError as exc:
        choices = ", ".join(category.value for category in SceneryCategory)
        raise argparse.ArgumentTypeError(f"Unknown category '{raw}'. Choose from: {choices}") from exc


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Inspect and edit the scenery load order kept in an index file, "
            "show active tile/airport conflicts and export them to Excel. "
            "Edits are staged and only written with --apply."
        )
    )
    parser.add_argument(
        "--index",
        required=True,
        type=Path,
        help="Path to the scenery index TOML file.",
    )
    parser.add_argument(
        "--config-path",
        type=Path,
        default=Path("config.toml"),
        help="Path to the program configuration TOML file.",
    )
    parser.add_argument(
        "--groups-path",
        type=Path,
        default=Path("groups.toml"),
        help="Where collapsed/expanded category groups are remembered.",
    )
    parser.add_argument("--toggle", action="append", default=[], metavar="NAME",
                        help="Toggle the enabled state of a package.")
    parser.add_argument("--move", action="append", default=[], type=_name_value, metavar="NAME=INDEX",
                        help="Move a package to a position in the full load order.")
    parser.add_argument("--up", action="append", default=[], metavar="NAME",
                        help="Move a package one step up.")
    parser.add_argument("--down", action="append", default=[], metavar="NAME",
                        help="Move a package one step down.")
    parser.add_argument("--category", action="append", default=[], type=_name_value, metavar="NAME=CATEGORY",
                        help="Change the category of a package (written immediately).")
    parser.add_argument("--delete", action="append", default=[], metavar="NAME",
                        help="Delete a package from the index (written immediately).")
    parser.add_argument("--collapse", action="append", default=[], type=_category, metavar="CATEGORY",
                        help="Collapse a category group in the listing.")
    parser.add_argument("--expand", action="append", default=[], type=_category, metavar="CATEGORY",
                        help="Expand a category group in the listing.")
    parser.add_argument(
        "--verbose-conflict",
        action="store_true",
        default=False,
        help="Print detailed information about each conflict.",
    )
    parser.add_argument(
        "--export-path",
        type=Path,
        default=Path(""),
        help="Path to save the conflict report Excel file.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the updates --apply would write.",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Write the staged order and enabled flags back to the index.",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        default=False,
        help="Discard staged order and enabled-flag edits before listing and applying.",
    )
    parser.add_argument(
        "--restore-backup",
        action="store_true",
        default=False,
        help="Restore the index from the last backup before doing anything else.",
    )
    return parser.parse_args()


async def run(args: argparse.Namespace) -> int:
    config = load_engine_config(args.config_path.expanduser())
    set_log_level(config.log_level)

    index_path = args.index.expanduser().resolve()
    if args.restore_backup:
        if config.backup_dir is None:
            log_warn("No backup_dir configured; nothing to restore.")
        else:
            restore_backup(config.backup_dir, index_path, no_exist_ok=True)

    backend = TomlIndexBackend(index_path, backup_dir=config.backup_dir)
    engine = SceneryEngine(backend, config=config, scheduler=ImmediateScheduler())
    await engine.load_index()

    for name in args.toggle:
        engine.toggle_enabled(name)
    for name, index in args.move:
        engine.move_entry(name, int(index))
    for name in args.up:
        await engine.move_up(name)
    for name in args.down:
        await engine.move_down(name)
    for name, category in args.category:
        await engine.update_category(name, _category(category))
    for name in args.delete:
        await engine.delete_entry(name)
    if args.reset and engine.has_local_changes:
        engine.reset_changes()
        log_info("Staged edits discarded.")

    groups_path = args.groups_path.expanduser()
    groups = load_collapsed_groups(groups_path)
    if args.collapse or args.expand:
        for category in args.collapse:
            groups.set_collapsed(category, True)
        for category in args.expand:
            groups.set_collapsed(category, False)
        save_collapsed_groups(groups_path, groups)

    print_load_order(engine.grouped_entries, groups)
    stats = engine.stats
    log_info(
        f"{stats.total_count} packages, {stats.enabled_count} enabled, "
        f"{stats.duplicates_count} with conflicts, {stats.missing_deps_count} missing libraries."
    )
    if args.verbose_conflict:
        print_conflict_details(engine.entries)

    export_path = args.export_path
    if not export_path == Path(""):
        if export_path.suffix.lower() != ".xlsx":
            export_path = export_path / "scenery_report.xlsx"
        export_report(output_path=export_path, entries=engine.entries, stats=stats)
        log_info(f"Report saved to {export_path}")

    if not engine.has_changes:
        log_info("Load order is in sync. Nothing to apply.")
        return 0

    pending: List[str] = [
        f"{update.folder_name} -> {update.sort_order} ({'on' if update.enabled else 'off'})"
        for update in engine.pending_updates()
    ]
    log_info(f"State: {engine.sync_state.value}. {len(pending)} locally edited package(s).")
    for line in pending:
        log_info(line, indent=2)

    if args.dry_run or not args.apply:
        log_info("Changes not written. Use --apply to write them.")
        return 0

    await engine.apply_changes()
    return 0


def main() -> None:
    args = parse_args()
    try:
        exit_code = asyncio.run(run(args))
    except BackendError as exc:
        log_error(f"{exc.code.value}: {exc.message}")
        if exc.code is ApiErrorCode.MIGRATION_FAILED:
            log_warn("The index was written by a newer version; remove it and rebuild.")
        raise SystemExit(1) from exc
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
