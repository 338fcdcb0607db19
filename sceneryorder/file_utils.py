from __future__ import annotations

import shutil
from pathlib import Path

from .logging_utils import log_info

BACKUP_SUFFIX = ".bak"


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def backup_path_for(source: Path, backup_dir: Path) -> Path:
    return backup_dir / (source.name + BACKUP_SUFFIX)


def backup_file(source: Path, backup_dir: Path) -> Path:
    """Copy ``source`` into ``backup_dir``, replacing the previous backup."""

    if not source.exists():
        raise FileNotFoundError(f"Cannot backup missing file: {source}")
    ensure_directory(backup_dir)
    destination = backup_path_for(source, backup_dir)
    shutil.copy2(source, destination)
    log_info(f"Created backup: {destination}")
    return destination


def restore_backup(
    backup_dir: Path, target_path: Path, no_exist_ok: bool = False
) -> bool:
    backup_path = backup_path_for(target_path, backup_dir)
    if not backup_path.exists():
        if no_exist_ok:
            return False
        raise FileNotFoundError(f"Cannot restore missing backup: {backup_path}")
    shutil.copy2(backup_path, target_path)
    log_info(f"Restored backup from {backup_path} to {target_path}")
    return True


def write_text_atomic(path: Path, text: str) -> None:
    """Write through a temporary sibling file so readers never see a partial file."""

    ensure_directory(path.parent)
    temp_path = path.with_name(path.name + ".tmp")
    temp_path.write_text(text, encoding="utf-8")
    temp_path.replace(path)
