from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import toml

from .logging_utils import LEVEL_DEFAULT, log_warn
from .text_utils import DEFAULT_AUTOGEN_PREFIX, NamePredicate, prefix_matcher


@dataclass(slots=True)
class EngineConfig:
    auto_generated_prefix: str = DEFAULT_AUTOGEN_PREFIX
    debounce_recompute: bool = True
    log_level: str = LEVEL_DEFAULT
    backup_dir: Path | None = None

    @property
    def auto_generated_predicate(self) -> NamePredicate:
        return prefix_matcher(self.auto_generated_prefix)


def load_engine_config(config_path: Path) -> EngineConfig:
    """Load engine settings from a TOML file.

    Recognized keys, all optional::

        auto_generated_prefix = "XPME_"
        debounce_recompute = true
        log_level = "info"
        backup_dir = "index_backup"

    A relative ``backup_dir`` is resolved against the config file's folder.
    """

    config = EngineConfig()

    if not config_path.exists():
        log_warn(f"Config file {config_path} not found. Proceeding with defaults.")
        return config

    raw_text = config_path.read_text(encoding="utf-8")
    try:
        raw = toml.loads(raw_text)
    except toml.TomlDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {config_path}") from exc

    prefix = raw.get("auto_generated_prefix", config.auto_generated_prefix)
    if not isinstance(prefix, str):
        raise ValueError(f"auto_generated_prefix must be a string in {config_path}")
    config.auto_generated_prefix = prefix
    config.debounce_recompute = bool(raw.get("debounce_recompute", config.debounce_recompute))
    config.log_level = str(raw.get("log_level", config.log_level))

    backup_dir = raw.get("backup_dir")
    if backup_dir:
        config.backup_dir = config_path.parent / Path(backup_dir)

    return config
