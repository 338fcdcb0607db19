from __future__ import annotations

LEVEL_DEFAULT = "info"

# conflict/ok are informational and share the info threshold
LEVEL_RANKS = {
    "debug": 10,
    "info": 20,
    "conflict": 20,
    "ok": 20,
    "warn": 30,
    "error": 40,
}

_threshold = LEVEL_RANKS[LEVEL_DEFAULT]


def _normalize_level(level: str | None) -> str:
    if not level:
        return LEVEL_DEFAULT
    return level.strip().lower() or LEVEL_DEFAULT


def set_log_level(level: str | None) -> str:
    """Set the minimum level that gets printed and return the normalized name."""

    global _threshold
    normalized = _normalize_level(level)
    if normalized not in LEVEL_RANKS:
        raise ValueError(f"Unknown log level: {level!r}")
    _threshold = LEVEL_RANKS[normalized]
    return normalized


def is_enabled(level: str) -> bool:
    return LEVEL_RANKS.get(_normalize_level(level), LEVEL_RANKS[LEVEL_DEFAULT]) >= _threshold


def log(message: str, level: str = LEVEL_DEFAULT, indent: int = 0, scope: str | None = None) -> None:
    normalized = _normalize_level(level)
    if not is_enabled(normalized):
        return
    prefix = " " * max(indent, 0)
    tag = f"[{normalized}][{scope}]" if scope else f"[{normalized}]"
    print(f"{prefix}{tag} {message}")


def log_debug(message: str, indent: int = 0, scope: str | None = None) -> None:
    log(message, "debug", indent, scope)


def log_info(message: str, indent: int = 0, scope: str | None = None) -> None:
    log(message, "info", indent, scope)


def log_warn(message: str, indent: int = 0, scope: str | None = None) -> None:
    log(message, "warn", indent, scope)


def log_error(message: str, indent: int = 0, scope: str | None = None) -> None:
    log(message, "error", indent, scope)


def log_conflict(message: str, indent: int = 0, scope: str | None = None) -> None:
    log(message, "conflict", indent, scope)


def log_ok(message: str, indent: int = 0, scope: str | None = None) -> None:
    log(message, "ok", indent, scope)
