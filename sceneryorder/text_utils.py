from __future__ import annotations

import re
from typing import Callable

WHITESPACE_PATTERN = re.compile(r"\s+")
TRAILING_SEPARATOR_PATTERN = re.compile(r"[\\/]+$")
DEFAULT_AUTOGEN_PREFIX = "XPME_"

NamePredicate = Callable[[str], bool]


def normalize_folder_name(raw: str) -> str:
    """Strip surrounding whitespace and trailing path separators from a folder name."""

    return TRAILING_SEPARATOR_PATTERN.sub("", raw.strip())


def display_key(raw: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", raw).strip().lower()


def prefix_matcher(prefix: str = DEFAULT_AUTOGEN_PREFIX) -> NamePredicate:
    """Build the predicate that recognizes auto-generated exclusion packages.

    An empty prefix disables detection entirely.
    """

    if not prefix:
        return lambda name: False

    def _matches(name: str) -> bool:
        return name.startswith(prefix)

    return _matches


is_default_autogen_name = prefix_matcher()
