#
# Catalog helpers used to populate the submission form.
#
from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

logger = logging.getLogger(__name__)


def read_dir(directory: Path, *, kind: Literal["file", "dir"], suffix: str = "") -> list[str]:
    """List entry names of one kind under `directory`, sorted, with `suffix` stripped.

    Entries not ending in `suffix` are skipped. A missing directory yields an
    empty list.
    """

    try:
        entries = list(directory.iterdir())
    except OSError:
        return []

    names: list[str] = []
    for entry in entries:
        matches = entry.is_dir() if kind == "dir" else entry.is_file()
        if not matches:
            continue
        if suffix and not entry.name.endswith(suffix):
            continue
        names.append(entry.name.removesuffix(suffix) if suffix else entry.name)
    return sorted(names)


def read_lines(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        logger.info("unable to read %s: %s", path, exc)
        return []
