from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

READ_ONLY_MODE = 0o444


def create_exclusive(path: Path, *, mode: int = READ_ONLY_MODE, readable: bool = False) -> int:
    """Create `path` and return an open descriptor; fail if it already exists."""

    flags = os.O_CREAT | os.O_EXCL | (os.O_RDWR if readable else os.O_WRONLY)
    return os.open(path, flags | getattr(os, "O_CLOEXEC", 0), mode)


def write_bytes_exclusive(path: Path, data: bytes, *, mode: int = READ_ONLY_MODE) -> None:
    fd = create_exclusive(path, mode=mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())


def write_text_exclusive(path: Path, text: str, *, mode: int = READ_ONLY_MODE) -> None:
    write_bytes_exclusive(path, text.encode("utf-8"), mode=mode)


def publish_json_exclusive(path: Path, obj: Any, *, mode: int = READ_ONLY_MODE) -> None:
    # Readers never see a partial file: content goes to a temp name and is
    # hard linked into place, which fails with FileExistsError if `path` exists.
    text = json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=False) + "\n"
    tmp = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    write_text_exclusive(tmp, text, mode=mode)
    try:
        os.link(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))
