"""corecollect.io.fs

Atomic, stable filesystem writers.

Why this module exists
----------------------
The run manifest is read by people and by upload tooling after the fact. A
half-written JSON file (Ctrl-C, disk full) is worse than no file at all, so
writes go through a temp file in the same directory and ``os.replace``.

Artifact text files are *not* written here: they are streamed line by line
from the debugger and must show partial content when a session dies early.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def write_text_atomic(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``text`` in one step; the old content survives any failure."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f"{p.name}.", suffix=".tmp", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, p)
    except BaseException:
        unlink_if_exists(Path(tmp_name))
        raise


def write_json_atomic(path: Path, data: Any, *, indent: int = 2) -> None:
    """Write JSON with sorted keys and a trailing newline (diff-friendly)."""
    text = json.dumps(data, indent=indent, sort_keys=True, ensure_ascii=False) + "\n"
    write_text_atomic(Path(path), text)


def unlink_if_exists(path: Path) -> bool:
    """Remove a file or symlink; return True if something was removed."""
    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return False
