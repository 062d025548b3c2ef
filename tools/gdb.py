"""tools/gdb.py

Debugger discovery and capability checks.

The debug script is a gdb *Python* script, so a gdb built without embedded
Python is useless to us even though it runs. This is checked exactly once at
startup; the session driver trusts the validated path afterwards.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Optional

from tools.core_cmd import run_cmd, which_or_raise

GDB_FALLBACKS = ["/usr/bin/gdb", "/usr/local/bin/gdb", "/opt/rh/gdb/root/usr/bin/gdb"]

_PYTHON_CHECK_TOKEN = "corecollect-python-ok"


@dataclass(frozen=True)
class GdbInfo:
    path: str
    version: str


def gdb_version(gdb_bin: str) -> str:
    return run_cmd([gdb_bin, "--version"], timeout_seconds=30).first_line() or "unknown"


def has_python_support(gdb_bin: str, *, timeout_seconds: int = 30) -> bool:
    """Return True if ``gdb_bin`` can execute embedded Python commands."""
    try:
        res = run_cmd(
            [gdb_bin, "-nx", "-batch", "-ex", f"python print('{_PYTHON_CHECK_TOKEN}')"],
            timeout_seconds=timeout_seconds,
        )
    except subprocess.TimeoutExpired:
        return False
    return res.ok and _PYTHON_CHECK_TOKEN in res.stdout


def find_capable_gdb(preferred: Optional[str] = None) -> GdbInfo:
    """Locate gdb and verify it has embedded Python.

    Raises FileNotFoundError when no gdb is found and RuntimeError when the
    one found cannot run Python.
    """
    gdb_bin = which_or_raise(preferred or "gdb", fallbacks=GDB_FALLBACKS)
    if not has_python_support(gdb_bin):
        raise RuntimeError(
            f"{gdb_bin} was built without Python support; "
            "install a gdb with embedded Python or point --gdb at one."
        )
    return GdbInfo(path=gdb_bin, version=gdb_version(gdb_bin))
