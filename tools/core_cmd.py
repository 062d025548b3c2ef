"""tools/core_cmd.py

Small subprocess helpers for the short-lived external programs the collector
drives: the gdb capability check, live capture and the date command.

* :func:`which_or_raise` - turn a program name or path into a usable executable.
* :func:`run_cmd` - run to completion (no ``shell=True``) and capture output.

Debugger sessions stream their output and are handled in
:mod:`pipeline.session` instead.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    exit_code: int
    elapsed_seconds: float
    command_str: str
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def first_line(self) -> str:
        """First non-empty stdout line, falling back to stderr."""
        for text in (self.stdout, self.stderr):
            for line in text.splitlines():
                if line.strip():
                    return line.strip()
        return ""

    def failure_reason(self) -> str:
        """Last diagnostic line, which is where gdb puts the actual error."""
        lines = [ln.strip() for ln in (self.stderr or self.stdout).splitlines() if ln.strip()]
        return lines[-1] if lines else f"exit code {self.exit_code}"


def _is_executable(p: Path) -> bool:
    return p.is_file() and os.access(str(p), os.X_OK)


def which_or_raise(bin_name: str, fallbacks: Optional[Sequence[str]] = None) -> str:
    """Return an absolute path for ``bin_name``.

    A name is looked up on PATH; a path (anything containing ``/``) is used
    as given. ``fallbacks`` are tried in order when neither works.
    """
    if os.sep in bin_name:
        p = Path(bin_name).expanduser()
        if _is_executable(p):
            return str(p.resolve())
    else:
        found = shutil.which(bin_name)
        if found:
            return found

    tried: List[str] = [bin_name]
    for candidate in fallbacks or []:
        tried.append(candidate)
        if _is_executable(Path(candidate)):
            return str(candidate)

    raise FileNotFoundError(f"Executable '{bin_name}' not found (tried: {', '.join(tried)}).")


def run_cmd(cmd: List[str], *, timeout_seconds: int = 0) -> CmdResult:
    """Run ``cmd`` with stdin closed and return its captured output.

    A non-zero exit code is reported in the result, not raised. Launch errors
    (``OSError``) and ``subprocess.TimeoutExpired`` propagate.
    """
    command_str = shlex.join(cmd)
    logger.debug("Running: %s", command_str)

    t0 = time.monotonic()
    proc = subprocess.run(
        cmd,
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout_seconds if timeout_seconds > 0 else None,
    )
    elapsed = time.monotonic() - t0

    return CmdResult(
        exit_code=proc.returncode,
        elapsed_seconds=elapsed,
        command_str=command_str,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )
