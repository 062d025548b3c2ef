"""pipeline.session

Debugger session driver.

One gdb subprocess per candidate, in batch mode, fed the fixed debug script.
Its stdout is exposed as a lazy, one-pass sequence of lines; the consumer
(the demux) sets the pace and the pipe provides back-pressure.

stderr goes to /dev/null: gdb complains loudly about missing debug info and
none of that belongs in the artifact files.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from pathlib import Path
from typing import Iterator, List, Optional

from corecollect.domain.coredump import CoredumpCandidate

logger = logging.getLogger(__name__)


def build_gdb_command(gdb_path: str, binary: Path, dump_file: Path, script: Path) -> List[str]:
    return [
        gdb_path,
        "-nx",
        "-batch",
        "-q",
        "-x",
        str(script),
        str(binary),
        str(dump_file),
    ]


class DebugSession:
    """A single debugger run against one (binary, dump) pair.

    ``output_lines()`` may be iterated exactly once; the subprocess is reaped
    when the sequence is exhausted or the iterator is closed.
    """

    def __init__(
        self,
        *,
        command: List[str],
        target_binary: Path,
        dump_file: CoredumpCandidate,
        timeout_seconds: int = 0,
    ) -> None:
        self.command = command
        self.target_binary = target_binary
        self.dump_file = dump_file
        self.timeout_seconds = timeout_seconds
        self.exit_code: Optional[int] = None
        self.timed_out = False
        self._consumed = False

    @property
    def command_str(self) -> str:
        return shlex.join(self.command)

    def _on_timeout(self, proc: subprocess.Popen) -> None:
        self.timed_out = True
        logger.warning(
            "Debugger session for %s exceeded %ss; killing it",
            self.dump_file.path,
            self.timeout_seconds,
        )
        proc.kill()

    def output_lines(self) -> Iterator[str]:
        if self._consumed:
            raise RuntimeError("Debugger output can only be read once; start a new session.")
        self._consumed = True

        proc = subprocess.Popen(
            self.command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            errors="replace",
            bufsize=1,
        )
        timer: Optional[threading.Timer] = None
        if self.timeout_seconds and self.timeout_seconds > 0:
            timer = threading.Timer(self.timeout_seconds, self._on_timeout, args=(proc,))
            timer.daemon = True
            timer.start()

        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                yield line.rstrip("\n")
        finally:
            if timer is not None:
                timer.cancel()
            if proc.stdout is not None:
                proc.stdout.close()
            if proc.poll() is None:
                proc.kill()
            self.exit_code = proc.wait()
            if self.exit_code != 0 and not self.timed_out:
                logger.warning("Debugger exited with code %s for %s", self.exit_code, self.dump_file.path)


class SessionDriver:
    """Launch debugger sessions with a debugger path validated at startup."""

    def __init__(self, gdb_path: Optional[str], *, timeout_seconds: int = 0) -> None:
        self.gdb_path = gdb_path
        self.timeout_seconds = timeout_seconds

    def open(self, binary: Path, dump_file: CoredumpCandidate, script: Path) -> DebugSession:
        if not self.gdb_path:
            raise ValueError(
                "No validated debugger path; resolve one with tools.gdb.find_capable_gdb() before processing."
            )
        return DebugSession(
            command=build_gdb_command(self.gdb_path, Path(binary), dump_file.path, Path(script)),
            target_binary=Path(binary),
            dump_file=dump_file,
            timeout_seconds=self.timeout_seconds,
        )

    def run(self, binary: Path, dump_file: CoredumpCandidate, script: Path) -> Iterator[str]:
        return self.open(binary, dump_file, script).output_lines()
