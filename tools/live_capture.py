"""tools/live_capture.py

Snapshot a running process into a coredump file.

This briefly stops the target process. Callers are expected to have asked
the operator for confirmation; nothing here prompts.
"""

from __future__ import annotations

from pathlib import Path

from tools.core_cmd import CmdResult, run_cmd


def build_capture_command(gdb_bin: str, pid: int, output_path: Path) -> list[str]:
    return [
        gdb_bin,
        "-nx",
        "-batch",
        "-p",
        str(pid),
        "-ex",
        f"gcore {output_path}",
    ]


def capture_process(gdb_bin: str, pid: int, output_path: Path, *, timeout_seconds: int = 0) -> Path:
    """Write a coredump of ``pid`` to ``output_path`` and return the path.

    gdb happily exits 0 after failing to attach, so success is judged by the
    dump actually existing and being non-empty.
    """
    if pid <= 0:
        raise ValueError(f"Invalid process id: {pid}")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    res: CmdResult = run_cmd(
        build_capture_command(gdb_bin, pid, output_path),
        timeout_seconds=timeout_seconds,
    )
    if not output_path.is_file() or output_path.stat().st_size == 0:
        raise RuntimeError(f"Live capture failed for pid {pid}: {res.failure_reason()}")
    return output_path
