"""CLI argument builder modules.

The top-level :mod:`corecollect_cli` is intentionally kept thin. Groups of
flags are registered via small "arg builder" functions housed here.

Each module exposes a single public function:

- :func:`cli.args.base.add_base_args`
- :func:`cli.args.archive.add_archive_args`
- :func:`cli.args.capture.add_capture_args`
"""

from __future__ import annotations

__all__ = [
    "base",
    "archive",
    "capture",
]
