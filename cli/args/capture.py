from __future__ import annotations

import argparse


def add_capture_args(parser: argparse.ArgumentParser) -> None:
    """Register live-capture flags."""

    parser.add_argument(
        "--pid",
        type=int,
        help=(
            "Snapshot the running process PID into a new coredump and process it too. "
            "The process is stopped while the dump is written."
        ),
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation before a live capture (unattended runs).",
    )
