from __future__ import annotations

import argparse


def add_base_args(parser: argparse.ArgumentParser) -> None:
    """Register candidate selection, output and execution flags.

    This includes:
    - coredump selection (positional patterns, --append, --latest)
    - debugger / target binary / output directory overrides
    - run id and execution knobs
    """

    parser.add_argument(
        "coredumps",
        nargs="*",
        metavar="COREDUMP",
        help=(
            "Coredump files or glob patterns. Replaces the configured 'coredumps' list "
            "unless --append is given. Non-coredump matches are ignored."
        ),
    )
    parser.add_argument(
        "--append",
        action="store_true",
        help="Add COREDUMP arguments to the configured patterns instead of replacing them.",
    )
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Only process the most recently modified coredump (plus a live capture, if any).",
    )

    parser.add_argument("--config", dest="config_file", help="Extra YAML config file (highest file precedence).")
    parser.add_argument("--output-dir", help="Directory for artifacts and archives (config: output_dir).")
    parser.add_argument("--gdb", help="Debugger to use; must have embedded Python (config: gdb).")
    parser.add_argument("--binary", help="Executable that produced the dumps (config: binary).")
    parser.add_argument(
        "--id",
        dest="unique_id",
        help="Unique id used in archive names instead of a timestamp (shared by all dumps in this run).",
    )
    parser.add_argument(
        "--timeout-seconds",
        type=int,
        default=None,
        help="Kill a debugger session after this many seconds. 0 = no timeout (default).",
    )

    parser.add_argument(
        "--dry-run", action="store_true", help="Print the debugger commands but do not execute"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
