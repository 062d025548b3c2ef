#!/usr/bin/env python3
"""
Coredump collector CLI.

Finds coredumps, runs each through gdb with a fixed debug script, splits the
output into per-dump text artifacts and optionally archives, uploads and
cleans up.

Usage:
  python corecollect_cli.py --binary /usr/sbin/server
  python corecollect_cli.py --binary /usr/sbin/server --latest --tarball-results
  python corecollect_cli.py --binary /usr/sbin/server '/var/crash/core*' --append --tarball-coredumps
  python corecollect_cli.py --binary /usr/sbin/server --pid 4242 --yes --tarball-coredumps --upload
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from cli.args.archive import add_archive_args
from cli.args.base import add_base_args
from cli.args.capture import add_capture_args
from cli.dispatch import dispatch
from pipeline.wiring import build_config, configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="corecollect",
        description="Extract backtraces and lock state from coredumps with gdb, then archive them.",
    )
    add_base_args(parser)
    add_archive_args(parser)
    add_capture_args(parser)
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose, quiet=args.quiet)
    try:
        config = build_config(config_file=Path(args.config_file) if args.config_file else None)
    except (FileNotFoundError, ValueError) as e:
        raise SystemExit(f"Invalid configuration: {e}")

    raise SystemExit(dispatch(args, parser=parser, config=config))


if __name__ == "__main__":
    main()
