from __future__ import annotations

import argparse


def add_archive_args(parser: argparse.ArgumentParser) -> None:
    """Register archive, upload and retention flags.

    The two archive modes are mutually exclusive; argparse rejects both
    together before anything is processed.
    """

    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--tarball-coredumps",
        dest="archive_mode",
        action="store_const",
        const="coredump",
        help=(
            "Archive each dump with its artifacts, the target binary, its libraries and "
            "os-release, laid out for offline analysis (one archive per dump)."
        ),
    )
    group.add_argument(
        "--tarball-results",
        dest="archive_mode",
        action="store_const",
        const="results",
        help="Archive only the artifact text files (small, suitable for sharing).",
    )

    parser.add_argument(
        "--include-config",
        action="store_true",
        help="Also archive the configured config_dir under etc/.",
    )
    parser.add_argument(
        "--upload",
        action="store_true",
        help="PUT each archive to upload_url (config or CORECOLLECT_UPLOAD_URL).",
    )
    parser.add_argument(
        "--delete-coredumps",
        action="store_true",
        help="Delete each source dump after it was processed (and archived, if requested).",
    )
    parser.add_argument(
        "--delete-results",
        action="store_true",
        help="Delete the artifact text files after archiving.",
    )
