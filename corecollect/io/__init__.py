"""corecollect.io

Filesystem contracts and IO helpers.

Design principle
----------------
The generated artifact layout is a public contract: operators, archive
consumers and upload tooling all rely on it. This module centralizes those
rules so they can evolve in one place.
"""

from __future__ import annotations

from .fs import unlink_if_exists, write_json_atomic, write_text_atomic
from .layout import (
    ARCHIVE_SUFFIX,
    ARTIFACT_SUFFIX,
    archive_root_name,
    artifact_path,
    artifact_paths,
    artifact_section,
    coredump_archive_name,
    results_archive_name,
    run_manifest_path,
    sanitize_dump_name,
    section_from_marker,
)

__all__ = [
    "ARCHIVE_SUFFIX",
    "ARTIFACT_SUFFIX",
    "archive_root_name",
    "artifact_path",
    "artifact_paths",
    "artifact_section",
    "coredump_archive_name",
    "results_archive_name",
    "run_manifest_path",
    "sanitize_dump_name",
    "section_from_marker",
    "unlink_if_exists",
    "write_json_atomic",
    "write_text_atomic",
]
