"""corecollect.io.layout

Canonical filesystem layout utilities.

This module centralizes:

* dump-name sanitization (``:`` is rejected by downstream upload tooling)
* per-dump artifact filenames (``<dump>-<section>.txt``)
* archive and run-manifest filenames

The goal is to ensure the demux, archiver, retention and CLI code do **not**
re-implement their own naming heuristics.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Union

from corecollect.domain.coredump import ARTIFACT_SECTIONS, ArtifactSection

ARTIFACT_SUFFIX = ".txt"
ARCHIVE_SUFFIX = ".tar.gz"

# ":" is refused by upload tooling; "/" would escape the output directory.
_FORBIDDEN_CHARS = (":", "/")


def sanitize_dump_name(value: str) -> str:
    """Replace path-unsafe characters in a dump base name with ``-``.

    Only the forbidden characters change; everything else is kept verbatim
    so the artifact names remain recognisable next to the dump.

    Examples
    --------
    "core.server.1234:5678" -> "core.server.1234-5678"
    """
    out = str(value)
    for ch in _FORBIDDEN_CHARS:
        out = out.replace(ch, "-")
    return out


def section_from_marker(marker: str) -> str:
    """Strip the ``.txt`` suffix the marker protocol carries."""
    m = marker.strip()
    if m.endswith(ARTIFACT_SUFFIX):
        m = m[: -len(ARTIFACT_SUFFIX)]
    return m


def artifact_path(output_dir: Union[str, Path], dump_name: str, section: str) -> Path:
    """Return ``<output_dir>/<sanitized dump>-<section>.txt``."""
    name = f"{dump_name}-{section_from_marker(section)}{ARTIFACT_SUFFIX}"
    return Path(output_dir) / sanitize_dump_name(name)


def artifact_section(output_dir: Union[str, Path], dump_name: str, marker: str) -> ArtifactSection:
    section = section_from_marker(marker)
    return ArtifactSection(marker=section, output_path=artifact_path(output_dir, dump_name, section))


def artifact_paths(output_dir: Union[str, Path], dump_name: str) -> Dict[str, Path]:
    """All four expected artifact paths for one dump, keyed by section."""
    return {s: artifact_path(output_dir, dump_name, s) for s in ARTIFACT_SECTIONS}


def coredump_archive_name(prefix: str, run_id: str, dump_name: str) -> str:
    """Coredump-centric archives are always per dump."""
    return sanitize_dump_name(f"{prefix}-coredump-{run_id}-{dump_name}{ARCHIVE_SUFFIX}")


def results_archive_name(prefix: str, run_id: str, dump_name: str | None = None) -> str:
    """Results-centric archives share the run id; ``dump_name`` disambiguates multi-dump runs."""
    base = f"{prefix}-results-{run_id}"
    if dump_name:
        base = f"{base}-{dump_name}"
    return sanitize_dump_name(base + ARCHIVE_SUFFIX)


def archive_root_name(archive_name: str) -> str:
    """Directory every archive member is rooted under."""
    if archive_name.endswith(ARCHIVE_SUFFIX):
        return archive_name[: -len(ARCHIVE_SUFFIX)]
    return archive_name


def run_manifest_path(output_dir: Union[str, Path], prefix: str, run_id: str) -> Path:
    return Path(output_dir) / sanitize_dump_name(f"{prefix}-run-{run_id}.json")
