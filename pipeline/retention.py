"""pipeline.retention

Delete-after policies for source dumps and generated artifacts.

Runs strictly after the archive step for the same candidate. Files that a
requested-but-failed archive was supposed to contain are kept, so retention
can never destroy the only copy of something.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from corecollect.domain.coredump import CoredumpCandidate
from corecollect.io.fs import unlink_if_exists
from corecollect.io.layout import artifact_paths
from pipeline.models import ARCHIVE_COREDUMP, RetentionOptions

logger = logging.getLogger(__name__)


def _delete(path: Path, deleted: List[Path]) -> None:
    try:
        if unlink_if_exists(path):
            deleted.append(path)
    except OSError as e:
        logger.warning("Could not delete %s: %s", path, e)


def apply_retention(
    options: RetentionOptions,
    candidate: CoredumpCandidate,
    output_dir: Path,
    *,
    archive_mode: Optional[str] = None,
    archive_failed: bool = False,
) -> List[Path]:
    """Apply the delete flags for one candidate; return what was removed."""
    deleted: List[Path] = []
    if not (options.delete_coredump or options.delete_results):
        return deleted

    if archive_failed:
        logger.warning("Archive for %s failed; keeping files it was meant to contain", candidate.path)

    keep_dump = archive_failed and archive_mode == ARCHIVE_COREDUMP
    keep_results = archive_failed

    if options.delete_results and not keep_results:
        for path in artifact_paths(output_dir, candidate.name).values():
            _delete(path, deleted)

    if options.delete_coredump and not keep_dump:
        _delete(candidate.path, deleted)

    for path in deleted:
        print(f"  deleted {path}")
    return deleted
