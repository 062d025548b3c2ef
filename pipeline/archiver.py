"""pipeline.archiver

Package a processed coredump into a self-contained ``.tar.gz`` snapshot.

Two mutually exclusive modes
----------------------------
coredump-centric
    Everything needed to open the dump on another machine, laid out the way
    the analysis host expects it, rooted under ``<sanitized dump>/``::

      tmp/<dump>                 the dump (staged as a symlink, archived as a file)
      tmp/<dump>-*.txt           the four artifacts
      etc/os-release             if present on this host
      etc/<config dir>/...       if requested
      usr/lib[64]/<prefix>*      runtime shared libraries
      usr/lib[64]/<support dir>/ support library directory
      usr/sbin/<binary>

results-centric
    Only copies of the artifact files (plus the config directory if
    requested), rooted under the archive base name. Small enough to share.

Staging
-------
Members are assembled in a throwaway directory next to the archive. Large
members are symlinked, never copied, and the tar writer dereferences them.
The staging directory is removed after every attempt, successful or not.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional, Sequence

from corecollect.domain.coredump import CoredumpCandidate
from corecollect.io.fs import unlink_if_exists
from corecollect.io.layout import (
    archive_root_name,
    coredump_archive_name,
    results_archive_name,
    sanitize_dump_name,
)
from pipeline.config import CollectorConfig
from pipeline.models import ARCHIVE_COREDUMP, ARCHIVE_RESULTS, ArchiveOptions, SnapshotBundle

logger = logging.getLogger(__name__)


def _relative_to_root(path: Path) -> Path:
    """``/usr/lib64`` -> ``usr/lib64`` (mirror an absolute path inside staging)."""
    return Path(*Path(path).parts[1:]) if Path(path).is_absolute() else Path(path)


class Archiver:
    def __init__(
        self,
        config: CollectorConfig,
        *,
        announce: Callable[[str], None] = print,
    ) -> None:
        self.config = config
        self.announce = announce

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    def archive_name(self, options: ArchiveOptions, candidate: CoredumpCandidate) -> str:
        prefix = self.config.archive_prefix
        if options.mode == ARCHIVE_COREDUMP:
            return coredump_archive_name(prefix, options.run_id, candidate.name)
        dump_name = candidate.name if options.per_candidate_name else None
        return results_archive_name(prefix, options.run_id, dump_name)

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def _link(self, bundle: SnapshotBundle, source: Path, rel_dest: Path) -> None:
        dest = bundle.staging_dir / rel_dest
        dest.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(os.path.abspath(source), dest)
        bundle.members.append(rel_dest)

    def _copy(self, bundle: SnapshotBundle, source: Path, rel_dest: Path) -> None:
        dest = bundle.staging_dir / rel_dest
        dest.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir():
            shutil.copytree(source, dest, symlinks=True)
        else:
            shutil.copy2(source, dest)
        bundle.members.append(rel_dest)

    def _stage_config_dir(self, bundle: SnapshotBundle, *, copy: bool) -> None:
        config_dir = self.config.config_dir
        if not config_dir:
            logger.warning("Config inclusion requested but no config_dir is configured")
            return
        src = Path(config_dir)
        if not src.is_dir():
            logger.warning("Config directory %s does not exist; not archived", src)
            return
        rel = Path("etc") / src.name
        if copy:
            self._copy(bundle, src, rel)
        else:
            self._link(bundle, src, rel)

    def _stage_runtime(self, bundle: SnapshotBundle) -> None:
        cfg = self.config

        os_release = Path(cfg.os_release)
        if os_release.is_file():
            self._link(bundle, os_release, Path("etc") / "os-release")

        if cfg.binary:
            binary = Path(cfg.binary)
            if binary.is_file():
                self._link(bundle, binary, Path("usr") / "sbin" / binary.name)
            else:
                logger.warning("Target binary %s not found; not archived", binary)

        lib_dir = cfg.effective_lib_dir
        lib_rel = _relative_to_root(lib_dir)
        if cfg.lib_prefix:
            for lib in sorted(lib_dir.glob(f"{cfg.lib_prefix}*")):
                if lib.is_file():
                    self._link(bundle, lib, lib_rel / lib.name)
        if cfg.support_lib_dir:
            support = lib_dir / cfg.support_lib_dir
            if support.is_dir():
                self._link(bundle, support, lib_rel / cfg.support_lib_dir)
            else:
                logger.warning("Support library directory %s not found; not archived", support)

    def stage(
        self,
        options: ArchiveOptions,
        candidate: CoredumpCandidate,
        artifacts: Sequence[Path],
    ) -> SnapshotBundle:
        """Build the staging directory for one archive."""
        output_dir = Path(self.config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        name = self.archive_name(options, candidate)
        if options.mode == ARCHIVE_COREDUMP:
            root_name = sanitize_dump_name(candidate.name)
        else:
            root_name = archive_root_name(name)

        staging_dir = Path(tempfile.mkdtemp(prefix=".corecollect-stage-", dir=str(output_dir)))
        bundle = SnapshotBundle(
            staging_dir=staging_dir,
            root_name=root_name,
            archive_path=output_dir / name,
        )

        try:
            if options.mode == ARCHIVE_COREDUMP:
                self._link(bundle, candidate.path, Path("tmp") / sanitize_dump_name(candidate.name))
                for artifact in sorted(artifacts):
                    self._link(bundle, artifact, Path("tmp") / artifact.name)
                self._stage_runtime(bundle)
                if options.include_config:
                    self._stage_config_dir(bundle, copy=False)
            else:
                for artifact in sorted(artifacts):
                    self._copy(bundle, artifact, Path(artifact.name))
                if options.include_config:
                    self._stage_config_dir(bundle, copy=True)
        except OSError:
            self.cleanup(bundle)
            raise

        return bundle

    # ------------------------------------------------------------------
    # Archive + cleanup
    # ------------------------------------------------------------------

    def write_archive(self, bundle: SnapshotBundle) -> Path:
        """Write the tarball via a temp name so a failed write leaves nothing behind."""
        partial = bundle.archive_path.with_name(bundle.archive_path.name + ".partial")
        try:
            with tarfile.open(partial, "w:gz", dereference=True) as tar:
                for rel in sorted(bundle.members):
                    tar.add(bundle.staging_dir / rel, arcname=str(Path(bundle.root_name) / rel))
            os.replace(partial, bundle.archive_path)
        finally:
            unlink_if_exists(partial)
        return bundle.archive_path

    def cleanup(self, bundle: SnapshotBundle) -> None:
        # Give the tar writer time to release handles on slow filesystems.
        if self.config.staging_settle_seconds > 0:
            time.sleep(self.config.staging_settle_seconds)
        try:
            shutil.rmtree(bundle.staging_dir)
        except OSError as e:
            logger.warning("Could not remove staging directory %s: %s", bundle.staging_dir, e)

    def archive(
        self,
        options: ArchiveOptions,
        candidate: CoredumpCandidate,
        artifacts: Sequence[Path],
    ) -> Optional[Path]:
        """Archive one candidate; returns the archive path, or None if no archive was requested.

        Raises OSError / tarfile.TarError when the archive cannot be written.
        """
        if options.mode not in (ARCHIVE_COREDUMP, ARCHIVE_RESULTS):
            return None

        existing = [Path(a) for a in artifacts if Path(a).exists()]
        bundle = self.stage(options, candidate, existing)
        try:
            self.announce(f"  archiving {len(bundle.members)} member(s) -> {bundle.archive_path}")
            return self.write_archive(bundle)
        finally:
            self.cleanup(bundle)
