"""pipeline.orchestrator

High-level orchestration for one collector invocation.

Per candidate, strictly in sequence:

  SessionDriver -> ArtifactDemux -> Archiver -> (upload) -> RetentionManager

Design principles
-----------------
- Keep the CLI thin: parse args + resolve candidates + call :func:`run_pipeline`.
- One candidate's failure never leaks into the next: errors are recorded on
  its :class:`CandidateOutcome` and processing moves on.
- A debugger that dies half-way still yields its partial artifacts, and those
  still go through archive and retention.
- Never fail a run because the run manifest could not be written.
"""

from __future__ import annotations

import logging
import platform
import subprocess
import tarfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from corecollect.domain.coredump import CoredumpCandidate, STEP_OK
from corecollect.io.fs import write_json_atomic
from corecollect.io.layout import run_manifest_path
from pipeline.archiver import Archiver
from pipeline.config import CollectorConfig
from pipeline.debug_script import SCRIPT_VERSION, script_file
from pipeline.demux import ArtifactDemux
from pipeline.models import CandidateOutcome, RunOptions
from pipeline.retention import apply_retention
from pipeline.session import SessionDriver
from tools.upload import upload_archive

logger = logging.getLogger(__name__)

Uploader = Callable[..., str]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _extract(
    candidate: CoredumpCandidate,
    outcome: CandidateOutcome,
    *,
    binary: Path,
    script: Path,
    output_dir: Path,
    driver: SessionDriver,
) -> None:
    demux = ArtifactDemux(candidate.name, output_dir)
    session = driver.open(binary, candidate, script)
    logger.debug("Debugger command: %s", session.command_str)
    lines = session.output_lines()
    try:
        demux.feed_all(lines)
    except (OSError, RuntimeError, subprocess.SubprocessError) as e:
        outcome.error = f"debugger session failed: {e}"
        print(f"  ⚠️ {outcome.error}")
    finally:
        lines.close()
        outcome.artifacts = sorted(demux.written)
        outcome.steps = list(demux.outcomes)
        outcome.debugger_exit_code = session.exit_code
        outcome.debugger_timed_out = session.timed_out

    missing = demux.missing_sections()
    if missing:
        print(f"  ⚠️ debugger output ended early; missing sections: {', '.join(missing)}")
    for step in outcome.steps:
        if step.status != STEP_OK:
            suffix = f" ({step.detail})" if step.detail else ""
            print(f"  {step.section}: {step.status}{suffix}")


def process_candidate(
    candidate: CoredumpCandidate,
    *,
    config: CollectorConfig,
    options: RunOptions,
    binary: Path,
    script: Path,
    driver: SessionDriver,
    archiver: Archiver,
    uploader: Uploader = upload_archive,
) -> CandidateOutcome:
    """Run the full pipeline for one candidate; never raises for per-candidate failures."""
    print(f"\nProcessing {candidate.path}")
    outcome = CandidateOutcome(candidate=candidate)
    output_dir = Path(config.output_dir)

    _extract(candidate, outcome, binary=binary, script=script, output_dir=output_dir, driver=driver)

    archive = options.archive
    if archive.mode is not None:
        try:
            outcome.archive_path = archiver.archive(archive, candidate, outcome.artifacts)
            print(f"  Archive written: {outcome.archive_path}")
        except (OSError, tarfile.TarError) as e:
            outcome.archive_error = str(e)
            print(f"  ⚠️ archive failed for {candidate.path}: {e}")

    if options.upload and outcome.archive_path is not None:
        try:
            outcome.uploaded_to = uploader(
                config.upload_url,
                outcome.archive_path,
                token=config.upload_token,
            )
            print(f"  Uploaded: {outcome.uploaded_to}")
        except (OSError, requests.RequestException) as e:
            outcome.upload_error = str(e)
            print(f"  ⚠️ upload failed for {outcome.archive_path}: {e}")

    outcome.deleted = apply_retention(
        options.retention,
        candidate,
        output_dir,
        archive_mode=archive.mode,
        archive_failed=outcome.archive_error is not None,
    )
    return outcome


def run_pipeline(
    candidates: Sequence[CoredumpCandidate],
    *,
    config: CollectorConfig,
    options: RunOptions,
    binary: Path,
    driver: SessionDriver,
    archiver: Optional[Archiver] = None,
    uploader: Uploader = upload_archive,
) -> List[CandidateOutcome]:
    """Process every candidate sequentially with one shared debug script file."""
    archiver = archiver or Archiver(config)
    outcomes: List[CandidateOutcome] = []
    with script_file(config.lock_registry_symbol) as script:
        for candidate in candidates:
            outcomes.append(
                process_candidate(
                    candidate,
                    config=config,
                    options=options,
                    binary=binary,
                    script=script,
                    driver=driver,
                    archiver=archiver,
                    uploader=uploader,
                )
            )
    return outcomes


def describe_plan(
    candidates: Sequence[CoredumpCandidate],
    *,
    binary: Path,
    driver: SessionDriver,
) -> List[str]:
    """Dry-run: the debugger command each candidate would get."""
    placeholder = Path("<debug-script>")
    lines: List[str] = []
    for candidate in candidates:
        session = driver.open(binary, candidate, placeholder)
        lines.append(session.command_str)
        print(f"  {candidate.path}")
        print(f"    Command : {session.command_str}")
    print("  (dry-run: not executing)")
    return lines


def run_exit_code(outcomes: Sequence[CandidateOutcome]) -> int:
    return 0 if any(o.completed for o in outcomes) else 1


def build_run_manifest(
    *,
    config: CollectorConfig,
    run_id: str,
    gdb_path: str,
    binary: Path,
    outcomes: Sequence[CandidateOutcome],
    options: RunOptions,
) -> Dict[str, Any]:
    return {
        "run_id": run_id,
        "generated_at": _now_iso(),
        "host": platform.node(),
        "debug_script_version": SCRIPT_VERSION,
        "gdb": gdb_path,
        "binary": str(binary),
        "output_dir": str(config.output_dir),
        "archive_mode": options.archive.mode,
        "candidates": [o.to_dict() for o in outcomes],
        "exit_code": run_exit_code(outcomes),
    }


def write_run_manifest(manifest: Dict[str, Any], *, config: CollectorConfig) -> Optional[Path]:
    """Best-effort: a manifest failure must not turn a good run into a failed one."""
    path = run_manifest_path(config.output_dir, config.archive_prefix, str(manifest["run_id"]))
    try:
        write_json_atomic(path, manifest)
    except OSError as e:
        logger.warning("Failed to write run manifest %s: %s", path, e)
        return None
    return path
