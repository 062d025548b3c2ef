"""pipeline.models

Lightweight data structures used across the pipeline.

Why this exists
---------------
The orchestrator passes a handful of per-invocation choices (archive mode,
retention flags, run id) to several components. Bundling them here keeps the
call signatures small and gives the run manifest one place to read from.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from corecollect.domain.coredump import CoredumpCandidate, StepOutcome

ARCHIVE_COREDUMP = "coredump"
ARCHIVE_RESULTS = "results"
ARCHIVE_MODES = (ARCHIVE_COREDUMP, ARCHIVE_RESULTS)


@dataclass(frozen=True)
class ArchiveOptions:
    """How (and whether) to archive each candidate.

    ``mode`` is None when no archive was requested. The CLI guarantees the two
    archive modes are never requested together.
    """

    mode: Optional[str] = None
    run_id: str = ""
    include_config: bool = False
    per_candidate_name: bool = False

    def __post_init__(self) -> None:
        if self.mode is not None and self.mode not in ARCHIVE_MODES:
            raise ValueError(f"Unknown archive mode '{self.mode}'. Valid: {list(ARCHIVE_MODES)}")


@dataclass(frozen=True)
class RetentionOptions:
    delete_coredump: bool = False
    delete_results: bool = False


@dataclass(frozen=True)
class RunOptions:
    """Everything chosen for one invocation besides the config."""

    archive: ArchiveOptions = field(default_factory=ArchiveOptions)
    retention: RetentionOptions = field(default_factory=RetentionOptions)
    upload: bool = False
    dry_run: bool = False


@dataclass
class SnapshotBundle:
    """Staging directory + member list for one archive."""

    staging_dir: Path
    root_name: str
    archive_path: Path
    members: List[Path] = field(default_factory=list)


@dataclass
class CandidateOutcome:
    """What happened to one candidate; feeds the exit code and run manifest."""

    candidate: CoredumpCandidate
    artifacts: List[Path] = field(default_factory=list)
    steps: List[StepOutcome] = field(default_factory=list)
    debugger_exit_code: Optional[int] = None
    debugger_timed_out: bool = False
    archive_path: Optional[Path] = None
    archive_error: Optional[str] = None
    uploaded_to: Optional[str] = None
    upload_error: Optional[str] = None
    deleted: List[Path] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        """Artifacts were produced and nothing requested afterwards failed."""
        return (
            self.error is None
            and bool(self.artifacts)
            and self.archive_error is None
            and self.upload_error is None
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coredump": self.candidate.to_dict(),
            "artifacts": [str(p) for p in sorted(self.artifacts)],
            "steps": [s.to_dict() for s in self.steps],
            "debugger_exit_code": self.debugger_exit_code,
            "debugger_timed_out": self.debugger_timed_out,
            "archive": str(self.archive_path) if self.archive_path else None,
            "archive_error": self.archive_error,
            "uploaded_to": self.uploaded_to,
            "upload_error": self.upload_error,
            "deleted": [str(p) for p in self.deleted],
            "error": self.error,
            "completed": self.completed,
        }
