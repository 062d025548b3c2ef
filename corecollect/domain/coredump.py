"""corecollect.domain.coredump

Canonical representation of a coredump moving through the pipeline.

A candidate starts life as a raw token (glob or literal path), is pruned if it
is not a readable coredump, and is immutable once validated. The session
driver and everything after it only ever read it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

# Fixed artifact kinds, in the order the debug script emits them.
ARTIFACT_SECTIONS = ("thread1", "brief", "full", "locks")

STEP_OK = "ok"
STEP_SKIP = "skip"
STEP_FAIL = "fail"

_STEP_STATUSES = {STEP_OK, STEP_SKIP, STEP_FAIL}


@dataclass(frozen=True)
class CoredumpCandidate:
    """One coredump file selected for processing."""

    path: Path
    mtime: float
    validated: bool = False

    @property
    def name(self) -> str:
        return self.path.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "mtime": self.mtime,
            "validated": self.validated,
        }


@dataclass(frozen=True)
class ArtifactSection:
    """A named section of debugger output and the file it is written to."""

    marker: str
    output_path: Path

    @property
    def known(self) -> bool:
        return self.marker in ARTIFACT_SECTIONS


@dataclass(frozen=True)
class StepOutcome:
    """Result of one collection step in the debug script.

    ``ok``   - the step ran and produced output
    ``skip`` - the capability is not available (e.g. no lock registry symbol)
    ``fail`` - the step was attempted and the debugger raised an error
    """

    section: str
    status: str
    detail: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status not in _STEP_STATUSES:
            raise ValueError(f"Unknown step status '{self.status}'. Valid: {sorted(_STEP_STATUSES)}")

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"section": self.section, "status": self.status}
        if self.detail:
            out["detail"] = self.detail
        return out
