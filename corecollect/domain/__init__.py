"""corecollect.domain

Domain objects that form the *contract* between pipeline stages.

Key idea
--------
The debugger produces one interleaved text stream. Everything downstream of the
session driver (demux, archiver, retention, manifests) talks in terms of the
small vocabulary defined here instead of raw paths and strings.
"""

from __future__ import annotations

from .coredump import (
    ARTIFACT_SECTIONS,
    STEP_FAIL,
    STEP_OK,
    STEP_SKIP,
    ArtifactSection,
    CoredumpCandidate,
    StepOutcome,
)

__all__ = [
    "ARTIFACT_SECTIONS",
    "STEP_FAIL",
    "STEP_OK",
    "STEP_SKIP",
    "ArtifactSection",
    "CoredumpCandidate",
    "StepOutcome",
]
