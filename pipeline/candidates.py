"""pipeline.candidates

Coredump candidate discovery and validation.

Input tokens are glob patterns or literal paths coming from configuration
layers and/or the command line. Patterns are expected to be over-inclusive
(``/tmp/core*`` also matches ``/tmp/core-notes.txt``), so anything that is not
a regular file carrying a coredump header is dropped without complaint.

Pipeline:
  tokens -> expand -> validate (regular file + ELF ET_CORE header)
         -> sort + de-dup -> optional latest selection (+ live capture)
"""

from __future__ import annotations

import glob
import logging
import os
import struct
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from corecollect.domain.coredump import CoredumpCandidate

logger = logging.getLogger(__name__)

# Enough for the ELF identification block plus e_type.
SNIFF_BYTES = 32

_ELF_MAGIC = b"\x7fELF"
_EI_DATA = 5
_E_TYPE_OFFSET = 16
ET_CORE = 4


def merge_tokens(
    configured: Sequence[str],
    supplied: Sequence[str],
    *,
    append: bool = False,
) -> List[str]:
    """Supplied tokens replace the configured list unless ``append`` is set."""
    if not supplied:
        return list(configured)
    if append:
        out = list(configured)
        out.extend(t for t in supplied if t not in out)
        return out
    return list(supplied)


def expand_token(token: str) -> List[Path]:
    """Resolve one token into zero or more absolute paths."""
    t = os.path.expanduser(str(token).strip())
    if not t:
        return []
    if glob.has_magic(t):
        return [Path(os.path.abspath(p)) for p in sorted(glob.glob(t))]
    return [Path(os.path.abspath(t))]


def is_coredump_header(header: bytes) -> bool:
    """Classify a file prefix: ELF with ``e_type == ET_CORE``, either byte order."""
    if len(header) < _E_TYPE_OFFSET + 2 or header[:4] != _ELF_MAGIC:
        return False
    ei_data = header[_EI_DATA]
    if ei_data == 1:
        e_type = struct.unpack_from("<H", header, _E_TYPE_OFFSET)[0]
    elif ei_data == 2:
        e_type = struct.unpack_from(">H", header, _E_TYPE_OFFSET)[0]
    else:
        return False
    return e_type == ET_CORE


def is_coredump(path: Path) -> bool:
    try:
        with Path(path).open("rb") as f:
            header = f.read(SNIFF_BYTES)
    except OSError:
        return False
    return is_coredump_header(header)


def validate_candidate(path: Path) -> Optional[CoredumpCandidate]:
    """Return a validated candidate, or None if ``path`` is not a usable dump."""
    p = Path(path)
    if not p.is_file():
        return None
    if not is_coredump(p):
        logger.debug("Skipping %s: not a coredump", p)
        return None
    try:
        mtime = p.stat().st_mtime
    except OSError:
        return None
    return CoredumpCandidate(path=p, mtime=mtime, validated=True)


def resolve_candidates(tokens: Iterable[str]) -> List[CoredumpCandidate]:
    """Expand, validate, sort and de-duplicate candidate tokens."""
    seen: set[Path] = set()
    paths: List[Path] = []
    for token in tokens:
        for p in expand_token(token):
            if p not in seen:
                seen.add(p)
                paths.append(p)

    out: List[CoredumpCandidate] = []
    for p in sorted(paths):
        cand = validate_candidate(p)
        if cand is not None:
            out.append(cand)
    return out


def select_latest(candidates: Sequence[CoredumpCandidate]) -> List[CoredumpCandidate]:
    """Collapse to the single most recently modified candidate."""
    if not candidates:
        return []
    return [max(candidates, key=lambda c: (c.mtime, str(c.path)))]


def apply_selection(
    candidates: Sequence[CoredumpCandidate],
    *,
    latest: bool = False,
    live_capture: Optional[CoredumpCandidate] = None,
) -> List[CoredumpCandidate]:
    """Apply latest-selection and add a live capture on top of it.

    The live capture is never the "latest pre-existing" dump, even when the
    configured globs happen to match where it was written.
    """
    pool = list(candidates)
    if live_capture is not None:
        pool = [c for c in pool if c.path != live_capture.path]

    selected = select_latest(pool) if latest else pool

    if live_capture is not None:
        selected = list(selected) + [live_capture]
    return selected
