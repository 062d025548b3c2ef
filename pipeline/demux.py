"""pipeline.demux

Split the debugger's single output stream into per-section artifact files.

Rules
-----
* Exactly one destination is open at a time. Before the first marker it is a
  discard destination: stray lines (gdb banners, warnings on stdout) are
  dropped.
* A marker line closes the current file, removes any file left at the new
  path by a previous run, and opens it fresh. The marker itself is not
  written.
* Step status lines are recorded as :class:`StepOutcome` values and never
  reach an artifact file.
* Every other line is written with ``echo -e`` style escape interpretation.
  Byte-exact output of earlier releases depends on this, so embedded escape
  sequences in debugger output are expanded rather than passed through.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, List, Optional, Set, Tuple, Union

from corecollect.domain.coredump import ARTIFACT_SECTIONS, StepOutcome
from corecollect.io.fs import unlink_if_exists
from corecollect.io.layout import artifact_section
from pipeline.debug_script import parse_marker, parse_status

logger = logging.getLogger(__name__)

_ESCAPE_RE = re.compile(
    r"\\(0[0-7]{0,3}|x[0-9a-fA-F]{1,2}|u[0-9a-fA-F]{1,4}|U[0-9a-fA-F]{1,8}|[\\abcefnrtvE])"
)

_SIMPLE_ESCAPES = {
    "\\": b"\\",
    "a": b"\a",
    "b": b"\b",
    "e": b"\x1b",
    "E": b"\x1b",
    "f": b"\f",
    "n": b"\n",
    "r": b"\r",
    "t": b"\t",
    "v": b"\v",
}


def _utf8(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


def interpret_escapes(text: str) -> Tuple[bytes, bool]:
    """Expand backslash escapes the way ``echo -e`` does, as raw bytes.

    ``\\0nnn`` and ``\\xHH`` produce a single byte; ``\\u``/``\\U`` produce the
    UTF-8 encoding of the code point. Returns ``(expanded, stop)``; ``stop``
    is True when ``\\c`` was seen, in which case nothing after it (including
    the trailing newline) is printed. Unknown escapes are left untouched.
    """
    out: List[bytes] = []
    pos = 0
    for m in _ESCAPE_RE.finditer(text):
        out.append(_utf8(text[pos : m.start()]))
        pos = m.end()
        esc = m.group(1)
        head = esc[0]
        if head == "c":
            return b"".join(out), True
        if head == "0":
            out.append(bytes([int(esc[1:] or "0", 8) & 0xFF]))
        elif head == "x":
            out.append(bytes([int(esc[1:], 16) & 0xFF]))
        elif head in "uU":
            out.append(chr(min(int(esc[1:], 16), 0x10FFFF)).encode("utf-8", errors="replace"))
        else:
            out.append(_SIMPLE_ESCAPES[head])
    out.append(_utf8(text[pos:]))
    return b"".join(out), False


class ArtifactDemux:
    """Route debugger output lines into ``<output_dir>/<dump>-<section>.txt`` files."""

    def __init__(
        self,
        dump_name: str,
        output_dir: Union[str, Path],
        *,
        announce: Callable[[str], None] = print,
    ) -> None:
        self.dump_name = dump_name
        self.output_dir = Path(output_dir)
        self.announce = announce
        self.written: Set[Path] = set()
        self.outcomes: List[StepOutcome] = []
        self.current_section: Optional[str] = None
        self._handle: Optional[BinaryIO] = None

    def _switch_to(self, marker: str) -> None:
        self._close_current()
        section = artifact_section(self.output_dir, self.dump_name, marker)
        if not section.known:
            logger.debug("Unexpected section marker '%s'; writing it anyway", marker)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        unlink_if_exists(section.output_path)
        self.announce(f"  creating {section.output_path}")
        self._handle = section.output_path.open("wb")
        self.current_section = section.marker
        self.written.add(section.output_path)

    def _close_current(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def feed(self, line: str) -> None:
        marker = parse_marker(line)
        if marker is not None:
            self._switch_to(marker)
            return

        status = parse_status(line)
        if status is not None:
            section, result, detail = status
            self.outcomes.append(StepOutcome(section=section, status=result, detail=detail))
            return

        if self._handle is None:
            return

        expanded, stop = interpret_escapes(line)
        self._handle.write(expanded if stop else expanded + b"\n")

    def clear_stale(self) -> None:
        """Remove artifacts a previous run left for this dump."""
        for s in ARTIFACT_SECTIONS:
            unlink_if_exists(artifact_section(self.output_dir, self.dump_name, s).output_path)

    def feed_all(self, lines: Iterable[str]) -> Set[Path]:
        self.clear_stale()
        try:
            for line in lines:
                self.feed(line)
        finally:
            self.close()
        return set(self.written)

    def close(self) -> None:
        self._close_current()
        self.current_section = None

    def missing_sections(self) -> List[str]:
        """Known sections that never got a marker (debugger died early)."""
        return [
            s
            for s in ARTIFACT_SECTIONS
            if artifact_section(self.output_dir, self.dump_name, s).output_path not in self.written
        ]


def demux(
    dump_name: str,
    output_dir: Union[str, Path],
    lines: Iterable[str],
    *,
    announce: Callable[[str], None] = print,
) -> Set[Path]:
    """Demultiplex ``lines`` and return the set of artifact files written."""
    return ArtifactDemux(dump_name, output_dir, announce=announce).feed_all(lines)
