"""pipeline.debug_script

The fixed gdb command protocol fed to every debugger session.

The script is a gdb *Python* script. It is not user-editable at runtime: the
text below is the contract, versioned by :data:`SCRIPT_VERSION`. The only
input is the name of the lock-registry symbol to look for.

Output protocol (the only coupling point with :mod:`pipeline.demux`)
--------------------------------------------------------------------
For each section, in order ``thread1``, ``brief``, ``full``, ``locks``:

  !@!@!@! <section>.txt !@!@!@!        marker line, switches output file
  Signal: 11 (SIGSEGV)                 when $_siginfo is available
  ...section content...
  ?@?@?@? <section> <ok|skip|fail> ?@?@?@?

Sections go from cheapest / most useful (the faulting thread) to the most
expensive (every thread with locals), so partial output is still useful.
"""

from __future__ import annotations

import re
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

SCRIPT_VERSION = "3"

MARKER_TOKEN = "!@!@!@!"
STATUS_TOKEN = "?@?@?@?"

MARKER_RE = re.compile(r"!@!@!@! (\S+) !@!@!@!")
STATUS_RE = re.compile(r"\?@\?@\?@\? (\S+) (ok|skip|fail)(?: (.*?))? \?@\?@\?@\?")


def marker_line(section: str) -> str:
    suffix = section if section.endswith(".txt") else f"{section}.txt"
    return f"{MARKER_TOKEN} {suffix} {MARKER_TOKEN}"


def status_line(section: str, status: str, detail: Optional[str] = None) -> str:
    body = f"{section} {status}"
    if detail:
        body = f"{body} {detail}"
    return f"{STATUS_TOKEN} {body} {STATUS_TOKEN}"


def parse_marker(line: str) -> Optional[str]:
    m = MARKER_RE.search(line)
    return m.group(1) if m else None


def parse_status(line: str) -> Optional[Tuple[str, str, Optional[str]]]:
    m = STATUS_RE.search(line)
    if not m:
        return None
    return m.group(1), m.group(2), m.group(3) or None


_GDB_SCRIPT = r'''# corecollect debug script v@VERSION@ (generated, do not edit)
import signal

import gdb

LOCK_REGISTRY_SYMBOL = @LOCK_SYMBOL@
MAX_LOCK_ENTRIES = 100000


def emit_marker(section):
    gdb.write("!@!@!@! %s.txt !@!@!@!\n" % section)


def emit_status(section, status, detail=""):
    detail = " ".join(str(detail).split())
    if detail:
        gdb.write("?@?@?@? %s %s %s ?@?@?@?\n" % (section, status, detail))
    else:
        gdb.write("?@?@?@? %s %s ?@?@?@?\n" % (section, status))
    gdb.flush()


def emit_signal_info():
    try:
        signo = int(gdb.parse_and_eval("$_siginfo")["si_signo"])
    except (gdb.error, RuntimeError):
        return
    try:
        name = signal.Signals(signo).name
    except ValueError:
        name = "unknown"
    gdb.write("Signal: %d (%s)\n" % (signo, name))


def collect_thread1():
    try:
        gdb.execute("thread 1", to_string=True)
    except gdb.error:
        return "skip", "no thread 1"
    gdb.execute("bt full")
    return "ok", ""


def collect_brief():
    if not gdb.selected_inferior().threads():
        return "skip", "no threads"
    gdb.execute("thread apply all bt")
    return "ok", ""


def collect_full():
    if not gdb.selected_inferior().threads():
        return "skip", "no threads"
    gdb.execute("thread apply all bt full")
    return "ok", ""


def lookup_lock_registry():
    sym = gdb.lookup_global_symbol(LOCK_REGISTRY_SYMBOL)
    if sym is None:
        sym = gdb.lookup_static_symbol(LOCK_REGISTRY_SYMBOL)
    if sym is None:
        sym = gdb.lookup_symbol(LOCK_REGISTRY_SYMBOL)[0]
    return sym


def has_field(value, name):
    try:
        return any(f.name == name for f in value.type.strip_typedefs().fields())
    except TypeError:
        return False


def walk_lock_registry(value):
    count = 0
    code = value.type.strip_typedefs().code
    if code == gdb.TYPE_CODE_ARRAY:
        lo, hi = value.type.strip_typedefs().range()
        for i in range(lo, hi + 1):
            gdb.write("[%d] %s\n" % (i, value[i]))
            count += 1
        return count

    node = value
    if code == gdb.TYPE_CODE_STRUCT and has_field(value, "head"):
        node = value["head"]
    while count < MAX_LOCK_ENTRIES:
        if node.type.strip_typedefs().code == gdb.TYPE_CODE_PTR:
            if int(node) == 0:
                break
            node = node.dereference()
        gdb.write("%s\n" % node)
        count += 1
        if not has_field(node, "next"):
            break
        node = node["next"]
    return count


def collect_locks():
    sym = lookup_lock_registry()
    if sym is None:
        return "skip", "symbol %s not found" % LOCK_REGISTRY_SYMBOL
    entries = walk_lock_registry(sym.value())
    return "ok", "%d entries" % entries


COLLECTORS = (
    ("thread1", collect_thread1),
    ("brief", collect_brief),
    ("full", collect_full),
    ("locks", collect_locks),
)


def main():
    for command in ("set pagination off", "set confirm off", "set width 0", "set print pretty on"):
        gdb.execute(command)
    for section, collect in COLLECTORS:
        emit_marker(section)
        emit_signal_info()
        try:
            status, detail = collect()
        except (gdb.error, RuntimeError) as e:
            status, detail = "fail", e
        gdb.flush()
        emit_status(section, status, detail)


main()
'''


def render_script(lock_registry_symbol: str = "lock_registry") -> str:
    """Return the gdb Python script text for one session."""
    return _GDB_SCRIPT.replace("@VERSION@", SCRIPT_VERSION).replace(
        "@LOCK_SYMBOL@", repr(str(lock_registry_symbol))
    )


@contextmanager
def script_file(lock_registry_symbol: str = "lock_registry") -> Iterator[Path]:
    """Write the script to a temp file for ``gdb -x`` and remove it afterwards."""
    with tempfile.NamedTemporaryFile(
        "w", prefix="corecollect-", suffix=".py", encoding="utf-8", delete=False
    ) as f:
        f.write(render_script(lock_registry_symbol))
        path = Path(f.name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)

