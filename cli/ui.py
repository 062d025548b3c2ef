from __future__ import annotations

from typing import Callable, Iterable


def _prompt_yes_no(prompt: str, *, default: bool = False, input_fn: Callable[[str], str] = input) -> bool:
    """Prompt for a yes/no question."""
    suffix = "Y/n" if default else "y/N"
    while True:
        try:
            raw = input_fn(f"{prompt} ({suffix}): ").strip().lower()
        except EOFError:
            # stdin closed (cron, pipes): fall back to the default answer.
            return default
        if not raw:
            return default
        if raw in {"y", "yes"}:
            return True
        if raw in {"n", "no"}:
            return False
        print("Please enter y or n.")


def confirm_live_capture(pid: int, *, input_fn: Callable[[str], str] = input) -> bool:
    """Ask before stopping a running process to snapshot it."""
    print(f"\n⚠️ Process {pid} will be stopped while its memory is written to disk.")
    return _prompt_yes_no(f"Capture a coredump of pid {pid} now?", default=False, input_fn=input_fn)


def print_summary(rows: Iterable[tuple[str, str]]) -> None:
    """Print aligned ``label : value`` lines."""
    items = list(rows)
    if not items:
        return
    width = max(len(label) for label, _ in items)
    for label, value in items:
        print(f"  {label.ljust(width)} : {value}")
