"""pipeline.identifiers

Run identifier helpers.

Every archive and run manifest produced by one invocation carries the same
run id, so a multi-dump run yields a recognisable set of results. The id is
either supplied by the caller (``--id``) or derived once from the configured
date command.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from datetime import datetime
from typing import Optional

from corecollect.io.layout import sanitize_dump_name
from tools.core_cmd import run_cmd

__all__ = [
    "FALLBACK_DATE_FORMAT",
    "new_run_id",
    "timestamp_from_command",
]

logger = logging.getLogger(__name__)

FALLBACK_DATE_FORMAT = "%Y%m%dT%H%M%S"


def timestamp_from_command(date_command: str, *, now: Optional[datetime] = None) -> str:
    """Run the configured date command and return its first output line.

    Falls back to a local timestamp when the command is missing, fails or
    prints nothing.
    """
    try:
        res = run_cmd(shlex.split(date_command), timeout_seconds=10)
    except (OSError, ValueError, subprocess.TimeoutExpired) as e:
        logger.warning("Date command %r could not run (%s); using local time", date_command, e)
        res = None

    if res is not None and res.ok and res.stdout.strip():
        return res.stdout.strip().splitlines()[0]

    if res is not None:
        logger.warning("Date command %r failed (exit %s); using local time", date_command, res.exit_code)
    return (now or datetime.now()).strftime(FALLBACK_DATE_FORMAT)


def new_run_id(date_command: str, unique_id: Optional[str] = None) -> str:
    """Return the id used in every archive name of this invocation.

    A caller-supplied id is used verbatim; only characters forbidden in file
    names are rewritten.
    """
    if unique_id:
        return sanitize_dump_name(unique_id)
    return sanitize_dump_name(timestamp_from_command(date_command))
