"""pipeline.wiring

This module is the **composition root** for the Python runtime.

"Composition root" means: the single place where we *assemble* the running
application from its building blocks:

- load ``.env`` and the layered YAML configuration
- configure logging
- build the session driver / archiver around one immutable config

Keeping this wiring in one place prevents configuration and dependency setup
from being duplicated across entrypoints (CLI, cron wrappers, tests).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from pipeline.archiver import Archiver
from pipeline.config import CollectorConfig, load_config
from pipeline.session import SessionDriver

ENV_PATH: Path = Path(".env")

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else (logging.ERROR if quiet else logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def build_config(*, config_file: Optional[Path] = None, dotenv_path: Path = ENV_PATH) -> CollectorConfig:
    """Load ``.env`` (never overriding the real environment) and the config layers."""
    if dotenv_path.is_file():
        load_dotenv(dotenv_path, override=False)
    return load_config(extra_path=config_file)


def build_session_driver(config: CollectorConfig, gdb_path: Optional[str]) -> SessionDriver:
    return SessionDriver(gdb_path, timeout_seconds=config.session_timeout_seconds)


def build_archiver(config: CollectorConfig) -> Archiver:
    return Archiver(config)
