"""pipeline.config

Layered configuration for the collector.

Why this exists
---------------
Paths such as the output directory, the debugger, and the target binary's
library layout used to be read from process-wide state at arbitrary points.
Here they are resolved *once* into an immutable :class:`CollectorConfig` that is
passed explicitly to every component.

Precedence (later overrides earlier, key by key)
------------------------------------------------
1. built-in defaults
2. system   ``/etc/corecollect/corecollect.yaml``
3. user     ``~/.config/corecollect/corecollect.yaml``
4. local    ``./corecollect.yaml``
5. ``--config FILE``
6. ``CORECOLLECT_*`` environment variables (``.env`` is loaded first)
7. command-line flags (applied by the CLI via :func:`dataclasses.replace`)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "corecollect.yaml"

CONFIG_LAYERS: Tuple[Tuple[str, Path], ...] = (
    ("system", Path("/etc/corecollect") / CONFIG_FILENAME),
    ("user", Path("~/.config/corecollect") / CONFIG_FILENAME),
    ("local", Path(CONFIG_FILENAME)),
)

ENV_KEYS: Dict[str, str] = {
    "CORECOLLECT_OUTPUT_DIR": "output_dir",
    "CORECOLLECT_GDB": "gdb",
    "CORECOLLECT_BINARY": "binary",
    "CORECOLLECT_UPLOAD_URL": "upload_url",
    "CORECOLLECT_UPLOAD_TOKEN": "upload_token",
}

DEFAULT_COREDUMP_GLOBS = ("/tmp/core*", "/var/crash/core*")


@dataclass(frozen=True)
class CollectorConfig:
    """Process-wide settings, read-only after startup."""

    coredumps: Tuple[str, ...] = DEFAULT_COREDUMP_GLOBS
    output_dir: Path = Path("/tmp")

    # Debugger + target layout
    gdb: Optional[str] = None
    binary: Optional[str] = None
    lib_dir: Optional[str] = None
    lib_prefix: Optional[str] = None
    support_lib_dir: Optional[str] = None
    config_dir: Optional[str] = None
    os_release: str = "/etc/os-release"
    lock_registry_symbol: str = "lock_registry"

    # Naming
    date_command: str = "date +%Y%m%dT%H%M%S"
    archive_prefix: str = "corecollect"

    # 0 = no timeout (a hung debugger blocks the run)
    session_timeout_seconds: int = 0
    staging_settle_seconds: float = 1.0

    upload_url: Optional[str] = None
    upload_token: Optional[str] = None

    @property
    def effective_lib_dir(self) -> Path:
        """Library directory on this host: configured, else lib64 when present."""
        if self.lib_dir:
            return Path(self.lib_dir)
        lib64 = Path("/usr/lib64")
        return lib64 if lib64.is_dir() else Path("/usr/lib")


_FIELD_NAMES = {f.name for f in fields(CollectorConfig)}
_INT_FIELDS = {"session_timeout_seconds"}
_FLOAT_FIELDS = {"staging_settle_seconds"}


def _coerce(key: str, value: Any, *, source: str) -> Any:
    if key == "coredumps":
        if isinstance(value, str):
            return (value,)
        if isinstance(value, (list, tuple)):
            return tuple(str(v) for v in value if v is not None and str(v).strip())
        raise ValueError(f"{source}: 'coredumps' must be a string or a list of strings")
    if key == "output_dir":
        return Path(str(value)).expanduser()
    if key in _INT_FIELDS:
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{source}: '{key}' must be an integer, got {value!r}") from e
    if key in _FLOAT_FIELDS:
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{source}: '{key}' must be a number, got {value!r}") from e
    return None if value is None else str(value)


def load_yaml_layer(path: Path) -> Dict[str, Any]:
    """Load one YAML config layer; a missing file is an empty layer."""
    import yaml

    p = Path(path).expanduser()
    if not p.is_file():
        return {}
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file {p}: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError(f"Config YAML must be a mapping/object at top level: {p}")
    return raw


def merge_layers(layers: Sequence[Tuple[str, Mapping[str, Any]]]) -> Dict[str, Any]:
    """Merge ``(source, mapping)`` pairs; later sources win key by key."""
    merged: Dict[str, Any] = {}
    for source, layer in layers:
        for key, value in layer.items():
            if key not in _FIELD_NAMES:
                logger.warning("Ignoring unknown config key '%s' from %s", key, source)
                continue
            merged[key] = _coerce(key, value, source=source)
    return merged


def env_layer(env: Mapping[str, str]) -> Dict[str, Any]:
    return {field: env[var] for var, field in ENV_KEYS.items() if env.get(var)}


def coredump_sources(layer_paths: Sequence[Tuple[str, Path]] = CONFIG_LAYERS) -> Dict[str, List[str]]:
    """Which layer contributes which coredump patterns (for diagnostics)."""
    out: Dict[str, List[str]] = {}
    for source, path in layer_paths:
        layer = load_yaml_layer(path)
        if "coredumps" in layer:
            out[source] = list(_coerce("coredumps", layer["coredumps"], source=source))
    return out


def load_config(
    *,
    layer_paths: Sequence[Tuple[str, Path]] = CONFIG_LAYERS,
    extra_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> CollectorConfig:
    """Resolve the layered configuration into one immutable value."""
    layers: List[Tuple[str, Mapping[str, Any]]] = []
    for source, path in layer_paths:
        layers.append((f"{source} ({path})", load_yaml_layer(path)))

    if extra_path is not None:
        p = Path(extra_path).expanduser()
        if not p.is_file():
            raise FileNotFoundError(f"Config file not found: {p}")
        layers.append((f"--config ({p})", load_yaml_layer(p)))

    layers.append(("environment", env_layer(os.environ if env is None else env)))

    return CollectorConfig(**merge_layers(layers))
