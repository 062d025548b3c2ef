from __future__ import annotations

import argparse
import dataclasses
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional

from cli.ui import confirm_live_capture, print_summary
from corecollect.domain.coredump import CoredumpCandidate
from corecollect.io.layout import sanitize_dump_name
from pipeline.candidates import apply_selection, merge_tokens, resolve_candidates, validate_candidate
from pipeline.config import CollectorConfig, coredump_sources
from pipeline.identifiers import new_run_id
from pipeline.models import ArchiveOptions, RetentionOptions, RunOptions
from pipeline.orchestrator import (
    build_run_manifest,
    describe_plan,
    run_exit_code,
    run_pipeline,
    write_run_manifest,
)
from pipeline.wiring import build_archiver, build_session_driver
from tools.gdb import GdbInfo, find_capable_gdb
from tools.live_capture import capture_process


def apply_overrides(config: CollectorConfig, args: argparse.Namespace) -> CollectorConfig:
    """Command-line flags are the last configuration layer."""
    changes: Dict[str, Any] = {}
    if args.output_dir:
        changes["output_dir"] = Path(args.output_dir).expanduser()
    if args.gdb:
        changes["gdb"] = args.gdb
    if args.binary:
        changes["binary"] = args.binary
    if args.timeout_seconds is not None:
        changes["session_timeout_seconds"] = args.timeout_seconds
    return dataclasses.replace(config, **changes) if changes else config


def validate_output_dir(config: CollectorConfig) -> Path:
    out = Path(config.output_dir)
    try:
        out.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SystemExit(f"Output directory {out} cannot be created: {e}")
    if not os.access(str(out), os.W_OK):
        raise SystemExit(f"Output directory {out} is not writable.")
    return out


def resolve_debugger(config: CollectorConfig, *, dry_run: bool = False) -> Optional[GdbInfo]:
    """Find a gdb with embedded Python. A dry run only warns when there is none."""
    try:
        return find_capable_gdb(config.gdb)
    except (FileNotFoundError, RuntimeError) as e:
        if dry_run:
            print(f"⚠️ {e}")
            return None
        raise SystemExit(str(e))


def resolve_binary(config: CollectorConfig) -> Path:
    if not config.binary:
        raise SystemExit("No target binary configured. Pass --binary or set 'binary' in corecollect.yaml.")
    binary = Path(config.binary).expanduser()
    if not binary.is_file():
        raise SystemExit(f"Target binary not found: {binary}")
    return binary


def live_capture_candidate(
    args: argparse.Namespace,
    *,
    config: CollectorConfig,
    gdb: Optional[GdbInfo],
    binary: Path,
    run_id: str,
) -> Optional[CoredumpCandidate]:
    """Snapshot ``--pid`` (after confirmation) and return it as a candidate."""
    pid = args.pid
    if pid is None:
        return None
    if gdb is None:
        raise SystemExit("Live capture needs a debugger with Python support.")
    if not args.yes and not confirm_live_capture(pid):
        print("Live capture skipped.")
        return None

    target = Path(config.output_dir) / sanitize_dump_name(f"core.{binary.name}.{pid}.{run_id}")
    print(f"\nCapturing pid {pid} -> {target}")
    try:
        capture_process(gdb.path, pid, target, timeout_seconds=config.session_timeout_seconds)
    except (OSError, RuntimeError, ValueError, subprocess.SubprocessError) as e:
        print(f"⚠️ {e}")
        return None

    candidate = validate_candidate(target)
    if candidate is None:
        print(f"⚠️ Live capture {target} is not a usable coredump; ignoring it.")
    return candidate


def report_pattern_sources() -> None:
    """Show which config layer contributed which coredump patterns."""
    sources = coredump_sources()
    if not sources:
        print("  No config layer sets 'coredumps'; built-in defaults were used.")
        return
    for layer, patterns in sources.items():
        print(f"  {layer}: {', '.join(patterns)}")


def build_run_options(args: argparse.Namespace, *, run_id: str, candidate_count: int) -> RunOptions:
    return RunOptions(
        archive=ArchiveOptions(
            mode=args.archive_mode,
            run_id=run_id,
            include_config=args.include_config,
            per_candidate_name=candidate_count > 1,
        ),
        retention=RetentionOptions(
            delete_coredump=args.delete_coredumps,
            delete_results=args.delete_results,
        ),
        upload=args.upload,
        dry_run=args.dry_run,
    )


def dispatch(args: argparse.Namespace, *, parser: argparse.ArgumentParser, config: CollectorConfig) -> int:
    """Validate the environment, resolve candidates and run the pipeline.

    Returns the process exit code. Configuration problems raise SystemExit
    before any candidate is touched.
    """
    config = apply_overrides(config, args)
    validate_output_dir(config)
    gdb = resolve_debugger(config, dry_run=args.dry_run)
    binary = resolve_binary(config)

    if args.upload:
        if not args.archive_mode:
            raise SystemExit("--upload requires --tarball-coredumps or --tarball-results.")
        if not config.upload_url:
            raise SystemExit("--upload requires upload_url (config) or CORECOLLECT_UPLOAD_URL.")

    run_id = new_run_id(config.date_command, args.unique_id)

    live = None
    if not args.dry_run:
        live = live_capture_candidate(args, config=config, gdb=gdb, binary=binary, run_id=run_id)

    tokens = merge_tokens(config.coredumps, args.coredumps, append=args.append)
    candidates = apply_selection(resolve_candidates(tokens), latest=args.latest, live_capture=live)

    if not candidates:
        parser.print_usage()
        print(f"No coredumps found (searched: {', '.join(tokens) or '-'}).")
        if args.verbose:
            report_pattern_sources()
        return 2

    driver = build_session_driver(config, gdb.path if gdb else "gdb")

    if args.dry_run:
        print(f"\n🔎 Dry run: {len(candidates)} coredump(s)")
        describe_plan(candidates, binary=binary, driver=driver)
        return 0

    if gdb is None:
        raise SystemExit("No debugger with Python support; only --dry-run can run without one.")
    options = build_run_options(args, run_id=run_id, candidate_count=len(candidates))

    print(f"\n🚀 Processing {len(candidates)} coredump(s)")
    print_summary(
        [
            ("Run id", run_id),
            ("Debugger", f"{gdb.path} ({gdb.version})"),
            ("Binary", str(binary)),
            ("Output", str(config.output_dir)),
        ]
    )

    outcomes = run_pipeline(
        candidates,
        config=config,
        options=options,
        binary=binary,
        driver=driver,
        archiver=build_archiver(config),
    )

    manifest = build_run_manifest(
        config=config,
        run_id=run_id,
        gdb_path=gdb.path,
        binary=binary,
        outcomes=outcomes,
        options=options,
    )
    manifest_path = write_run_manifest(manifest, config=config)

    completed = sum(1 for o in outcomes if o.completed)
    code = run_exit_code(outcomes)
    if code == 0:
        print(f"\n✅ Processed {completed}/{len(outcomes)} coredump(s).")
    else:
        print(f"\n⚠️ No coredump was fully processed ({len(outcomes)} attempted).")
    if manifest_path is not None:
        print(f"  Run manifest: {manifest_path}")
    return code
