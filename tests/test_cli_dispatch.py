import contextlib
import io
import struct
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from cli.dispatch import apply_overrides, build_run_options, dispatch
from corecollect_cli import build_parser
from pipeline.config import CollectorConfig
from pipeline.models import CandidateOutcome
from tools.gdb import GdbInfo

GDB = GdbInfo(path="/usr/bin/gdb", version="GNU gdb (GDB) 14.2")


def write_fake_core(path: Path) -> Path:
    header = b"\x7fELF" + bytes([2, 1, 1]) + b"\x00" * 9 + struct.pack("<H", 4)
    path.write_bytes(header + b"\x00" * 64)
    return path


class TestArgParsing(unittest.TestCase):
    def test_archive_modes_are_mutually_exclusive(self) -> None:
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                build_parser().parse_args(["--tarball-coredumps", "--tarball-results"])
        self.assertEqual(2, ctx.exception.code)

    def test_defaults(self) -> None:
        args = build_parser().parse_args([])
        self.assertEqual([], args.coredumps)
        self.assertIsNone(args.archive_mode)
        self.assertFalse(args.latest)
        self.assertIsNone(args.pid)

    def test_archive_mode_values(self) -> None:
        self.assertEqual("coredump", build_parser().parse_args(["--tarball-coredumps"]).archive_mode)
        self.assertEqual("results", build_parser().parse_args(["--tarball-results"]).archive_mode)

    def test_overrides_are_last_layer(self) -> None:
        args = build_parser().parse_args(["--output-dir", "/x", "--gdb", "/g", "--timeout-seconds", "9"])
        cfg = apply_overrides(CollectorConfig(gdb="/other"), args)
        self.assertEqual(Path("/x"), cfg.output_dir)
        self.assertEqual("/g", cfg.gdb)
        self.assertEqual(9, cfg.session_timeout_seconds)

    def test_results_archive_named_per_dump_only_for_multi_dump_runs(self) -> None:
        args = build_parser().parse_args(["--tarball-results", "--delete-results"])
        self.assertFalse(build_run_options(args, run_id="R", candidate_count=1).archive.per_candidate_name)
        opts = build_run_options(args, run_id="R", candidate_count=3)
        self.assertTrue(opts.archive.per_candidate_name)
        self.assertTrue(opts.retention.delete_results)


class TestDispatch(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)
        self.out = self.root / "out"
        self.dumps = self.root / "dumps"
        self.dumps.mkdir()
        self.binary = self.root / "srv"
        self.binary.write_bytes(b"bin")
        self.config = CollectorConfig(
            coredumps=(str(self.dumps / "core*"),),
            output_dir=self.out,
            binary=str(self.binary),
            archive_prefix="cc",
            staging_settle_seconds=0,
        )
        self.parser = build_parser()

        patches = [
            mock.patch("cli.dispatch.find_capable_gdb", return_value=GDB),
            mock.patch("cli.dispatch.new_run_id", return_value="RID"),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    def tearDown(self) -> None:
        self._td.cleanup()

    def _dispatch(self, argv):
        args = self.parser.parse_args(argv)
        with contextlib.redirect_stdout(io.StringIO()) as out, contextlib.redirect_stderr(io.StringIO()):
            code = dispatch(args, parser=self.parser, config=self.config)
        return code, out.getvalue()

    def test_no_candidates_prints_usage_and_fails(self) -> None:
        (self.dumps / "core-notes.txt").write_text("not a dump", encoding="utf-8")
        code, out = self._dispatch([])
        self.assertEqual(2, code)
        self.assertIn("usage:", out)

    def test_no_candidates_verbose_lists_pattern_sources(self) -> None:
        sources = {"/etc/corecollect/config.yaml": ["/var/crash/core*"]}
        with mock.patch("cli.dispatch.coredump_sources", return_value=sources):
            code, out = self._dispatch(["--verbose"])
        self.assertEqual(2, code)
        self.assertIn("/etc/corecollect/config.yaml: /var/crash/core*", out)

    def test_no_candidates_quiet_skips_pattern_sources(self) -> None:
        with mock.patch("cli.dispatch.coredump_sources") as sources:
            code, _ = self._dispatch([])
        self.assertEqual(2, code)
        sources.assert_not_called()

    def test_run_without_debugger_is_fatal(self) -> None:
        write_fake_core(self.dumps / "core.1")
        with mock.patch("cli.dispatch.resolve_debugger", return_value=None), mock.patch(
            "cli.dispatch.run_pipeline"
        ) as run:
            with self.assertRaises(SystemExit):
                self._dispatch([])
        run.assert_not_called()

    def test_missing_binary_is_fatal(self) -> None:
        self.binary.unlink()
        with self.assertRaises(SystemExit):
            self._dispatch([])

    def test_upload_requires_archive_mode(self) -> None:
        with self.assertRaises(SystemExit):
            self._dispatch(["--upload"])

    def test_dry_run_does_not_process(self) -> None:
        write_fake_core(self.dumps / "core.1")
        with mock.patch("cli.dispatch.run_pipeline") as run:
            code, out = self._dispatch(["--dry-run"])
        run.assert_not_called()
        self.assertEqual(0, code)
        self.assertIn("core.1", out)
        self.assertIn("dry-run", out)

    def test_run_writes_manifest_and_returns_pipeline_status(self) -> None:
        core = write_fake_core(self.dumps / "core.1")

        def fake_run(candidates, **kwargs):
            return [CandidateOutcome(candidate=c, artifacts=[self.out / f"{c.name}-brief.txt"]) for c in candidates]

        with mock.patch("cli.dispatch.run_pipeline", side_effect=fake_run) as run:
            code, out = self._dispatch(["--tarball-results"])

        self.assertEqual(0, code)
        self.assertEqual([core.name], [c.name for c in run.call_args.args[0]])
        self.assertEqual("results", run.call_args.kwargs["options"].archive.mode)
        self.assertTrue((self.out / "cc-run-RID.json").is_file())

    def test_live_capture_declined_is_skipped(self) -> None:
        write_fake_core(self.dumps / "core.1")
        with mock.patch("cli.dispatch.confirm_live_capture", return_value=False), mock.patch(
            "cli.dispatch.capture_process"
        ) as capture, mock.patch("cli.dispatch.run_pipeline", return_value=[]) as run:
            code, _ = self._dispatch(["--pid", "42"])
        capture.assert_not_called()
        self.assertEqual(1, len(run.call_args.args[0]))
        self.assertEqual(1, code)

    def test_live_capture_with_yes_is_added_after_latest(self) -> None:
        write_fake_core(self.dumps / "core.1")
        write_fake_core(self.dumps / "core.2")

        def fake_capture(gdb_path, pid, target, **_kwargs):
            return write_fake_core(Path(target))

        with mock.patch("cli.dispatch.capture_process", side_effect=fake_capture), mock.patch(
            "cli.dispatch.run_pipeline", return_value=[]
        ) as run:
            self._dispatch(["--pid", "42", "--yes", "--latest"])

        names = [c.name for c in run.call_args.args[0]]
        self.assertEqual(2, len(names))
        self.assertEqual("core.srv.42.RID", names[-1])


if __name__ == "__main__":
    unittest.main()
