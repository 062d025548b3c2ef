import io
import subprocess
import sys
import unittest
from pathlib import Path
from unittest import mock

from corecollect.domain.coredump import CoredumpCandidate
from pipeline.session import DebugSession, SessionDriver, build_gdb_command

CANDIDATE = CoredumpCandidate(path=Path("/tmp/core.1"), mtime=1.0, validated=True)


def _fake_proc(stdout_text: str, *, returncode: int = 0, running: bool = False) -> mock.MagicMock:
    proc = mock.MagicMock()
    proc.stdout = io.StringIO(stdout_text)
    proc.poll.return_value = None if running else returncode
    proc.wait.return_value = returncode
    return proc


class TestBuildCommand(unittest.TestCase):
    def test_batch_command_shape(self) -> None:
        cmd = build_gdb_command("/usr/bin/gdb", Path("/usr/sbin/srv"), Path("/tmp/core.1"), Path("/tmp/s.py"))
        self.assertEqual(
            ["/usr/bin/gdb", "-nx", "-batch", "-q", "-x", "/tmp/s.py", "/usr/sbin/srv", "/tmp/core.1"],
            cmd,
        )

    def test_driver_requires_validated_debugger(self) -> None:
        with self.assertRaises(ValueError):
            SessionDriver(None).open(Path("/usr/sbin/srv"), CANDIDATE, Path("/tmp/s.py"))


class TestDebugSession(unittest.TestCase):
    def test_streams_lines_and_records_exit_code(self) -> None:
        proc = _fake_proc("one\ntwo\n", returncode=0)
        with mock.patch("pipeline.session.subprocess.Popen", return_value=proc) as popen:
            session = SessionDriver("/usr/bin/gdb").open(Path("/usr/sbin/srv"), CANDIDATE, Path("/tmp/s.py"))
            lines = list(session.output_lines())

        self.assertEqual(["one", "two"], lines)
        self.assertEqual(0, session.exit_code)
        self.assertFalse(session.timed_out)
        kwargs = popen.call_args.kwargs
        self.assertEqual(subprocess.DEVNULL, kwargs["stderr"])
        self.assertEqual(subprocess.PIPE, kwargs["stdout"])

    def test_run_returns_the_line_iterator(self) -> None:
        proc = _fake_proc("!@!@!@! brief.txt !@!@!@!\n#0 main ()\n")
        with mock.patch("pipeline.session.subprocess.Popen", return_value=proc):
            lines = SessionDriver("/usr/bin/gdb").run(Path("/usr/sbin/srv"), CANDIDATE, Path("/tmp/s.py"))
            self.assertEqual(["!@!@!@! brief.txt !@!@!@!", "#0 main ()"], list(lines))

    def test_output_can_only_be_read_once(self) -> None:
        proc = _fake_proc("one\n")
        with mock.patch("pipeline.session.subprocess.Popen", return_value=proc):
            session = SessionDriver("/usr/bin/gdb").open(Path("/usr/sbin/srv"), CANDIDATE, Path("/tmp/s.py"))
            list(session.output_lines())
            with self.assertRaises(RuntimeError):
                list(session.output_lines())

    def test_closing_early_kills_debugger(self) -> None:
        proc = _fake_proc("one\ntwo\nthree\n", returncode=-9, running=True)
        with mock.patch("pipeline.session.subprocess.Popen", return_value=proc):
            session = SessionDriver("/usr/bin/gdb").open(Path("/usr/sbin/srv"), CANDIDATE, Path("/tmp/s.py"))
            lines = session.output_lines()
            self.assertEqual("one", next(lines))
            lines.close()

        proc.kill.assert_called_once()
        self.assertEqual(-9, session.exit_code)

    def test_nonzero_exit_is_recorded_not_raised(self) -> None:
        proc = _fake_proc("partial\n", returncode=1)
        with mock.patch("pipeline.session.subprocess.Popen", return_value=proc):
            session = SessionDriver("/usr/bin/gdb").open(Path("/usr/sbin/srv"), CANDIDATE, Path("/tmp/s.py"))
            with self.assertLogs("pipeline.session", level="WARNING"):
                self.assertEqual(["partial"], list(session.output_lines()))
        self.assertEqual(1, session.exit_code)

    def test_timeout_starts_timer(self) -> None:
        proc = _fake_proc("one\n")
        with mock.patch("pipeline.session.subprocess.Popen", return_value=proc), mock.patch(
            "pipeline.session.threading.Timer"
        ) as timer_cls:
            driver = SessionDriver("/usr/bin/gdb", timeout_seconds=5)
            session = driver.open(Path("/usr/sbin/srv"), CANDIDATE, Path("/tmp/s.py"))
            list(session.output_lines())

        self.assertEqual(5, timer_cls.call_args.args[0])
        timer_cls.return_value.start.assert_called_once()
        timer_cls.return_value.cancel.assert_called_once()

    def test_timeout_kills_a_hung_debugger(self) -> None:
        # Stand-in for a gdb that prints one line and then hangs.
        session = DebugSession(
            command=[sys.executable, "-c", "import time; print('a', flush=True); time.sleep(30)"],
            target_binary=Path("/usr/sbin/srv"),
            dump_file=CANDIDATE,
            timeout_seconds=1,
        )

        with self.assertLogs("pipeline.session", level="WARNING"):
            lines = list(session.output_lines())

        self.assertEqual(["a"], lines)
        self.assertTrue(session.timed_out)
        self.assertIsNotNone(session.exit_code)
        self.assertNotEqual(0, session.exit_code)


if __name__ == "__main__":
    unittest.main()
