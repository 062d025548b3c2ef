from __future__ import annotations

from datetime import datetime
from unittest import mock

from pipeline.identifiers import new_run_id, timestamp_from_command
from tools.core_cmd import CmdResult


def _result(code: int, stdout: str) -> CmdResult:
    return CmdResult(exit_code=code, elapsed_seconds=0.0, command_str="date", stdout=stdout, stderr="")


def test_timestamp_uses_first_line_of_command_output() -> None:
    with mock.patch("pipeline.identifiers.run_cmd", return_value=_result(0, "20260101T000000\nextra\n")) as run:
        assert timestamp_from_command("date +%Y%m%dT%H%M%S") == "20260101T000000"
    assert run.call_args.args[0] == ["date", "+%Y%m%dT%H%M%S"]


def test_timestamp_falls_back_when_command_fails() -> None:
    now = datetime(2026, 3, 4, 5, 6, 7)
    with mock.patch("pipeline.identifiers.run_cmd", return_value=_result(1, "")):
        assert timestamp_from_command("date", now=now) == "20260304T050607"


def test_timestamp_falls_back_when_command_missing() -> None:
    now = datetime(2026, 3, 4, 5, 6, 7)
    with mock.patch("pipeline.identifiers.run_cmd", side_effect=FileNotFoundError("date")):
        assert timestamp_from_command("date", now=now) == "20260304T050607"


def test_unique_id_is_used_and_sanitized() -> None:
    with mock.patch("pipeline.identifiers.run_cmd") as run:
        assert new_run_id("date", "ticket:42") == "ticket-42"
        assert new_run_id("date", "team/ticket:42") == "team-ticket-42"
    run.assert_not_called()


def test_run_id_from_date_command_is_sanitized() -> None:
    with mock.patch("pipeline.identifiers.run_cmd", return_value=_result(0, "2026-01-01T00:00:00\n")):
        assert new_run_id("date") == "2026-01-01T00-00-00"
