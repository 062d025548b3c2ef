import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from pipeline.config import CollectorConfig
from pipeline.wiring import build_archiver, build_config, build_session_driver, configure_logging


class TestWiring(unittest.TestCase):
    def test_dotenv_feeds_environment_layer(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            dotenv = Path(td) / ".env"
            dotenv.write_text("CORECOLLECT_GDB=/opt/gdb/bin/gdb\n", encoding="utf-8")
            with mock.patch.dict(os.environ, {}, clear=False):
                os.environ.pop("CORECOLLECT_GDB", None)
                cfg = build_config(dotenv_path=dotenv)
        self.assertEqual("/opt/gdb/bin/gdb", cfg.gdb)

    def test_real_environment_beats_dotenv(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            dotenv = Path(td) / ".env"
            dotenv.write_text("CORECOLLECT_GDB=/from/dotenv\n", encoding="utf-8")
            with mock.patch.dict(os.environ, {"CORECOLLECT_GDB": "/from/shell"}):
                cfg = build_config(dotenv_path=dotenv)
        self.assertEqual("/from/shell", cfg.gdb)

    def test_components_share_the_config(self) -> None:
        cfg = CollectorConfig(session_timeout_seconds=7)
        self.assertEqual(7, build_session_driver(cfg, "/usr/bin/gdb").timeout_seconds)
        self.assertIs(cfg, build_archiver(cfg).config)

    def test_configure_logging_levels(self) -> None:
        with mock.patch("pipeline.wiring.logging.basicConfig") as basic:
            configure_logging(verbose=True)
            self.assertEqual(logging.DEBUG, basic.call_args.kwargs["level"])
            configure_logging(quiet=True)
            self.assertEqual(logging.ERROR, basic.call_args.kwargs["level"])


if __name__ == "__main__":
    unittest.main()
