from __future__ import annotations

import json
import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from housie.utils.config import as_bool, default_config_file, get_config_value, load_config
from housie.utils.logger import configure_logging, resolve_log_path


class ConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = Path(self.tmp.name) / "housie.conf"
        self.path.write_text(json.dumps({
            "game": {"auto_play_interval_sec": 3.0},
            "server": {"host": "0.0.0.0", "port": 3001},
        }))

    def test_file_values(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config(self.path)
        self.assertEqual(get_config_value(config, "game.auto_play_interval_sec"), 3.0)
        self.assertEqual(get_config_value(config, "server.port"), 3001)

    def test_environment_overrides_file(self) -> None:
        env = {"GAME_AUTO_PLAY_INTERVAL_SEC": "1.5", "SERVER_PORT": "4000", "APP_SEED_DEMO": "yes"}
        with mock.patch.dict(os.environ, env, clear=True):
            config = load_config(self.path)
        self.assertEqual(get_config_value(config, "game.auto_play_interval_sec"), "1.5")
        self.assertEqual(get_config_value(config, "server.port"), "4000")
        self.assertEqual(get_config_value(config, "server.host"), "0.0.0.0")
        self.assertTrue(as_bool(get_config_value(config, "app.seed_demo")))

    def test_missing_file_uses_environment_only(self) -> None:
        with mock.patch.dict(os.environ, {"SERVER_HOST": "127.0.0.1"}, clear=True):
            config = load_config(Path(self.tmp.name) / "absent.conf")
        self.assertEqual(config, {"server": {"host": "127.0.0.1"}})

    def test_default_file_comes_from_environment_or_working_directory(self) -> None:
        with mock.patch.dict(os.environ, {"HOUSIE_CONFIG": str(self.path)}, clear=True):
            self.assertEqual(default_config_file(), self.path)
            config = load_config()
        self.assertEqual(get_config_value(config, "server.port"), 3001)

        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(default_config_file(), Path.cwd() / "config" / "housie.conf")

    def test_log_settings_override(self) -> None:
        with mock.patch.dict(os.environ, {"LOG_LEVEL": "WARNING", "LOG_FILE": "-"}, clear=True):
            config = load_config(self.path)
        self.assertEqual(config["logging"], {"level": "WARNING", "file": "-"})

    def test_get_config_value_default(self) -> None:
        config = {"server": {"port": 1}}
        self.assertEqual(get_config_value(config, "server.host", "localhost"), "localhost")
        self.assertEqual(get_config_value(config, "server.port.deep", 7), 7)

    def test_as_bool(self) -> None:
        for value in ("1", "true", "YES", " on ", True):
            self.assertTrue(as_bool(value))
        for value in ("0", "false", "", None, False):
            self.assertFalse(as_bool(value))


class LoggingSetupTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.addCleanup(configure_logging, None, "-")

    def file_handlers(self):
        return [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]

    def test_log_path_resolution(self) -> None:
        self.assertIsNone(resolve_log_path("-"))
        self.assertEqual(resolve_log_path(None), Path.cwd() / "housie.log")
        self.assertEqual(resolve_log_path("logs/app.log"), Path.cwd() / "logs" / "app.log")
        absolute = Path(self.tmp.name) / "x.log"
        self.assertEqual(resolve_log_path(str(absolute)), absolute)

    def test_configure_replaces_handlers(self) -> None:
        log_file = Path(self.tmp.name) / "nested" / "housie.log"
        configure_logging("warning", str(log_file))
        configure_logging("warning", str(log_file))

        handlers = [h for h in self.file_handlers() if Path(h.baseFilename) == log_file]
        self.assertEqual(len(handlers), 1)
        self.assertEqual(logging.getLogger().level, logging.WARNING)
        logging.getLogger("housie.test").warning("written")
        handlers[0].flush()
        self.assertIn("written", log_file.read_text())

        configure_logging("info", "-")
        self.assertEqual([h for h in self.file_handlers() if Path(h.baseFilename) == log_file], [])
        self.assertEqual(logging.getLogger().level, logging.INFO)


if __name__ == "__main__":
    unittest.main()
