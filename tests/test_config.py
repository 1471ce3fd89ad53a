import json
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from ralph_loop.config import AGENT_COMMAND_ENV, LoopSettings, load_paths, load_settings, save_settings


class ConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / ".opencode" / "ralph.json"
        self.env = patch.dict(os.environ, {}, clear=False)
        self.env.start()
        os.environ.pop(AGENT_COMMAND_ENV, None)

    def tearDown(self) -> None:
        self.env.stop()
        self.temp_dir.cleanup()

    def test_missing_file_gives_defaults(self) -> None:
        self.assertEqual(load_settings(self.path), LoopSettings())

    def test_round_trip(self) -> None:
        settings = LoopSettings(agent_command="agent", default_max_iterations=3, lock_timeout_s=1.5)
        save_settings(self.path, settings)
        self.assertEqual(load_settings(self.path), settings)

    def test_malformed_values_fall_back(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text(
            json.dumps({"agent_command": "", "default_max_iterations": 0, "lock_timeout_s": "soon"}),
            encoding="utf-8",
        )
        self.assertEqual(load_settings(self.path), LoopSettings())
        self.path.write_text("{oops", encoding="utf-8")
        self.assertEqual(load_settings(self.path), LoopSettings())

    def test_deeply_nested_file_falls_back(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{\"a\": " * 100000, encoding="utf-8")
        self.assertEqual(load_settings(self.path), LoopSettings())

    def test_default_lock_wait_covers_stale_threshold(self) -> None:
        settings = LoopSettings()
        self.assertGreaterEqual(settings.lock_timeout_s, settings.lock_stale_after_s)

    def test_env_overrides_agent_command(self) -> None:
        os.environ[AGENT_COMMAND_ENV] = "custom-agent"
        self.assertEqual(load_settings(self.path).agent_command, "custom-agent")

    def test_paths_default_to_cwd(self) -> None:
        self.assertEqual(load_paths().project_dir, Path.cwd())
        paths = load_paths(self.temp_dir.name)
        self.assertEqual(paths.state_path, Path(self.temp_dir.name) / ".opencode" / "ralph-state.json")


if __name__ == "__main__":
    unittest.main()
