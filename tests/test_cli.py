import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from typer.testing import CliRunner

from ralph_loop import cli
from ralph_loop.logging_config import reset_logging


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.project = Path(self.temp_dir.name)
        self.runner = CliRunner()

    def tearDown(self) -> None:
        reset_logging()
        self.temp_dir.cleanup()

    def _invoke(self, *args: str, input: str | None = None):
        return self.runner.invoke(
            cli.app, ["--project", str(self.project), "--log-level", "WARNING", *args], input=input
        )

    def _record(self) -> dict:
        path = self.project / ".opencode" / "ralph-state.json"
        return json.loads(path.read_text(encoding="utf-8"))

    def test_start_and_status(self) -> None:
        result = self._invoke("start", "fix the build", "--promise", "DONE", "--max-iterations", "4")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Ralph Loop STARTED.", result.output)
        record = self._record()
        self.assertTrue(record["active"])
        self.assertEqual(record["maxIterations"], 4)

        status = self._invoke("status", "--json")
        self.assertEqual(status.exit_code, 0, status.output)
        self.assertIn('"completionPromise": "DONE"', status.output)

        table = self._invoke("status")
        self.assertEqual(table.exit_code, 0, table.output)
        self.assertIn("0/4", table.output)

    def test_cancel(self) -> None:
        result = self._invoke("cancel")
        self.assertIn("No active Ralph Loop to cancel.", result.output)
        self._invoke("start", "fix")
        result = self._invoke("cancel")
        self.assertIn("Ralph Loop CANCELLED.", result.output)
        self.assertFalse(self._record()["active"])

    def test_idle_command_spawns_next_iteration(self) -> None:
        self._invoke("start", "fix", "--promise", "DONE")
        with patch("ralph_loop.launcher.subprocess.Popen") as popen:
            result = self._invoke("idle", "--output", "not yet")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("continue", result.output)
        self.assertEqual(popen.call_args.args[0], ["opencode", "run", "--prompt", "fix"])
        self.assertEqual(self._record()["iterations"], 1)

    def test_event_stream(self) -> None:
        self._invoke("start", "fix", "--promise", "DONE")
        lines = [
            json.dumps({"name": "chat.message", "payload": {"role": "assistant", "content": "DONE"}}),
            "not json",
            json.dumps({"name": "event", "payload": {"event": {"type": "session.idle"}}}),
        ]
        with patch("ralph_loop.launcher.subprocess.Popen") as popen:
            result = self._invoke("event", input="\n".join(lines) + "\n")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("ralph: complete", result.output)
        popen.assert_not_called()
        self.assertFalse(self._record()["active"])

    def test_idle_reports_storage_failure(self) -> None:
        self._invoke("start", "fix")
        with (
            patch("ralph_loop.state.StateStore.save", side_effect=OSError("disk full")),
            patch("ralph_loop.launcher.subprocess.Popen") as popen,
        ):
            result = self._invoke("idle")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Could not update loop state: disk full", result.output)
        self.assertNotIsInstance(result.exception, OSError)
        popen.assert_not_called()

    def test_init_writes_settings_used_by_start(self) -> None:
        result = self._invoke("init", "--agent-command", "my-agent", "--default-max-iterations", "3")
        self.assertEqual(result.exit_code, 0, result.output)
        settings = json.loads((self.project / ".opencode" / "ralph.json").read_text(encoding="utf-8"))
        self.assertEqual(settings["agent_command"], "my-agent")
        self._invoke("start", "fix")
        self.assertEqual(self._record()["maxIterations"], 3)

    def test_init_rejects_non_positive_default(self) -> None:
        result = self._invoke("init", "--default-max-iterations", "0")
        self.assertEqual(result.exit_code, 1)


if __name__ == "__main__":
    unittest.main()
