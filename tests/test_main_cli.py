from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from utils.state_file import state_file_lock

ADDRESS_LOWER = "0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed"
ADDRESS_CHECKSUM = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


class MainCliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.state_path = os.path.join(self._tmp.name, "ens_entries.json")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, *args: str, auto_save: str = "true") -> subprocess.CompletedProcess[str]:
        root = Path(__file__).resolve().parents[1]
        env = os.environ.copy()
        env.pop("ENS_ENV_FILE", None)
        env["ENS_AUTO_SAVE"] = auto_save
        env["LOG_DIR"] = os.path.join(self._tmp.name, "logs")
        env["ENS_STATE_LOCK_TIMEOUT_SECONDS"] = "0.2"
        return subprocess.run(
            [sys.executable, "main.py", "--state-file", self.state_path, *args],
            cwd=str(root),
            env=env,
            capture_output=True,
            text=True,
        )

    def test_set_get_delete_flow(self) -> None:
        result = self._run("set", "1", "Foo.eth", ADDRESS_LOWER)
        self.assertEqual(result.returncode, 0, msg=result.stderr)
        self.assertEqual(json.loads(result.stdout), {"changed": True})

        result = self._run("set", "1", "foo.eth", ADDRESS_CHECKSUM)
        self.assertEqual(json.loads(result.stdout), {"changed": False})

        result = self._run("get", "1", "FOO.eth")
        self.assertEqual(result.returncode, 0, msg=result.stderr)
        self.assertEqual(
            json.loads(result.stdout),
            {"chain_id": "1", "ens_name": "foo.eth", "address": ADDRESS_CHECKSUM},
        )

        result = self._run("delete", "1", "foo.eth")
        self.assertEqual(json.loads(result.stdout), {"removed": True})

        result = self._run("get", "1", "foo.eth")
        self.assertEqual(result.returncode, 1)
        self.assertIsNone(json.loads(result.stdout))

        result = self._run("show")
        self.assertEqual(json.loads(result.stdout), {"ens_entries": {}})

    def test_unresolved_name_and_anonymous_show(self) -> None:
        result = self._run("set", "5", "bar.eth", auto_save="false")
        self.assertEqual(result.returncode, 0, msg=result.stderr)
        result = self._run("show")
        self.assertEqual(
            json.loads(result.stdout),
            {"ens_entries": {"5": {"bar.eth": {"chain_id": "5", "ens_name": "bar.eth", "address": None}}}},
        )
        result = self._run("show", "--anonymous")
        self.assertEqual(json.loads(result.stdout), {})

    def test_invalid_entry_exits_with_error(self) -> None:
        result = self._run("set", "abc", "foo.eth", ADDRESS_LOWER)
        self.assertEqual(result.returncode, 2)
        self.assertIn("Invalid ENS entry", result.stderr)
        self.assertFalse(os.path.exists(self.state_path))

    def test_clear(self) -> None:
        self._run("set", "1", "foo.eth", "null")
        result = self._run("clear")
        self.assertEqual(result.returncode, 0, msg=result.stderr)
        self.assertEqual(json.loads(result.stdout), {"ens_entries": {}})
        with open(self.state_path, "r", encoding="utf-8") as f:
            self.assertEqual(json.load(f)["ens_entries"], {})

    def test_corrupt_snapshot_exits_without_traceback(self) -> None:
        with open(self.state_path, "w", encoding="utf-8") as f:
            f.write("{not json")
        result = self._run("show")
        self.assertEqual(result.returncode, 3)
        self.assertEqual(result.stdout, "")
        self.assertIn("E_JSON_CORRUPT", result.stderr)
        self.assertNotIn("Traceback", result.stderr)
        with open(self.state_path, "r", encoding="utf-8") as f:
            self.assertEqual(f.read(), "{not json")

    def test_locked_snapshot_exits_without_traceback(self) -> None:
        self._run("set", "1", "foo.eth")
        with state_file_lock(self.state_path, timeout_seconds=0.5, poll_seconds=0.01):
            result = self._run("get", "1", "foo.eth")
        self.assertEqual(result.returncode, 3)
        self.assertIn("E_STATE_LOCKED", result.stderr)
        self.assertNotIn("Traceback", result.stderr)


if __name__ == "__main__":
    unittest.main()
