from __future__ import annotations

import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


class ConfigEnvLoadingTests(unittest.TestCase):
    def _run(self, code: str, ens_env_file: str) -> subprocess.CompletedProcess[str]:
        root = Path(__file__).resolve().parents[1]
        env = os.environ.copy()
        env["ENS_ENV_FILE"] = ens_env_file
        return subprocess.run(
            [sys.executable, "-c", code],
            cwd=str(root),
            env=env,
            capture_output=True,
            text=True,
        )

    def test_missing_ens_env_file_fails_fast(self) -> None:
        result = self._run("import config; print('ok')", "data/__definitely_missing_env_for_test__.env")
        self.assertNotEqual(result.returncode, 0)
        details = (result.stdout + "\n" + result.stderr).lower()
        self.assertIn("ens_env_file", details)
        self.assertIn("does not exist", details)

    def test_directory_ens_env_file_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            result = self._run("import config; print('ok')", tmpdir)
        self.assertNotEqual(result.returncode, 0)
        self.assertIn("is not a file", (result.stdout + "\n" + result.stderr).lower())

    def test_name_and_state_settings_are_loaded_from_env(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            env_path = Path(tmpdir) / "ens.env"
            env_path.write_text(
                "\n".join(
                    [
                        "ENS_NAME_TLDS= ETH, .test ,eth",
                        "ENS_NAME_MIN_LABEL_LENGTH=1",
                        "ENS_AUTO_SAVE=off",
                        "ENS_STATE_FILE=custom/state.json",
                    ]
                )
                + "\n",
                encoding="utf-8",
            )
            result = self._run(
                (
                    "import config; "
                    "print(f\"{','.join(config.ENS_NAME_TLDS)}|{config.ENS_NAME_MIN_LABEL_LENGTH}|"
                    "{config.ENS_AUTO_SAVE}|{config.ENS_STATE_FILE}\")"
                ),
                str(env_path),
            )
        self.assertEqual(result.returncode, 0, msg=result.stderr)
        self.assertEqual(result.stdout.strip(), "eth,test|1|False|custom/state.json")


if __name__ == "__main__":
    unittest.main()
