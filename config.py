"""Application configuration."""

import os
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv


def _load_dotenv_safe(dotenv_path: str | None = None, *, override: bool = False) -> None:
    """Load dotenv using UTF-8-SIG so BOM-prefixed files don't break first key parsing."""
    try:
        load_dotenv(dotenv_path=dotenv_path, override=override, encoding="utf-8-sig")
    except TypeError:
        # Older python-dotenv versions may not expose the `encoding` argument.
        load_dotenv(dotenv_path=dotenv_path, override=override)


# Load base environment first, then optional per-instance override env file.
_load_dotenv_safe()
_ENS_ENV_FILE = os.getenv("ENS_ENV_FILE", "").strip()
if _ENS_ENV_FILE:
    _ens_env_path = Path(_ENS_ENV_FILE).expanduser()
    if not _ens_env_path.is_absolute():
        _ens_env_path = (Path.cwd() / _ens_env_path).resolve()
    if not _ens_env_path.exists():
        raise FileNotFoundError(f"ENS_ENV_FILE does not exist: {_ens_env_path}")
    if not _ens_env_path.is_file():
        raise IsADirectoryError(f"ENS_ENV_FILE is not a file: {_ens_env_path}")
    try:
        _load_dotenv_safe(str(_ens_env_path), override=True)
    except (OSError, UnicodeError, ValueError) as exc:
        raise RuntimeError(f"Failed to load ENS_ENV_FILE '{_ens_env_path}': {exc}") from exc


def _parse_name_list(raw: str) -> Tuple[str, ...]:
    out: list[str] = []
    for chunk in str(raw or "").split(","):
        item = chunk.strip().strip(".").lower()
        if item and item not in out:
            out.append(item)
    return tuple(out)


ENS_STATE_FILE = os.getenv("ENS_STATE_FILE", os.path.join("data", "ens_entries.json"))
ENS_AUTO_SAVE = os.getenv("ENS_AUTO_SAVE", "true").strip().lower() in ("1", "true", "yes", "y", "on")
ENS_STATE_LOCK_TIMEOUT_SECONDS = max(0.05, float(os.getenv("ENS_STATE_LOCK_TIMEOUT_SECONDS", "2.0")))
ENS_STATE_LOCK_POLL_SECONDS = max(0.01, float(os.getenv("ENS_STATE_LOCK_POLL_SECONDS", "0.05")))
STATE_ATOMIC_REPLACE_RETRIES = max(0, int(os.getenv("STATE_ATOMIC_REPLACE_RETRIES", "8") or 8))
STATE_ATOMIC_REPLACE_BASE_DELAY_SECONDS = max(
    0.01,
    float(os.getenv("STATE_ATOMIC_REPLACE_BASE_DELAY_SECONDS", "0.03") or 0.03),
)

# Top-level domains accepted after normalization, and the minimum length of the
# label directly below them.
ENS_NAME_TLDS = _parse_name_list(os.getenv("ENS_NAME_TLDS", "eth,test")) or ("eth",)
ENS_NAME_MIN_LABEL_LENGTH = max(1, int(os.getenv("ENS_NAME_MIN_LABEL_LENGTH", "3")))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")
APP_LOG_FILE = os.path.join(LOG_DIR, "app.log")
