"""Shared helpers for safe state-file locking and atomic JSON snapshots."""

from __future__ import annotations

import errno
import json
import os
import tempfile
import time
from contextlib import contextmanager
from typing import Any, Iterator

import config

try:  # pragma: no cover - platform specific
    import msvcrt
except ImportError:  # pragma: no cover - platform specific
    msvcrt = None  # type: ignore[assignment]

try:  # pragma: no cover - platform specific
    import fcntl
except ImportError:  # pragma: no cover - platform specific
    fcntl = None  # type: ignore[assignment]

E_STATE_LOCKED = "E_STATE_LOCKED"
E_JSON_CORRUPT = "E_JSON_CORRUPT"

_TRANSIENT_REPLACE_WINERRORS = {5, 32, 33}
_TRANSIENT_REPLACE_ERRNOS = {errno.EACCES, errno.EBUSY, errno.EPERM}


class StateFileLockError(RuntimeError):
    """Raised when the state-file lock cannot be acquired in time."""

    code = E_STATE_LOCKED


class StateFileCorruptError(ValueError):
    """Raised when a snapshot file exists but does not hold valid JSON."""

    code = E_JSON_CORRUPT


def _ensure_lock_byte(handle: Any) -> None:
    # msvcrt locks byte ranges, so the lock file needs at least one byte.
    handle.seek(0, os.SEEK_END)
    if handle.tell() == 0:
        handle.write(b"0")
        handle.flush()
    handle.seek(0)


def _try_lock(handle: Any) -> None:
    if os.name == "nt" and msvcrt is not None:  # pragma: no cover - windows-only runtime path
        handle.seek(0)
        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError as exc:
            raise BlockingIOError(str(exc)) from exc
        return
    if fcntl is not None:  # pragma: no cover - unix-only runtime path
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as exc:
            raise BlockingIOError(str(exc)) from exc


def _unlock(handle: Any) -> None:
    if os.name == "nt" and msvcrt is not None:  # pragma: no cover - windows-only runtime path
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        return
    if fcntl is not None:  # pragma: no cover - unix-only runtime path
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


@contextmanager
def state_file_lock(
    target_path: str,
    *,
    timeout_seconds: float | None = None,
    poll_seconds: float | None = None,
) -> Iterator[None]:
    """Hold an inter-process lock on `<target_path>.lock` for the duration of the block."""

    lock_path = f"{target_path}.lock"
    os.makedirs(os.path.dirname(lock_path) or ".", exist_ok=True)
    if timeout_seconds is None:
        timeout_seconds = config.ENS_STATE_LOCK_TIMEOUT_SECONDS
    if poll_seconds is None:
        poll_seconds = config.ENS_STATE_LOCK_POLL_SECONDS
    deadline = time.monotonic() + max(0.05, float(timeout_seconds))
    poll = max(0.01, float(poll_seconds))

    with open(lock_path, "a+b") as handle:
        _ensure_lock_byte(handle)
        while True:
            try:
                _try_lock(handle)
                break
            except BlockingIOError as exc:
                if time.monotonic() >= deadline:
                    raise StateFileLockError(
                        f"{E_STATE_LOCKED}: state lock timeout path={target_path}"
                    ) from exc
                time.sleep(poll)
        try:
            yield
        finally:
            _unlock(handle)


def _replace_with_retries(tmp_path: str, target_path: str) -> None:
    retries = max(0, int(config.STATE_ATOMIC_REPLACE_RETRIES))
    base_delay = max(0.01, float(config.STATE_ATOMIC_REPLACE_BASE_DELAY_SECONDS))
    for attempt in range(retries + 1):
        try:
            os.replace(tmp_path, target_path)
            return
        except OSError as exc:
            winerror = int(getattr(exc, "winerror", 0) or 0)
            transient = winerror in _TRANSIENT_REPLACE_WINERRORS or exc.errno in _TRANSIENT_REPLACE_ERRNOS
            if not transient or attempt >= retries:
                raise
            time.sleep(base_delay * (1.5**attempt))


def atomic_write_json(path: str, payload: Any) -> None:
    """Write a sorted, indented UTF-8 JSON snapshot via temp file + fsync + replace."""

    target_path = str(path)
    state_dir = os.path.dirname(target_path) or "."
    os.makedirs(state_dir, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=f"{os.path.basename(target_path)}.", suffix=".tmp", dir=state_dir)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
            f.flush()
            os.fsync(f.fileno())
        _replace_with_retries(tmp_path, target_path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def write_json_atomic_locked(
    path: str,
    payload: Any,
    *,
    timeout_seconds: float | None = None,
    poll_seconds: float | None = None,
) -> None:
    with state_file_lock(path, timeout_seconds=timeout_seconds, poll_seconds=poll_seconds):
        atomic_write_json(path, payload)


def read_json_locked(
    path: str,
    *,
    timeout_seconds: float | None = None,
    poll_seconds: float | None = None,
) -> Any:
    """Acquire the file lock and read a JSON snapshot; a leading BOM is tolerated."""

    with state_file_lock(path, timeout_seconds=timeout_seconds, poll_seconds=poll_seconds):
        with open(path, "r", encoding="utf-8-sig") as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as exc:
                raise StateFileCorruptError(f"{E_JSON_CORRUPT}: path={path} error={exc}") from exc
