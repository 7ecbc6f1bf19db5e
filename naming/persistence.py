"""Snapshot persistence for the ENS entry store."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable

import config
from naming.ens_store import EnsStore, validate_entry
from utils.state_file import read_json_locked, write_json_atomic_locked

logger = logging.getLogger(__name__)

SNAPSHOT_SCHEMA_VERSION = 1


def _state_path(path: str | None) -> str:
    return str(path or config.ENS_STATE_FILE)


def save_store(store: EnsStore, path: str | None = None) -> None:
    target = _state_path(path)
    payload: dict[str, Any] = {"schema_version": SNAPSHOT_SCHEMA_VERSION}
    payload.update(store.get_persistent_state())
    write_json_atomic_locked(target, payload)
    logger.debug("ENS_STATE_SAVED path=%s", target)


def _restore_entries(raw_entries: Any) -> dict[str, dict[str, dict[str, Any]]]:
    # Rebuild through validation so restored state keeps the store invariants:
    # normalized keys, keys matching values, no empty chains.
    entries: dict[str, dict[str, dict[str, Any]]] = {}
    if not isinstance(raw_entries, dict):
        if raw_entries:
            logger.warning("ENS_STATE_DROP reason=entries_not_mapping type=%s", type(raw_entries).__name__)
        return entries
    dropped = 0
    for chain_id, chain_entries in raw_entries.items():
        if not isinstance(chain_entries, dict):
            dropped += 1
            continue
        for name_key, row in chain_entries.items():
            if not isinstance(row, dict):
                dropped += 1
                continue
            checked = validate_entry(chain_id, row.get("ens_name", name_key), row.get("address"))
            if not checked.ok:
                dropped += 1
                logger.warning(
                    "ENS_STATE_DROP reason=%s chain_id=%s name=%s",
                    checked.reason,
                    chain_id,
                    name_key,
                )
                continue
            entries.setdefault(chain_id, {})[checked.ens_name] = {
                "chain_id": chain_id,
                "ens_name": checked.ens_name,
                "address": checked.address,
            }
    if dropped:
        logger.warning("ENS_STATE_RESTORE dropped=%s", dropped)
    return entries


def load_store(path: str | None = None) -> EnsStore:
    target = _state_path(path)
    if not os.path.exists(target):
        return EnsStore()
    payload = read_json_locked(target)
    if not isinstance(payload, dict):
        logger.warning("ENS_STATE_DROP reason=payload_not_mapping path=%s", target)
        return EnsStore()
    store = EnsStore(state={"ens_entries": _restore_entries(payload.get("ens_entries"))})
    logger.info(
        "ENS_STATE_LOADED path=%s chains=%s",
        target,
        len(store.ens_entries),
    )
    return store


def attach_autosave(store: EnsStore, path: str | None = None) -> Callable[[], bool]:
    """Save the snapshot after every change; returns a callable that detaches the listener."""
    target = _state_path(path)

    def _on_change(_state: dict[str, Any], _previous: dict[str, Any]) -> None:
        try:
            save_store(store, target)
        except (OSError, RuntimeError, ValueError) as exc:
            logger.warning("ENS state save failed path=%s: %s", target, exc)

    store.subscribe(_on_change)
    return lambda: store.unsubscribe(_on_change)
