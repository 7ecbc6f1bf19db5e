"""Command-line entry point for the ENS entry registry."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

import config
from naming.ens_store import EnsStore, InvalidEntryError
from naming.persistence import attach_autosave, load_store, save_store
from utils.state_file import StateFileCorruptError, StateFileLockError

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    os.makedirs(config.LOG_DIR, exist_ok=True)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    file_handler = RotatingFileHandler(config.APP_LOG_FILE, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    file_handler.setFormatter(formatter)

    # Console output goes to stderr so stdout stays machine readable.
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(file_handler)
    root.addHandler(console_handler)

    logging.getLogger("web3").setLevel(logging.WARNING)


def _parse_address(raw: str | None) -> str | None:
    if raw is None or raw.strip().lower() in ("", "null", "none"):
        return None
    return raw.strip()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect and edit the persisted ENS entry registry.")
    parser.add_argument(
        "--state-file",
        default=None,
        help=f"Snapshot file to operate on (default: {config.ENS_STATE_FILE}).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    set_cmd = sub.add_parser("set", help="Add or update an entry. Omit ADDRESS to record an unresolved name.")
    set_cmd.add_argument("chain_id")
    set_cmd.add_argument("name")
    set_cmd.add_argument("address", nargs="?", default=None)

    for command, help_text in (("get", "Print one entry."), ("delete", "Remove one entry.")):
        cmd = sub.add_parser(command, help=help_text)
        cmd.add_argument("chain_id")
        cmd.add_argument("name")

    sub.add_parser("clear", help="Remove every entry.")

    show_cmd = sub.add_parser("show", help="Print the registry snapshot.")
    show_cmd.add_argument(
        "--anonymous",
        action="store_true",
        help="Only print fields that are safe for anonymized exports.",
    )
    return parser.parse_args(argv)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True))


def run(args: argparse.Namespace, store: EnsStore) -> int:
    if args.command == "set":
        try:
            changed = store.set(args.chain_id, args.name, _parse_address(args.address))
        except InvalidEntryError as exc:
            logger.error("%s", exc)
            return 2
        _emit({"changed": changed})
        return 0
    if args.command == "get":
        entry = store.get(args.chain_id, args.name)
        _emit(entry.to_dict() if entry is not None else None)
        return 0 if entry is not None else 1
    if args.command == "delete":
        _emit({"removed": store.delete(args.chain_id, args.name)})
        return 0
    if args.command == "clear":
        store.clear()
        _emit({"ens_entries": store.ens_entries})
        return 0
    if args.command == "show":
        _emit(store.get_anonymized_state() if args.anonymous else store.get_persistent_state())
        return 0
    raise ValueError(f"unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging()
    try:
        store = load_store(args.state_file)
    except (StateFileCorruptError, StateFileLockError) as exc:
        logger.error("ENS state unavailable: %s", exc)
        return 3
    if config.ENS_AUTO_SAVE:
        attach_autosave(store, args.state_file)
        return run(args, store)
    # Without autosave the snapshot is written once, and only when the command changed it.
    before = store.get_persistent_state()
    code = run(args, store)
    if store.get_persistent_state() != before:
        try:
            save_store(store, args.state_file)
        except StateFileLockError as exc:
            logger.error("ENS state not saved: %s", exc)
            return 3
    return code


if __name__ == "__main__":
    sys.exit(main())
