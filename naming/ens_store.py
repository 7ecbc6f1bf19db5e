"""ENS entry store.

Keeps resolved ENS names per chain: `ens_entries[chain_id][normalized_name]`
holds `{"chain_id", "ens_name", "address"}`. A `None` address records a name
that was looked up and does not resolve.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from naming.state_container import StateContainer, StateFieldMetadata
from utils.addressing import is_valid_hex_address, to_checksum_hex_address
from utils.ens_names import normalize_ens_name

logger = logging.getLogger(__name__)

CONTROLLER_NAME = "EnsController"

STATE_METADATA = {
    "ens_entries": StateFieldMetadata(persist=True, anonymous=False),
}

_CHAIN_ID_RE = re.compile(r"[+-]?[0-9]+")

REASON_INVALID_CHAIN_ID = "invalid_chain_id"
REASON_INVALID_NAME = "invalid_name"
REASON_INVALID_ADDRESS = "invalid_address"


def default_state() -> dict[str, Any]:
    return {"ens_entries": {}}


@dataclass(frozen=True)
class EnsEntry:
    chain_id: str
    ens_name: str
    address: str | None

    def to_dict(self) -> dict[str, Any]:
        return {"chain_id": self.chain_id, "ens_name": self.ens_name, "address": self.address}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "EnsEntry":
        return cls(chain_id=raw["chain_id"], ens_name=raw["ens_name"], address=raw.get("address"))


class InvalidEntryError(ValueError):
    """Raised by `EnsStore.set` when the chain id, name or address is unusable."""

    def __init__(self, chain_id: Any, ens_name: Any, address: Any, reason: str = "") -> None:
        self.chain_id = chain_id
        self.ens_name = ens_name
        self.address = address
        self.reason = reason
        super().__init__(
            f"Invalid ENS entry ({reason or 'invalid'}): "
            f"{{ chain_id:{chain_id}, ens_name:{ens_name}, address:{address} }}"
        )


@dataclass(frozen=True)
class EntryValidation:
    ok: bool
    chain_id: Any
    ens_name: Any
    address: str | None
    reason: str = ""

    def raise_for_error(self) -> None:
        if not self.ok:
            raise InvalidEntryError(self.chain_id, self.ens_name, self.address, self.reason)


def is_valid_chain_id(value: Any) -> bool:
    return isinstance(value, str) and _CHAIN_ID_RE.fullmatch(value) is not None


def validate_entry(chain_id: Any, ens_name: Any, address: Any) -> EntryValidation:
    """Check a candidate entry and return it in stored form.

    On success `ens_name` is the normalized name and `address` the checksummed
    address (or None). On failure the raw inputs are kept for diagnostics.
    """

    def _fail(reason: str) -> EntryValidation:
        return EntryValidation(ok=False, chain_id=chain_id, ens_name=ens_name, address=address, reason=reason)

    if not is_valid_chain_id(chain_id):
        return _fail(REASON_INVALID_CHAIN_ID)
    if not ens_name or not isinstance(ens_name, str):
        return _fail(REASON_INVALID_NAME)
    if address is not None and not is_valid_hex_address(address):
        return _fail(REASON_INVALID_ADDRESS)
    normalized_name = normalize_ens_name(ens_name)
    if normalized_name is None:
        return _fail(REASON_INVALID_NAME)
    normalized_address = to_checksum_hex_address(address) if address is not None else None
    return EntryValidation(ok=True, chain_id=chain_id, ens_name=normalized_name, address=normalized_address)


class EnsStore(StateContainer):
    """Registry of ENS names and their resolved addresses, keyed by chain id."""

    def __init__(self, *, state: dict[str, Any] | None = None) -> None:
        initial = default_state()
        initial.update(state or {})
        super().__init__(name=CONTROLLER_NAME, metadata=STATE_METADATA, state=initial)

    @property
    def ens_entries(self) -> dict[str, dict[str, dict[str, Any]]]:
        return self.state["ens_entries"]

    def get(self, chain_id: str, ens_name: str) -> EnsEntry | None:
        # Invalid names and missing entries are both reported as None.
        normalized_name = normalize_ens_name(ens_name)
        if normalized_name is None:
            return None
        raw = self._state["ens_entries"].get(chain_id, {}).get(normalized_name)
        return EnsEntry.from_dict(raw) if raw is not None else None

    def set(self, chain_id: str, ens_name: str, address: str | None) -> bool:
        """Add or update an entry; returns False when the stored address already matches."""
        checked = validate_entry(chain_id, ens_name, address)
        checked.raise_for_error()

        existing = self._state["ens_entries"].get(chain_id, {}).get(checked.ens_name)
        if existing is not None and existing["address"] == checked.address:
            logger.debug(
                "ENS_ENTRY_UNCHANGED chain_id=%s name=%s address=%s",
                chain_id,
                checked.ens_name,
                checked.address,
            )
            return False

        entry = EnsEntry(chain_id=chain_id, ens_name=checked.ens_name, address=checked.address)

        def _write(draft: dict[str, Any]) -> None:
            draft["ens_entries"].setdefault(chain_id, {})[entry.ens_name] = entry.to_dict()

        self.update(_write)
        logger.info(
            "ENS_ENTRY_SET chain_id=%s name=%s address=%s",
            chain_id,
            entry.ens_name,
            entry.address,
        )
        return True

    def delete(self, chain_id: str, ens_name: str) -> bool:
        normalized_name = normalize_ens_name(ens_name)
        if normalized_name is None or normalized_name not in self._state["ens_entries"].get(chain_id, {}):
            return False

        def _remove(draft: dict[str, Any]) -> None:
            chain_entries = draft["ens_entries"][chain_id]
            del chain_entries[normalized_name]
            if not chain_entries:
                del draft["ens_entries"][chain_id]

        self.update(_remove)
        logger.info("ENS_ENTRY_DELETE chain_id=%s name=%s", chain_id, normalized_name)
        return True

    def clear(self) -> None:
        """Remove every chain and entry."""
        if not self._state["ens_entries"]:
            return

        def _reset(draft: dict[str, Any]) -> None:
            draft["ens_entries"] = {}

        self.update(_reset)
        logger.info("ENS_ENTRIES_CLEAR")
