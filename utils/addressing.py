"""Address normalization helpers."""

from __future__ import annotations

from typing import Any

from eth_utils import is_hex_address
from web3 import Web3


def add_hex_prefix(value: str) -> str:
    if value.startswith("0x"):
        return value
    if value.startswith("0X"):
        return "0x" + value[2:]
    return "0x" + value


def is_valid_hex_address(value: Any, *, allow_non_prefixed: bool = True) -> bool:
    """True for 40 hex digits behind a 0x prefix. Checksum casing is not enforced."""
    if not isinstance(value, str) or not value:
        return False
    candidate = add_hex_prefix(value) if allow_non_prefixed else value
    if not candidate.startswith("0x"):
        return False
    return bool(is_hex_address(candidate))


def to_checksum_hex_address(value: str) -> str:
    """Render a valid hex address in its EIP-55 mixed-case form."""
    return Web3.to_checksum_address(add_hex_prefix(value).lower())
