"""ENS name normalization helpers."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from ens.exceptions import InvalidName
from ens.utils import normalize_name

import config

# The registry root contract.
ENS_ROOT_NAME = "."


@lru_cache(maxsize=8)
def _compile_name_pattern(tlds: tuple[str, ...], min_label_length: int) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(tld) for tld in tlds) or "eth"
    min_len = max(1, int(min_label_length))
    return re.compile(rf"(([\w-]+)\.)*[\w-]{{{min_len},}}\.({alternatives})")


def _name_pattern() -> re.Pattern[str]:
    return _compile_name_pattern(tuple(config.ENS_NAME_TLDS), int(config.ENS_NAME_MIN_LABEL_LENGTH))


def normalize_ens_name(value: Any) -> str | None:
    """Return the ENSIP-15 normalized form of `value`, or None when it is not a usable name.

    Only names under one of the configured TLDs are accepted; the pattern check is
    meaningful because normalization has already folded case and rejected
    disallowed code points.
    """
    if value == ENS_ROOT_NAME:
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        normalized = normalize_name(value.strip())
    except (InvalidName, UnicodeError):
        return None
    if normalized and _name_pattern().fullmatch(normalized):
        return normalized
    return None
