from __future__ import annotations

import math
import numbers
from collections.abc import Mapping
from typing import Any

from .resolver import KeywordResolver, Role

"""Row field extractor.

Pulls typed role values (item name, quantity, unit, specification) out of a
row whose keys are arbitrary spreadsheet headers.

Rules:
- the first key (insertion order) that resolves to the role wins, even when a
  later key would be a "better" match
- the quantity role is coerced with parse_number; a failed parse yields None,
  it does not move on to the next matching key
- only the item-name role has fallbacks when no key matches:
    1. first non-numeric, non-blank string value, skipping keys that start
       with "column" (case-insensitive) and the key "id"
    2. first non-blank value of any key, stringified (no key is skipped here)
- nothing here raises on malformed data; misses are None
"""

__all__ = [
    "NUMERIC_ROLES",
    "RowFieldExtractor",
    "extract_role",
    "parse_number",
]

NUMERIC_ROLES = frozenset({Role.QUANTITY})

PLACEHOLDER_KEY_PREFIX = "column"
ID_KEY = "id"


def parse_number(value: Any) -> int | float | None:
    """Parse a cell as a number, tolerating thousands separators.

    None / blank / unparseable / non-finite -> None. Booleans are not numbers.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        number = float(value)
        if not math.isfinite(number):
            return None
        return int(value) if isinstance(value, numbers.Integral) else number
    text = str(value).strip().replace(",", "")
    if not text or "_" in text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _as_text(value: Any) -> str | None:
    """The cell as text, unmodified; None for a missing or blank cell."""
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


class RowFieldExtractor:
    """Role extraction bound to one KeywordResolver (one vocabulary)."""

    def __init__(self, resolver: KeywordResolver | None = None) -> None:
        self.resolver = resolver or KeywordResolver()

    def extract(self, fields: Mapping[str, Any] | None, role: Role) -> Any:
        if not fields:
            return None
        key = self.resolver.first_matching_key(fields.keys(), role)
        if key is not None:
            value = fields[key]
            if role in NUMERIC_ROLES:
                return parse_number(value)
            text = _as_text(value)
            # a blank matched name cell still falls through to the name fallbacks
            if text is not None or role is not Role.ITEM_NAME:
                return text
        elif role is not Role.ITEM_NAME:
            return None
        return self._fallback_item_name(fields)

    def quantity(self, fields: Mapping[str, Any] | None) -> int | float | None:
        return self.extract(fields, Role.QUANTITY)

    @staticmethod
    def _fallback_item_name(fields: Mapping[str, Any]) -> str | None:
        for key, value in fields.items():
            lowered = str(key).lower()
            if lowered.startswith(PLACEHOLDER_KEY_PREFIX) or lowered == ID_KEY:
                continue
            if isinstance(value, str) and value.strip() and parse_number(value) is None:
                return value
        # TODO: confirm against real uploads whether "Column N" keys should be skipped here too
        for value in fields.values():
            if value is not None and str(value).strip():
                return str(value)
        return None


_DEFAULT_EXTRACTOR = RowFieldExtractor()


def extract_role(fields: Mapping[str, Any] | None, role: Role, extractor: RowFieldExtractor | None = None) -> Any:
    """Module-level shortcut using the built-in vocabulary unless one is given."""
    return (extractor or _DEFAULT_EXTRACTOR).extract(fields, role)
