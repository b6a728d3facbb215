from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

"""Keyword resolver: free-form header -> canonical role.

A header resolves to a role when, after lower-casing and removing all
whitespace from both sides, it contains at least one of the role's synonyms.
Containment (not equality) lets "현재_재고_수량" match "재고".

Within one role resolution is existence based. Across keys the policy is
first-match-wins in key order (see first_matching_key); the comparison itself
is a single injectable `matcher` so a smarter scorer can replace it without
touching callers.
"""

__all__ = [
    "DEFAULT_KEYWORDS",
    "KeywordResolver",
    "KeywordTable",
    "Matcher",
    "Role",
    "contains_any",
    "normalize_header",
]


class Role(Enum):
    ITEM_NAME = "item_name"
    QUANTITY = "quantity"
    UNIT = "unit"
    SPECIFICATION = "specification"


DEFAULT_KEYWORDS: Mapping[Role, tuple[str, ...]] = MappingProxyType({
    Role.ITEM_NAME: (
        "품목", "품목명", "상품명", "제품명", "품명", "이름", "항목",
        "name", "item", "product",
    ),
    Role.QUANTITY: (
        "현재재고", "현재_재고", "재고", "재고량", "수량", "최종확정재고", "확정재고",
        "stock", "quantity", "qty", "inventory", "current_stock",
    ),
    Role.UNIT: ("단위", "unit", "uom"),
    Role.SPECIFICATION: ("규격", "스펙", "spec", "규격사항"),
})

# header classification order (one role per header)
CLASSIFY_ORDER: tuple[Role, ...] = (Role.ITEM_NAME, Role.SPECIFICATION, Role.UNIT, Role.QUANTITY)

Matcher = Callable[[str, tuple[str, ...]], bool]


def normalize_header(text: object) -> str:
    """Lower-case and drop every whitespace character."""
    return "".join(str(text).lower().split())


def contains_any(normalized_header: str, normalized_synonyms: tuple[str, ...]) -> bool:
    return any(s in normalized_header for s in normalized_synonyms)


@dataclass(frozen=True)
class KeywordTable:
    """Immutable role -> ordered synonym list configuration."""
    synonyms: Mapping[Role, tuple[str, ...]]

    @classmethod
    def default(cls) -> KeywordTable:
        return cls(DEFAULT_KEYWORDS)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Iterable[str]] | None) -> KeywordTable:
        """Build a table from config data keyed by role value.

        Roles missing from `raw` keep their built-in synonyms.
        """
        merged = dict(DEFAULT_KEYWORDS)
        for key, values in (raw or {}).items():
            merged[Role(key)] = tuple(str(v) for v in values)
        return cls(MappingProxyType(merged))

    def for_role(self, role: Role) -> tuple[str, ...]:
        return tuple(self.synonyms.get(role, ()))


class KeywordResolver:
    def __init__(self, table: KeywordTable | None = None, matcher: Matcher = contains_any) -> None:
        self.table = table or KeywordTable.default()
        self.matcher = matcher
        # empty synonyms would match every header
        self._normalized: dict[Role, tuple[str, ...]] = {
            role: tuple(n for n in (normalize_header(s) for s in self.table.for_role(role)) if n)
            for role in Role
        }

    def resolve(self, header: object, role: Role) -> bool:
        if header is None:
            return False
        return self.matcher(normalize_header(header), self._normalized[role])

    def first_matching_key(self, keys: Iterable[str], role: Role) -> str | None:
        """First key (in iteration order) that resolves to role."""
        for key in keys:
            if self.resolve(key, role):
                return key
        return None

    def classify_header(self, header: object) -> Role | None:
        for role in CLASSIFY_ORDER:
            if self.resolve(header, role):
                return role
        return None
