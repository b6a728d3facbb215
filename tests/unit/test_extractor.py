from __future__ import annotations

import math

import pytest

from inventory_alarm.mapping.extractor import RowFieldExtractor, extract_role, parse_number
from inventory_alarm.mapping.resolver import Role


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("45", 45),
        (" 1,200 ", 1200),
        ("12.5", 12.5),
        (7, 7),
        (3.25, 3.25),
        ("-3", -3),
    ],
)
def test_parse_number_valid(raw, expected):
    assert parse_number(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "1_000", True, float("nan"), "inf", math.inf])
def test_parse_number_degrades_to_none(raw):
    assert parse_number(raw) is None


def test_extract_quantity_first_matching_key():
    fields = {"현재 재고": "45", "품목명": "볼트"}
    assert extract_role(fields, Role.QUANTITY) == 45
    assert extract_role(fields, Role.ITEM_NAME) == "볼트"


def test_quantity_parse_failure_does_not_try_later_keys():
    fields = {"재고": "n/a", "수량": "10"}
    assert extract_role(fields, Role.QUANTITY) is None


def test_unit_and_specification_miss_is_none():
    fields = {"품목명": "볼트"}
    assert extract_role(fields, Role.UNIT) is None
    assert extract_role(fields, Role.SPECIFICATION) is None


def test_empty_fields():
    assert extract_role({}, Role.ITEM_NAME) is None
    assert extract_role(None, Role.QUANTITY) is None


def test_item_name_fallback_prefers_non_numeric_string():
    fields = {"id": "A-1", "코드": "1001", "설명": "스테인리스 볼트"}
    assert extract_role(fields, Role.ITEM_NAME) == "스테인리스 볼트"


def test_item_name_fallback_column_prefixed_keys_reach_last_tier():
    fields = {"Column 1": "5000", "Column 2": "상품A"}
    # "Column" keys are skipped by the string tier, the last tier takes the first value
    assert extract_role(fields, Role.ITEM_NAME) == "5000"


def test_item_name_fallback_stringifies_numbers():
    assert extract_role({"코드": 1001}, Role.ITEM_NAME) == "1001"


def test_item_name_fallback_none_when_all_blank():
    assert extract_role({"a": None, "b": "  "}, Role.ITEM_NAME) is None


def test_blank_matched_item_name_falls_back():
    fields = {"품목명": "  ", "설명": "볼트"}
    assert extract_role(fields, Role.ITEM_NAME) == "볼트"


def test_matched_text_value_returned_as_is():
    fields = {"품목명": " 볼트 ", "단위": "EA ", "규격": 6}
    assert extract_role(fields, Role.ITEM_NAME) == " 볼트 "
    assert extract_role(fields, Role.UNIT) == "EA "
    assert extract_role(fields, Role.SPECIFICATION) == "6"


def test_extractor_quantity_shortcut():
    extractor = RowFieldExtractor()
    assert extractor.quantity({"Stock": "3"}) == 3
    assert extractor.quantity({"비고": "3"}) is None
