"""Tests for tool naming, type normalization and redundant-creation detection."""
import pytest

from toolpool.domain.tools.naming import (
    canonical_type,
    classify,
    find_similar_tool_names,
    group_by_type,
    new_tool_name,
    sanitize_tool_name,
)
from toolpool.domain.types import ToolClassification


@pytest.mark.parametrize(
    "tool_name,expected",
    [
        ("calc_discount_171_aa", "calc_discount"),
        ("calc_discount_205_bb", "calc_discount"),
        ("convert_temp_1755608867746_19bf163d", "convert_temp"),
        ("isbn10_validator_1755609435337_ab60fbc3", "isbn10_validator"),
        ("email_validator_6797c58e", "email_validator"),
        ("roi_calculator_2", "roi_calculator"),
        ("basic_calculator", "basic_calculator"),
        ("calc_deadbeef", "calc_deadbeef"),
        ("parser", "parser"),
    ],
)
def test_canonical_type_strips_disambiguator(tool_name, expected):
    """Test that creation-time suffixes are stripped and nothing else."""
    assert canonical_type(tool_name) == expected


def test_canonical_type_keeps_at_least_one_segment():
    """Test that an all-numeric name is never reduced to nothing."""
    assert canonical_type("1755608867746") == "1755608867746"
    assert canonical_type("123_456") == "123"


@pytest.mark.parametrize(
    "tool_name,expected",
    [
        ("hex_2_dec", "hex"),
        ("int_32_add", "int"),
        ("hex_2_decimal", "hex_2_decimal"),
        ("base_64_encode", "base_64_encode"),
    ],
)
def test_canonical_type_digit_then_hex_words(tool_name, expected):
    """Test that a number followed only by hex-letter words reads as a disambiguator.

    ``dec`` and ``add`` are valid hex, so such names fold to their first
    segment; a non-hex word after the number keeps the name whole.
    """
    assert canonical_type(tool_name) == expected


def test_canonical_type_sanitizes_requested_capability():
    """Test that free-form capability names normalize to a type."""
    assert canonical_type("Convert Temp") == "convert_temp"
    assert canonical_type("  calc-discount!! ") == "calc_discount"
    assert sanitize_tool_name("__Sort__Numbers__") == "sort_numbers"


def test_canonical_type_is_idempotent():
    name = "flight_parser_1755619079158_466cb93e"
    assert canonical_type(canonical_type(name)) == canonical_type(name)


def test_new_tool_name_format():
    """Test that generated names follow <type>_<epoch-ms>_<hex>."""
    name = new_tool_name("Convert Temp", timestamp_ms=1755608867746, suffix="19bf163d")
    assert name == "convert_temp_1755608867746_19bf163d"


@pytest.mark.parametrize(
    "base",
    ["convert_temp", "calc_discount_171_aa", "isbn10_validator", "v2_parser", "email_validator_6797c58e"],
)
def test_new_tool_name_normalizes_back_to_base_type(base):
    """Test that a generated name always has the type of its base."""
    name = new_tool_name(base)

    assert canonical_type(name) == canonical_type(base)
    assert name != new_tool_name(base)


def test_new_tool_name_rejects_empty_base():
    with pytest.raises(ValueError):
        new_tool_name("!!!")


def test_two_creators_of_same_type_is_redundant_creation(make_manifest):
    """Test that the same type created by two agents is flagged."""
    # Arrange
    manifests = [
        make_manifest("calc_discount_171_aa", created_by="agent-a"),
        make_manifest("calc_discount_205_bb", created_by="agent-b", age=5),
    ]

    # Act
    groups = group_by_type(manifests)

    # Assert
    assert list(groups) == ["calc_discount"]
    assert classify(groups["calc_discount"]) == ToolClassification.REDUNDANT_CREATION


def test_single_creator_is_specialized(make_manifest):
    """Test that one agent's versions of a type are not redundant."""
    single = [make_manifest("calc_discount_171_aa")]
    same_agent = single + [make_manifest("calc_discount_205_bb", age=5)]

    assert classify(single) == ToolClassification.SPECIALIZED
    assert classify(same_agent) == ToolClassification.SPECIALIZED


def test_group_by_type_orders_by_creation(make_manifest):
    """Test that groups and their members follow creation order."""
    manifests = [
        make_manifest("sort_numbers_300_cc", age=30),
        make_manifest("calc_discount_205_bb", age=20),
        make_manifest("calc_discount_171_aa", age=10),
    ]

    groups = group_by_type(manifests)

    assert list(groups) == ["calc_discount", "sort_numbers"]
    assert [m.tool_name for m in groups["calc_discount"]] == [
        "calc_discount_171_aa",
        "calc_discount_205_bb",
    ]


def test_find_similar_tool_names_prefers_same_type():
    names = [
        "calc_discount_171_aa",
        "convert_temp_1755608867746_19bf163d",
        "sort_numbers_300_cc",
    ]

    suggestions = find_similar_tool_names("convert_temp_1_ff", names)

    assert suggestions[0] == "convert_temp_1755608867746_19bf163d"
    assert "sort_numbers_300_cc" not in suggestions


def test_find_similar_tool_names_without_match():
    assert find_similar_tool_names("zzz", ["calc_discount_171_aa"]) == []
