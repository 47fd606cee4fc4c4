"""Tests for comparator.py: tolerant output equivalence."""

import pytest

from evaluation_service.comparator import (
    equivalent,
    match_strategy,
    normalize_output,
    parse_number,
    sorted_items,
)


def test_both_empty_are_equal():
    assert equivalent(None, None)
    assert equivalent("", None)
    assert match_strategy("", "") == "empty"


def test_one_empty_is_not_equal():
    assert not equivalent("", "5")
    assert not equivalent("5", None)


def test_trailing_newline_is_ignored():
    assert equivalent("5", "5\n")


def test_numeric_tolerance():
    assert match_strategy("42.00001", "42") == "numeric"
    assert not equivalent("42.1", "42")


def test_case_and_punctuation_are_ignored():
    assert match_strategy("Hello, World!", "hello world") == "normalized"


def test_blank_lines_collapse():
    assert match_strategy("a\n\n\nb", "a\nb") == "normalized"


def test_whitespace_only_differences():
    assert match_strategy("1 2 3", "1\n2\n3") == "whitespace"


def test_sorted_items_ignore_order():
    assert match_strategy("3,2,1", "1, 2, 3") == "sorted_items"
    assert match_strategy("banana\napple", "apple\nbanana") == "sorted_items"


def test_containment_with_length_guard():
    assert match_strategy("abcdefghi", "abcdefghij") == "containment"
    assert not equivalent("abcde", "abcdefghij")


def test_containment_ratio_is_configurable():
    assert equivalent("abcde", "abcdefghij", containment_ratio=0.5)


def test_mismatch():
    assert match_strategy("yes", "no") is None


@pytest.mark.parametrize(
    "a, b",
    [
        ("1 2 3", "1\n2\n3"),
        ("42", "42.00001"),
        ("c\nb\na", "a,b,c"),
        ("10", "11"),
    ],
)
def test_symmetric(a, b):
    assert equivalent(a, b) == equivalent(b, a)


def test_normalize_output():
    assert normalize_output("  Hello,   World!  \n\n  Bye. ") == "hello world\nbye"
    assert normalize_output(None) == ""


def test_parse_number():
    assert parse_number(" 3.5 ") == 3.5
    assert parse_number("-2e3") == -2000.0
    assert parse_number("12abc") is None
    assert parse_number("nan") is None


def test_sorted_items():
    assert sorted_items("b, a\nc") == ["a", "b", "c"]
