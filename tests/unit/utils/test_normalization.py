"""
Tests for payload normalization helpers
"""

import math

from catalog_sync.utils.normalization import (
    chunked,
    normalize_bool,
    normalize_int_list,
    normalize_number,
    normalize_sort_type,
    normalize_text,
)


def test_normalize_text():
    assert normalize_text("  Red Cap ") == "Red Cap"
    assert normalize_text("   ") is None
    assert normalize_text(12) is None
    assert normalize_text(None) is None


def test_normalize_number():
    assert normalize_number(42) == 42
    assert normalize_number(42.9) == 42
    assert normalize_number(" 17 ") == 17
    assert normalize_number("abc") is None
    assert normalize_number(True) is None
    assert normalize_number(math.nan) is None
    assert normalize_number(math.inf) is None
    assert normalize_number("") is None


def test_normalize_bool_only_accepts_booleans():
    assert normalize_bool(True) is True
    assert normalize_bool(False) is False
    assert normalize_bool("true") is None
    assert normalize_bool(1) is None


def test_normalize_int_list():
    assert normalize_int_list([1, "2", "x", None, 3.0]) == [1, 2, 3]
    assert normalize_int_list("1,2") == []


def test_normalize_sort_type():
    assert normalize_sort_type(" Relevance ") == "relevance"


def test_chunked():
    assert list(chunked(range(5), 2)) == [[0, 1], [2, 3], [4]]
    assert list(chunked([], 3)) == []
