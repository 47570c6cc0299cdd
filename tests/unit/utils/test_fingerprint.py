"""
Tests for query fingerprinting
"""

from catalog_sync.utils.fingerprint import calculate_query_fingerprint


def test_fingerprint_is_deterministic():
    first = calculate_query_fingerprint("Accessories", "Hats", "Relevance", "", 30)
    second = calculate_query_fingerprint("Accessories", "Hats", "Relevance", "", 30)

    assert first == second
    assert len(first) == 40


def test_fingerprint_changes_with_every_input():
    base = calculate_query_fingerprint("Accessories", "Hats", "Relevance", "", 30)
    variants = [
        calculate_query_fingerprint("Clothing", "Hats", "Relevance", "", 30),
        calculate_query_fingerprint("Accessories", "Hair", "Relevance", "", 30),
        calculate_query_fingerprint("Accessories", None, "Relevance", "", 30),
        calculate_query_fingerprint("Accessories", "Hats", "Sales", "", 30),
        calculate_query_fingerprint("Accessories", "Hats", "Relevance", "a", 30),
        calculate_query_fingerprint("Accessories", "Hats", "Relevance", "", 60),
    ]

    assert base not in variants
    assert len(set(variants)) == len(variants)
