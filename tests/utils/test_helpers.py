"""
Tests for generic helper functions.
"""
import pytest

from trave_social.utils.helpers import (
    canonical_key,
    generate_id,
    split_canonical_key,
    truncate,
    unique_ordered,
)


def test_canonical_key_is_order_independent():
    assert canonical_key("u2", "u1") == canonical_key("u1", "u2") == "u1_u2"


def test_canonical_key_sorts_lexicographically():
    # Mixed variants still sort as plain strings
    assert canonical_key("extB", "u1") == "extB_u1"


@pytest.mark.parametrize("reference,expected", [
    ("u1_u2", ("u1", "u2")),
    ("abc", None),
    ("a_b_c", None),
    ("_u2", None),
    ("u1_", None),
])
def test_split_canonical_key(reference, expected):
    assert split_canonical_key(reference) == expected


def test_generate_id_is_unique_hex():
    ids = {generate_id() for _ in range(50)}

    assert len(ids) == 50
    assert all(len(value) == 32 for value in ids)


def test_unique_ordered_drops_empty_and_duplicates():
    assert unique_ordered(["u1", None, "extA", "u1", "", "extA"]) == ["u1", "extA"]


def test_truncate():
    assert truncate("x" * 150) == "x" * 100
    assert truncate("short") == "short"
    assert truncate(None) == ""
