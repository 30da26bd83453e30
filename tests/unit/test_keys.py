"""
Unit tests for key derivation.

Tests cover:
- Title to key normalization
- Fallback tokens for empty and digit-leading titles
- Unique key generation against sibling keys
- Identifier validation
"""

import pytest

from schemagraph.graph.keys import (
    DEFAULT_KEY,
    derive_key,
    generate_unique_key,
    is_valid_key,
    unique_key,
)


class TestDeriveKey:
    """Tests for derive_key."""

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("First Name", "first_name"),
            ("  Hello--World!! ", "hello_world"),
            ("E-mail Address", "e_mail_address"),
            ("already_snake", "already_snake"),
            ("CamelCase", "camelcase"),
        ],
    )
    def test_normalizes_title(self, title, expected):
        """Titles are lower-cased and non-alphanumerics collapse to underscores."""
        assert derive_key(title) == expected

    def test_leading_digit_is_prefixed(self):
        """A leading digit gets the fallback token in front."""
        assert derive_key("2nd address") == "field_2nd_address"

    def test_empty_title_falls_back(self):
        """Titles with no alphanumerics fall back to the default token."""
        assert derive_key("!!!") == DEFAULT_KEY
        assert derive_key("") == DEFAULT_KEY
        assert derive_key(None) == DEFAULT_KEY

    def test_custom_fallback(self):
        """The fallback token can be chosen by the caller."""
        assert derive_key(None, "item") == "item"
        assert derive_key("3 items", "item") == "item_3_items"

    def test_deterministic(self):
        """Same title gives the same key."""
        assert derive_key("Shipping Address") == derive_key("Shipping Address")

    def test_derived_keys_are_valid(self):
        """Every derived key passes the identifier check."""
        for title in ["First Name", "2nd", "!!!", None, "ünïcode title", "a.b.c"]:
            assert is_valid_key(derive_key(title))


class TestUniqueKey:
    """Tests for generate_unique_key and unique_key."""

    def test_free_key_is_kept(self):
        """A key not taken is returned as derived."""
        assert generate_unique_key("Person", set()) == "person"

    def test_collision_gets_suffix(self):
        """Colliding keys get a numeric suffix starting at 2."""
        assert generate_unique_key("Person", {"person"}) == "person_2"

    def test_suffix_skips_taken(self):
        """Suffixes already in use are skipped."""
        assert generate_unique_key("Person", {"person", "person_2"}) == "person_3"

    def test_two_calls_give_distinct_keys(self):
        """Adding the same title twice under one parent yields two keys."""
        taken = set()
        first = generate_unique_key("Person", taken)
        taken.add(first)
        second = generate_unique_key("Person", taken)
        assert first == "person"
        assert second == "person_2"

    def test_unique_key_on_base(self):
        """unique_key suffixes an existing key."""
        assert unique_key("name", ["name", "email"]) == "name_2"
        assert unique_key("phone", ["name"]) == "phone"


class TestIsValidKey:
    """Tests for is_valid_key."""

    @pytest.mark.parametrize("key", ["a", "_private", "field_2", "CamelCase"])
    def test_valid(self, key):
        """Identifiers are accepted."""
        assert is_valid_key(key)

    @pytest.mark.parametrize("key", ["", "1a", "a-b", "has space", "a.b"])
    def test_invalid(self, key):
        """Non-identifiers are rejected."""
        assert not is_valid_key(key)
