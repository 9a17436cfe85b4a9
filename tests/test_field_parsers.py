"""Tests for raw field parsing."""

import pytest

from listing_tracker.normalize.fields import (
    bare_hostname,
    clean_text,
    find_hostname_in_text,
    find_phone_in_text,
    find_street_address,
    is_plausible_address,
    is_plausible_name,
    parse_count,
    parse_phone,
    parse_rating_value,
    parse_review_label,
    parse_star_label,
    strip_label_prefix,
    strip_title_suffix,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1,234", 1234),
        ("(87)", 87),
        ("1.2K", 1200),
        ("3 M", 3_000_000),
        ("2.5k reviews", 2500),
        ("", None),
        ("no digits", None),
    ],
)
def test_parse_count(text, expected):
    assert parse_count(text) == expected


def test_review_and_star_labels():
    assert parse_review_label("1,234 reviews") == 1234
    assert parse_review_label("1 review") == 1
    assert parse_review_label("4.3 stars") is None
    assert parse_star_label("4.3 stars") == 4.3
    assert parse_star_label("4,5 stars") == 4.5
    assert parse_star_label("7 stars") is None


def test_rating_value():
    assert parse_rating_value("4,3") == 4.3
    assert parse_rating_value(" 5 ") == 5.0
    assert parse_rating_value("4.3 (120)") is None


class TestHostname:
    def test_strips_scheme_www_and_path(self):
        assert bare_hostname("https://www.JoesCafe.ie/menu?x=1") == "joescafe.ie"

    def test_bare_host(self):
        assert bare_hostname("joescafe.ie") == "joescafe.ie"

    def test_unwraps_google_redirect(self):
        assert bare_hostname("/url?q=https://www.joescafe.ie/&sa=U") == "joescafe.ie"

    def test_rejects_non_host(self):
        assert bare_hostname("Website") is None
        assert bare_hostname(None) is None

    def test_text_search_skips_google_links(self):
        text = "See https://www.google.com/maps and https://joescafe.ie/about"
        assert find_hostname_in_text(text) == "joescafe.ie"


class TestPhone:
    def test_tel_reference(self):
        assert parse_phone("tel:+35312345678") == "35312345678"

    def test_label_text(self):
        assert parse_phone("+353 1 234 5678") == "35312345678"

    def test_too_short(self):
        assert parse_phone("12345") is None

    def test_visible_text_heuristic_needs_ten_digits(self):
        assert find_phone_in_text("Call us on (01) 234 5678 today") is None
        assert find_phone_in_text("Call +353 87 123 4567 today") == "353871234567"


class TestNameAndAddress:
    def test_plausible_name(self):
        assert is_plausible_name("Joe's Cafe")
        assert not is_plausible_name("Directions")
        assert not is_plausible_name("1,234 reviews")
        assert not is_plausible_name("x" * 201)

    def test_title_suffix(self):
        assert strip_title_suffix("Joe's Cafe - Google Maps") == "Joe's Cafe"
        assert strip_title_suffix("  ") is None

    def test_plausible_address(self):
        assert is_plausible_address("12 Main Street, Dublin 2")
        assert is_plausible_address("Grafton St, Dublin")
        assert not is_plausible_address("Open")
        assert not is_plausible_address("12345")

    def test_street_address_heuristic(self):
        text = "Cafe\n12 Main Street, Dublin 2\nOpen now"
        assert find_street_address(text) == "12 Main Street, Dublin 2"


def test_label_prefix_and_glyphs():
    assert strip_label_prefix("Address: 12 Main Street", "Address") == "12 Main Street"
    assert clean_text("  12   Main\nStreet ") == "12 Main Street"
    assert clean_text("   ") is None
