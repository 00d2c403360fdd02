"""Tests for URL helpers."""

import pytest

from action_builder.url_utils import (
    default_page_type,
    domain_slug,
    normalize_domain,
    url_matches_pattern,
)


class TestNormalizeDomain:

    @pytest.mark.parametrize("raw,expected", [
        ("https://www.airbnb.com/", "airbnb.com"),
        ("https://WWW.Example.COM:8443/path?q=1", "example.com"),
        ("docs.python.org", "docs.python.org"),
        ("www.example.com", "example.com"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_domain(raw) == expected

    def test_slug(self):
        assert domain_slug("https://www.airbnb.com/") == "airbnb_com"

    def test_default_page_type(self):
        assert default_page_type("https://www.airbnb.com/") == "airbnb_com_main"


class TestUrlMatchesPattern:

    def test_no_pattern_matches(self):
        assert url_matches_pattern("https://example.com/anything", None)

    def test_path_anchored_pattern(self):
        assert url_matches_pattern("https://example.com/search?q=x", "^/search")
        assert not url_matches_pattern("https://example.com/rooms/1", "^/search")

    def test_full_url_pattern(self):
        assert url_matches_pattern("https://example.com/s/paris", r"example\.com/s/")

    def test_invalid_pattern_matches_everything(self):
        assert url_matches_pattern("https://example.com/", "([unclosed")
