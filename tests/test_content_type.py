"""Tests for the Content-Type classifier."""

import pytest

from rest_api.content_type import (
    FORM_URLENCODED,
    HTML,
    JSON,
    OCTET_STREAM,
    PLAIN,
    XML,
    get_type,
)


class TestKnownKinds:
    @pytest.mark.parametrize(
        "header, expected",
        [
            ("Content-Type: text/html", HTML),
            ("Content-Type: text/plain", PLAIN),
            ("Content-Type: application/x-www-form-urlencoded", FORM_URLENCODED),
            ("application/json", JSON),
            ("application/xml", XML),
            ("text/xml", XML),
            ("application/octet-stream", OCTET_STREAM),
        ],
    )
    def test_suffix_after_last_slash(self, header, expected):
        assert get_type(header) == expected

    def test_parameters_are_ignored(self):
        assert get_type("application/json; charset=utf-8") == "json"
        assert get_type("Content-Type: text/html;charset=ISO-8859-1") == "html"

    def test_case_insensitive(self):
        assert get_type("Application/JSON") == "json"
        assert get_type("content-type: TEXT/PLAIN") == "plain"


class TestUnknownAndMalformed:
    def test_unknown_suffix_returned_unchanged(self):
        assert get_type("image/png") == "png"
        assert get_type("application/vnd.api+json") == "vnd.api+json"

    def test_no_slash_returns_whole_input(self):
        assert get_type("  garbage  ") == "garbage"

    def test_empty_and_none(self):
        assert get_type("") == ""
        assert get_type(None) == ""

    def test_trailing_slash(self):
        """Never raises, even on degenerate input."""
        assert get_type("text/") == ""
