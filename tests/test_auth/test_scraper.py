"""Tests for toriauth.auth.scraper -- CSRF token extraction."""

from __future__ import annotations

import html
import json
import re

import httpx

from toriauth.auth.scraper import DEFAULT_PATTERNS, CsrfPatterns, CsrfScraper


def _bff_page(data: object) -> str:
    blob = html.escape(json.dumps(data))
    return f'<html><div id="bffData" data-x="1">{blob}</div></html>'


class TestCsrfScraper:
    def test_bff_data_is_decoded(self) -> None:
        body = _bff_page({"csrfToken": "from-bff", "other": "x"})
        assert CsrfScraper().extract(body) == "from-bff"

    def test_bff_data_wins_over_body_pattern_and_header(self) -> None:
        body = _bff_page({"csrfToken": "from-bff"}) + '<script>{"csrfToken": "from-regex"}</script>'
        headers = httpx.Headers({"X-Csrf-Token": "from-header"})
        assert CsrfScraper().extract(body, headers) == "from-bff"

    def test_json_style_pattern(self) -> None:
        body = '<script>window.state = {"csrfToken" : "json-style"};</script>'
        assert CsrfScraper().extract(body) == "json-style"

    def test_assignment_style_pattern(self) -> None:
        body = "<script>var csrfToken = 'assigned';</script>"
        assert CsrfScraper().extract(body) == "assigned"

    def test_pattern_wins_over_header(self) -> None:
        body = '{"csrfToken":"from-regex"}'
        assert CsrfScraper().extract(body, {"X-Csrf-Token": "from-header"}) == "from-regex"

    def test_header_only(self) -> None:
        headers = httpx.Headers({"x-csrf-token": "from-header"})
        assert CsrfScraper().extract("<html></html>", headers) == "from-header"

    def test_header_in_plain_dict(self) -> None:
        assert CsrfScraper().extract("", {"X-Csrf-Token": "plain"}) == "plain"

    def test_invalid_bff_json_falls_through(self) -> None:
        body = '<div id="bffData">{not json</div><script>csrfToken: "fallback"</script>'
        assert CsrfScraper().extract(body) == "fallback"

    def test_bff_data_without_token_falls_through(self) -> None:
        body = _bff_page({"locale": "fi"})
        assert CsrfScraper().extract(body, {"X-Csrf-Token": "hdr"}) == "hdr"

    def test_nothing_found(self) -> None:
        assert CsrfScraper().extract("<html>nothing</html>", {}) is None

    def test_custom_patterns(self) -> None:
        patterns = CsrfPatterns(
            bff_data=DEFAULT_PATTERNS.bff_data,
            fallbacks=(re.compile(r'name="_csrf" value="([^"]+)"'),),
        )
        body = '<input name="_csrf" value="hidden-field">'
        assert CsrfScraper(patterns).extract(body) == "hidden-field"

    def test_default_patterns_shared(self) -> None:
        assert CsrfScraper()._patterns is DEFAULT_PATTERNS
