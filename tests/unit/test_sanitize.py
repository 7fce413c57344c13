"""HTML sanitizer tests."""

from siteforge.domain.sanitize import SanitizerConfig, is_safe_url, sanitize_html


class TestSanitizeHtml:
    def test_allowed_markup_kept(self):
        assert sanitize_html("<p>Hi <strong>there</strong></p>") == "<p>Hi <strong>there</strong></p>"

    def test_event_handlers_removed(self):
        assert sanitize_html('<p onclick="steal()">Hi</p>') == "<p>Hi</p>"

    def test_script_dropped_with_body(self):
        assert sanitize_html("<script>alert(1)</script><p>ok</p>") == "<p>ok</p>"

    def test_unknown_tags_unwrapped(self):
        assert sanitize_html("<div>text</div>") == "text"

    def test_comments_removed(self):
        assert sanitize_html("<!-- note --><p>a</p>") == "<p>a</p>"

    def test_links_get_rel(self):
        out = sanitize_html('<a href="https://example.com" target="_blank">x</a>')

        assert out == (
            '<a href="https://example.com" target="_blank" rel="noopener noreferrer">x</a>'
        )

    def test_javascript_href_removed(self):
        out = sanitize_html('<a href="javascript:alert(1)">x</a>')

        assert out == '<a rel="noopener noreferrer">x</a>'

    def test_data_image_removed(self):
        out = sanitize_html('<img src="data:image/png;base64,AAAA" alt="pic">')

        assert out == '<img alt="pic">'

    def test_custom_config(self):
        config = SanitizerConfig(
            allow_tags=frozenset(["p"]),
            allow_attrs={},
            drop_content_tags=frozenset(),
            forbid_protocols=frozenset(["javascript:"]),
            link_rel="",
        )

        assert sanitize_html("<p><em>x</em></p>", config) == "<p>x</p>"


class TestUrls:
    def test_hidden_whitespace_in_scheme(self):
        assert not is_safe_url("java\tscript:alert(1)")
        assert not is_safe_url("  JAVASCRIPT:alert(1)")

    def test_regular_urls(self):
        assert is_safe_url("https://example.com")
        assert is_safe_url("/relative/path")
