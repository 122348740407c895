"""Tests for AI output sanitization."""
from resume_ai.services.sanitizer import (
    SanitizeOptions,
    sanitize_ai_response,
    sanitize_text,
    sanitize_value,
    strip_markdown,
)


class TestSanitizeText:
    def test_removes_zero_width_and_bold_markup(self):
        assert sanitize_ai_response("Bold **text** and\u200b zero-width") == "Bold text and zero-width"

    def test_default_options_keep_markdown(self):
        assert sanitize_text("**kept**") == "**kept**"

    def test_control_characters_removed_but_tabs_kept(self):
        assert sanitize_text("a\x00b\x07c\td") == "abc\td"

    def test_line_endings_normalized(self):
        assert sanitize_text("one\r\ntwo\rthree") == "one\ntwo\nthree"

    def test_unusual_spaces_become_ascii(self):
        assert sanitize_text("New\u00a0York\u2009City") == "New York City"

    def test_space_runs_collapsed(self):
        assert sanitize_text("a    b\tc") == "a b\tc"

    def test_blank_line_runs_capped(self):
        assert sanitize_text("a\n\n\n\nb") == "a\n\nb"

    def test_trim_lines_option(self):
        opts = SanitizeOptions(trim_lines=True)
        assert sanitize_text("  a  \n  b  ", opts) == "a\nb"

    def test_outer_trim_can_be_disabled(self):
        assert sanitize_text("\n a \n", SanitizeOptions(trim=False)) == "\n a \n"


class TestStripMarkdown:
    def test_links_keep_text(self):
        assert strip_markdown("See [my site](https://example.com)") == "See my site"

    def test_headers_and_blockquotes(self):
        assert strip_markdown("## Summary\n> quoted") == "Summary\nquoted"

    def test_bullets_and_numbering_preserved(self):
        text = "- Led team\n1. Shipped product"
        assert strip_markdown(text) == text

    def test_snake_case_is_not_italicized(self):
        assert strip_markdown("use snake_case_names") == "use snake_case_names"

    def test_italic_inline_code_and_strikethrough(self):
        assert strip_markdown("*very* `fast` ~~slow~~") == "very fast slow"

    def test_code_block_keeps_content(self):
        assert strip_markdown("```python\nprint(1)\n```") == "print(1)"

    def test_horizontal_rule_removed(self):
        assert strip_markdown("a\n---\nb") == "a\n\nb"


class TestSanitizeValue:
    def test_nested_structure_keeps_shape_and_non_strings(self):
        value = {
            "name": " Ada\u200b ",
            "years": 7,
            "score": 0.9,
            "active": True,
            "missing": None,
            "items": ["**x**", 3],
        }
        assert sanitize_ai_response(value) == {
            "name": "Ada",
            "years": 7,
            "score": 0.9,
            "active": True,
            "missing": None,
            "items": ["x", 3],
        }

    def test_key_order_preserved(self):
        value = {"b": "1", "a": "2", "c": "3"}
        assert list(sanitize_value(value)) == ["b", "a", "c"]

    def test_input_is_not_mutated(self):
        value = {"items": [" a "]}
        sanitize_value(value)
        assert value == {"items": [" a "]}
