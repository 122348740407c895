"""Tests for CLI output unwrapping."""
import json

import pytest

from resume_ai.providers.response_unwrap import ResponseParseError, unwrap, unwrap_inner_text


def _envelope(text: str) -> str:
    return json.dumps({"type": "result", "subtype": "success", "result": text})


class TestUnwrap:
    def test_plain_json_is_returned_unchanged(self):
        assert unwrap('{"a":1}') == {"a": 1}

    def test_plain_json_array(self):
        assert unwrap("[1, 2, 3]") == [1, 2, 3]

    def test_envelope_with_fenced_json(self):
        raw = _envelope('```json\n{"a":1}\n```')
        assert unwrap(raw) == {"a": 1}

    def test_envelope_with_untagged_fence(self):
        raw = _envelope('Here you go:\n```\n{"name": "Ada"}\n```\nThanks!')
        assert unwrap(raw) == {"name": "Ada"}

    def test_envelope_with_bare_json_text(self):
        assert unwrap(_envelope('  {"a": [1, 2]}  ')) == {"a": [1, 2]}

    def test_envelope_with_plain_text(self):
        assert unwrap(_envelope("plain text")) == "plain text"

    def test_envelope_with_broken_json_returns_text_verbatim(self):
        assert unwrap(_envelope('{"a": ')) == '{"a": '

    def test_non_result_envelope_is_plain_value(self):
        value = {"type": "message", "result": "x"}
        assert unwrap(json.dumps(value)) == value

    def test_result_field_must_be_string(self):
        value = {"type": "result", "result": {"a": 1}}
        assert unwrap(json.dumps(value)) == value

    def test_not_json_raises(self):
        with pytest.raises(ResponseParseError):
            unwrap("Sure! Here is the resume you asked for.")

    def test_fenced_json_without_envelope_is_rejected(self):
        with pytest.raises(ResponseParseError):
            unwrap('```json\n{"a":1}\n```')

    def test_empty_output_raises(self):
        with pytest.raises(ResponseParseError):
            unwrap("")


class TestUnwrapInnerText:
    def test_fence_preferred_over_surrounding_prose(self):
        assert unwrap_inner_text('intro {not json}\n```json\n{"b": 2}\n```') == {"b": 2}

    def test_text_without_json_is_returned(self):
        assert unwrap_inner_text("no json here") == "no json here"
