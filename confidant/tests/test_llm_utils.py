"""Tests for shared LLM response parsing utilities."""

from confidant.common.llm_utils import as_string_list, parse_llm_json


class TestParseLlmJson:
    def test_valid_json(self):
        assert parse_llm_json('{"key": "value"}') == {"key": "value"}

    def test_json_with_markdown_fences(self):
        raw = '```json\n{"summary": "ok", "decisions": []}\n```'
        assert parse_llm_json(raw) == {"summary": "ok", "decisions": []}

    def test_json_with_plain_fences(self):
        raw = '```\n{"a": 1}\n```'
        assert parse_llm_json(raw) == {"a": 1}

    def test_json_embedded_in_text(self):
        raw = 'Here is the summary: {"summary": "x"} hope it helps.'
        assert parse_llm_json(raw) == {"summary": "x"}

    def test_no_json_returns_empty_dict(self):
        assert parse_llm_json("This is not JSON at all") == {}

    def test_empty_string_returns_empty_dict(self):
        assert parse_llm_json("") == {}
        assert parse_llm_json("   ") == {}

    def test_list_is_not_an_object(self):
        assert parse_llm_json('["a", "b"]') == {}

    def test_invalid_json_with_braces_returns_empty(self):
        assert parse_llm_json('{"broken: json') == {}


class TestAsStringList:
    def test_none(self):
        assert as_string_list(None) == []

    def test_single_string(self):
        assert as_string_list(" ship it ") == ["ship it"]
        assert as_string_list("  ") == []

    def test_list_drops_blanks(self):
        assert as_string_list(["a", "", None, " b "]) == ["a", "b"]
