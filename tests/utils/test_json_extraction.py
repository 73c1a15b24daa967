"""Tests for JSON extraction from completion responses."""

import pytest

from utils.json_extraction import extract_json_from_response, strip_code_fences

PAYLOAD = '{"formUpdates": {"condition": "good"}, "fieldUpdates": []}'


class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences(f"Here you go:\n```json\n{PAYLOAD}\n```") == PAYLOAD

    def test_untyped_fence(self):
        assert strip_code_fences(f"```\n{PAYLOAD}\n```") == PAYLOAD

    def test_unclosed_fence(self):
        assert strip_code_fences('```json\n{"formUpdates": {"title"') == '{"formUpdates": {"title"'

    def test_no_fence(self):
        assert strip_code_fences(PAYLOAD) == PAYLOAD


class TestExtractJsonFromResponse:
    def test_pure_json_object(self):
        assert extract_json_from_response(PAYLOAD) == {
            "formUpdates": {"condition": "good"},
            "fieldUpdates": [],
        }

    def test_pure_json_array(self):
        assert extract_json_from_response('[{"field": "title"}]') == [{"field": "title"}]

    def test_json_code_block(self):
        response = f"Sure, here are the updates:\n```json\n{PAYLOAD}\n```"
        assert extract_json_from_response(response)["formUpdates"] == {"condition": "good"}

    def test_untyped_code_block(self):
        response = f"```\n{PAYLOAD}\n```"
        assert extract_json_from_response(response)["formUpdates"] == {"condition": "good"}

    def test_embedded_object_with_nested_list(self):
        response = (
            'Updates: {"formUpdates": {"title": "Walkman"}, '
            '"fieldUpdates": [{"field": "title", "value": "Walkman"}]} done'
        )
        result = extract_json_from_response(response)
        assert result["fieldUpdates"][0]["value"] == "Walkman"

    def test_deeply_nested_object(self):
        response = 'Result -> {"a": {"b": {"c": {"d": 1}}}} (end)'
        assert extract_json_from_response(response) == {"a": {"b": {"c": {"d": 1}}}}

    def test_braces_in_prose_before_object(self):
        response = 'Using {your} notes: {"formUpdates": {"condition": "fair"}}'
        assert extract_json_from_response(response) == {"formUpdates": {"condition": "fair"}}

    @pytest.mark.parametrize("response", [None, "", "   "])
    def test_empty_response(self, response):
        assert extract_json_from_response(response) is None

    def test_invalid_json(self):
        assert extract_json_from_response("The condition is good.") is None

    def test_truncated_json_yields_inner_object_only(self):
        # Cut-off documents are not repaired here
        result = extract_json_from_response('{"formUpdates": {"title": "Walkman"}, "fieldUpd')
        assert result == {"title": "Walkman"}

    def test_truncated_without_complete_inner_object(self):
        assert extract_json_from_response('{"formUpdates": {"title": "Walk') is None
