"""
Unit tests for model-output decoding helpers.
"""

import pytest


@pytest.mark.unit
class TestExtractJson:
    """Tests for extract_json."""

    def test_plain_object(self):
        from podforge.utils.json_tools import extract_json

        assert extract_json('{"a": 1}') == {"a": 1}

    def test_object_wrapped_in_prose_and_fences(self):
        """Test JSON is found between the first '{' and the last '}'."""
        from podforge.utils.json_tools import extract_json

        text = 'Sure! Here you go:\n```json\n{"main_thesis": "x", "nested": {"k": [1, 2]}}\n```\nHope it helps.'
        assert extract_json(text) == {"main_thesis": "x", "nested": {"k": [1, 2]}}

    def test_control_characters_are_stripped(self):
        from podforge.utils.json_tools import extract_json

        assert extract_json('{"title": "Metro\x07 line"}') == {"title": "Metro line"}

    def test_empty_response(self):
        from podforge.errors import DecodeError
        from podforge.utils.json_tools import extract_json

        with pytest.raises(DecodeError):
            extract_json("   ")

    def test_no_object_keeps_raw_text(self):
        from podforge.errors import DecodeError
        from podforge.utils.json_tools import extract_json

        with pytest.raises(DecodeError) as exc_info:
            extract_json("I could not find anything")
        assert exc_info.value.raw_text == "I could not find anything"

    def test_invalid_json(self):
        from podforge.errors import DecodeError
        from podforge.utils.json_tools import extract_json

        with pytest.raises(DecodeError, match="Invalid JSON"):
            extract_json('{"a": 1,, }')


@pytest.mark.unit
class TestFieldHelpers:
    """Tests for pick, as_text_list and speech cleanup."""

    def test_pick_skips_empty_values(self):
        from podforge.utils.json_tools import pick

        data = {"title": "", "suggested_title": "Metro"}
        assert pick(data, ("title", "suggested_title")) == "Metro"
        assert pick(data, ("missing",), default="x") == "x"

    def test_as_text_list_accepts_dicts(self):
        from podforge.utils.json_tools import as_text_list

        value = ["  first  ", {"fact": "second"}, {"text": "third"}, None, ""]
        assert as_text_list(value) == ["first", "second", "third"]

    def test_as_text_list_rejects_scalars(self):
        from podforge.errors import DecodeError
        from podforge.utils.json_tools import as_text_list

        with pytest.raises(DecodeError):
            as_text_list(42)

    def test_clean_text_for_speech(self):
        from podforge.utils.json_tools import clean_text_for_speech

        text = "<p>El **metro**</p>\n\n<b>abrió</b> en 1969 [origin: web]"
        assert clean_text_for_speech(text) == "El metro abrió en 1969"
