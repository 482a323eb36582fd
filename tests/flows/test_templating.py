"""Tests for placeholder substitution."""

from flowreplay.flows.templating import find_placeholders, substitute_variables


class TestSubstituteVariables:
    """Tests for substitute_variables."""

    def test_replaces_placeholders(self):
        assert substitute_variables("Hello {{name}}!", {"name": "Ada"}) == "Hello Ada!"

    def test_missing_variable_becomes_empty(self):
        assert substitute_variables("{{user}}@example.com", {}) == "@example.com"

    def test_repeated_and_non_string_values(self):
        assert substitute_variables("{{n}}-{{n}}-{{m}}", {"n": 1, "m": None}) == "1-1-"

    def test_text_without_placeholders(self):
        assert substitute_variables("plain {text}", {"text": "x"}) == "plain {text}"


class TestFindPlaceholders:
    """Tests for find_placeholders."""

    def test_names_in_order(self):
        assert find_placeholders("{{b}} {{a}} {{b}}") == ["b", "a"]

    def test_none(self):
        assert find_placeholders("") == []
