"""
Unit tests for template parsing, modifiers and rendering.
"""

from unittest.mock import MagicMock

import pytest

from importer.template_engine import (
    TemplateEngine,
    TemplateTokenCache,
    apply_modifier,
    find_column,
    parse_template_tokens,
)


class TestParseTemplateTokens:
    """Tests for token extraction."""

    def test_tokens_in_template_order(self):
        """Test tokens keep their order and positions."""
        tokens = parse_template_tokens("%Prenom:firstchar%.%Nom%")

        assert [t.column_name for t in tokens] == ["Prenom", "Nom"]
        assert tokens[0].modifier == "firstchar"
        assert tokens[1].modifier is None
        assert tokens[0].start == 0
        assert tokens[1].full_match == "%Nom%"

    def test_malformed_template_yields_no_tokens(self):
        """Test a lone percent sign is literal text."""
        assert parse_template_tokens("100% sure") == ()


class TestApplyModifier:
    """Tests for the modifier table."""

    @pytest.mark.parametrize(
        "modifier,expected",
        [
            ("uppercase", "JEAN-PAUL DUPONT"),
            ("lowercase", "jean-paul dupont"),
            ("capitalize", "Jean-Paul Dupont"),
            ("camelcase", "jean-paulDupont"),
            ("pascalcase", "Jean-paulDupont"),
            ("first", "j"),
            ("firstchar", "j"),
            ("firstcharupper", "J"),
            ("UPPERCASE", "JEAN-PAUL DUPONT"),
        ],
    )
    def test_modifiers(self, modifier, expected):
        """Test each modifier on a mixed-case value."""
        assert apply_modifier("jean-paul DUPONT", modifier) == expected

    def test_trim(self):
        """Test trim removes surrounding whitespace."""
        assert apply_modifier("  Jean  ", "trim") == "Jean"

    def test_firstcharlower(self):
        """Test firstcharlower lowers only the first character."""
        assert apply_modifier("Jean", "firstcharlower") == "j"

    def test_username(self):
        """Test username applies account-name normalization."""
        assert apply_modifier("Élise Martin", "username") == "elise.martin"

    def test_unknown_modifier_returns_value(self):
        """Test an unknown modifier leaves the value unchanged."""
        assert apply_modifier("Jean", "reverse") == "Jean"

    def test_empty_value_unchanged(self):
        """Test modifiers never fail on an empty value."""
        assert apply_modifier("", "firstchar") == ""


class TestTemplateEngine:
    """Tests for TemplateEngine.render."""

    def setup_method(self):
        self.engine = TemplateEngine()

    def test_literal_template_returned_unchanged(self):
        """Test a template without percent signs is a literal."""
        assert self.engine.render("Students", {"Foo": "Bar"}) == "Students"

    def test_blank_template_renders_empty(self):
        """Test blank templates render as empty strings."""
        assert self.engine.render("   ", {"Foo": "Bar"}) == ""
        assert self.engine.render(None, {"Foo": "Bar"}) == ""

    def test_simple_token(self):
        """Test %Foo% resolves to the column value."""
        assert self.engine.render("%Foo%", {"Foo": "Bar"}) == "Bar"

    def test_token_with_modifier(self):
        """Test %Foo:uppercase% applies the modifier."""
        assert self.engine.render("%Foo:uppercase%", {"Foo": "Bar"}) == "BAR"

    def test_column_lookup_is_case_insensitive(self):
        """Test tokens match columns regardless of case."""
        assert self.engine.render("%prenom%", {"Prenom": "Jean"}) == "Jean"

    def test_mixed_literal_and_tokens(self):
        """Test literal text around tokens is preserved."""
        row = {"Prenom": "Jean", "Nom": "Dupont"}
        result = self.engine.render("%Prenom:firstchar%.%Nom:lowercase%@school", row)
        assert result == "J.dupont@school"

    def test_missing_column_renders_empty_and_is_reported(self):
        """Test an absent column renders empty and is recorded once."""
        missing = []
        result = self.engine.render("%Prenom% %Absent% %Absent%", {"Prenom": "Jean"}, missing)

        assert result == "Jean  "
        assert missing == ["Absent"]

    def test_value_containing_token_syntax_is_not_rescanned(self):
        """Test substituted values are never expanded again."""
        row = {"A": "%B%", "B": "oops"}
        assert self.engine.render("%A%", row) == "%B%"

    def test_none_cell_renders_empty(self):
        """Test a None cell is treated as an empty string."""
        assert self.engine.render("x%Foo%x", {"Foo": None}) == "xx"

    def test_cache_parses_each_template_once(self):
        """Test the injected cache is used for repeated renders."""
        cache = TemplateTokenCache()
        engine = TemplateEngine(token_cache=cache)

        engine.render("%Foo%", {"Foo": "1"})
        engine.render("%Foo%", {"Foo": "2"})

        assert "%Foo%" in cache
        assert len(cache) == 1

    def test_cache_calls_parser_only_on_miss(self):
        """Test get_or_parse reuses the stored token tuple."""
        cache = TemplateTokenCache()
        parser = MagicMock(return_value=())

        cache.get_or_parse("%X%", parser)
        cache.get_or_parse("%X%", parser)

        parser.assert_called_once_with("%X%")

    def test_cache_is_bounded(self):
        """Test the cache evicts beyond its maximum size."""
        cache = TemplateTokenCache(maxsize=2)
        for template in ("%A%", "%B%", "%C%"):
            cache.get_or_parse(template, parse_template_tokens)

        assert len(cache) == 2
        assert "%A%" not in cache


class TestFindColumn:
    """Tests for case-insensitive column lookup."""

    def test_exact_match_preferred(self):
        assert find_column({"Nom": "x", "nom": "y"}, "nom") == "nom"

    def test_absent_column(self):
        assert find_column({"Nom": "x"}, "Prenom") is None
