"""
Unit tests for the anonymization rule tables.

Validates:
- PatternRule substitution and counting
- Place-name rule (case-sensitive, preposition-introduced)
- Phrase table word-boundary matching
- RuleTable ordering, categories and mutation

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|---------------------|---------------------------------------|-----------------|-------|
| TC-PR-N-01 | phrase_rule applied to matching text | Equivalence – normal | Replaced, count=1 | - |
| TC-PR-N-02 | phrase_rule is case-insensitive | Equivalence – normal | "City" replaced | - |
| TC-PR-B-01 | Phrase inside a longer word | Boundary – word edge | Not replaced | "now" in "know" |
| TC-PL-N-01 | "in Manhattan" | Equivalence – normal | "in location" | - |
| TC-PL-N-02 | Multi-word place "from New York" | Equivalence – normal | "from location" | - |
| TC-PL-N-03 | Sentence-initial "In Paris" | Equivalence – normal | "In location" | - |
| TC-PL-B-01 | Lower-case place "in manhattan" | Boundary – casing | Unchanged | - |
| TC-PL-B-02 | Pronoun "at I" | Boundary – pronoun | Unchanged | - |
| TC-PL-B-03 | Capitalized "Me" / "My" / "Mine" | Boundary – pronoun | Unchanged | "Mexico" still a place |
| TC-RT-N-01 | Default phrase table | Equivalence – normal | 17 rules, 4 categories | - |
| TC-RT-N-02 | Default advanced table | Equivalence – normal | 8 rules, "near me" first | - |
| TC-RT-N-03 | add() / clear() | Equivalence – normal | Length tracks mutations | - |
| TC-GP-N-01 | collapse_whitespace | Equivalence – normal | Single spaces, trimmed | - |
"""

import pytest

from mirror.anonymizer.rules import (
    NUMBER_PATTERN,
    PLACE_NAME_RULE,
    RuleTable,
    build_advanced_table,
    build_phrase_table,
    collapse_whitespace,
    phrase_rule,
)

pytestmark = pytest.mark.unit


class TestPatternRule:
    """Tests for PatternRule substitution."""

    def test_phrase_rule_replaces_match(self):
        """TC-PR-N-01: Matching phrase is replaced and counted."""
        # Given: A phrase rule for "restaurant"
        rule = phrase_rule("restaurant", "food_place", "food")

        # When: Applying to text containing the phrase
        text, count = rule.apply("cheap restaurant downtown")

        # Then: Phrase replaced once
        assert text == "cheap food_place downtown"
        assert count == 1
        assert rule.category == "food"

    def test_phrase_rule_ignores_case(self):
        """TC-PR-N-02: Matching is case-insensitive."""
        # Given: A phrase rule for "city"
        rule = phrase_rule("city", "location", "location")

        # When: Applying to capitalised text
        text, count = rule.apply("City lights")

        # Then: Replaced regardless of case
        assert text == "location lights"
        assert count == 1

    def test_phrase_rule_respects_word_boundaries(self):
        """TC-PR-B-01: Phrase embedded in a longer word is left alone."""
        # Given: A phrase rule for "now"
        rule = phrase_rule("now", "current", "temporal")

        # When: Applying to "know" and "snow"
        text, count = rule.apply("i know snow")

        # Then: Nothing replaced
        assert text == "i know snow"
        assert count == 0


class TestPlaceNameRule:
    """Tests for the capitalised place-name rule."""

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("pizza in Manhattan", "pizza in location"),
            ("flights from New York", "flights from location"),
            ("In Paris tonight", "In location tonight"),
            ("hotels near Central Park cheap", "hotels near location cheap"),
        ],
    )
    def test_place_names_generalized(self, query: str, expected: str):
        """TC-PL-N-01..03: Capitalised places after a preposition become "location"."""
        # Given: Query with a capitalised place name
        # When: Applying the place rule
        text, count = PLACE_NAME_RULE.apply(query)

        # Then: Place replaced, preposition kept
        assert text == expected
        assert count == 1

    def test_lowercase_place_untouched(self):
        """TC-PL-B-01: Rule is case-sensitive on the place name."""
        # Given: Lower-cased place name
        # When: Applying the place rule
        text, count = PLACE_NAME_RULE.apply("pizza in manhattan")

        # Then: Unchanged
        assert text == "pizza in manhattan"
        assert count == 0

    def test_pronoun_i_not_treated_as_place(self):
        """TC-PL-B-02: "I" after a preposition is not a place."""
        # Given: Query with "at I"
        # When: Applying the place rule
        text, count = PLACE_NAME_RULE.apply("where at I stand")

        # Then: Unchanged
        assert count == 0
        assert text == "where at I stand"

    @pytest.mark.parametrize(
        "query",
        ["pizza near Me", "lunch from My office", "coffee at Mine", "books In My bag"],
    )
    def test_capitalized_pronouns_not_treated_as_places(self, query: str):
        """TC-PL-B-03: Capitalized pronouns after a preposition are not places."""
        # Given: Pronoun written with a capital letter
        # When: Applying the place rule
        text, count = PLACE_NAME_RULE.apply(query)

        # Then: Unchanged, left for the pronoun pattern
        assert count == 0
        assert text == query

    def test_place_starting_with_pronoun_letters(self):
        """A place name that merely begins with "Me" is still generalized."""
        text, count = PLACE_NAME_RULE.apply("tacos in Mexico")

        assert text == "tacos in location"
        assert count == 1


class TestRuleTable:
    """Tests for RuleTable and the default tables."""

    def test_default_phrase_table(self):
        """TC-RT-N-01: Default phrase table has 17 rules in 4 categories."""
        # Given/When: Building the default phrase table
        table = build_phrase_table()

        # Then: Expected size and categories
        assert len(table) == 17
        assert table.categories == ["location", "food", "temporal", "personal"]

    def test_default_advanced_table_order(self):
        """TC-RT-N-02: "near me" is generalized before pronouns are stripped."""
        # Given: Default advanced table
        table = build_advanced_table()
        rules = list(table)

        # When: Applying the first rule
        text, count = rules[0].apply("coffee near me")

        # Then: Whole phrase replaced and categories in order
        assert len(table) == 8
        assert text == "coffee in the area"
        assert count == 1
        assert table.categories == ["location", "personal", "preference", "food", "temporal"]

    def test_add_and_clear(self):
        """TC-RT-N-03: add() appends, clear() empties."""
        # Given: Empty table
        table = RuleTable()

        # When: Adding then clearing
        table.add(phrase_rule("x", "y", "misc"))
        size_after_add = len(table)
        table.clear()

        # Then: Length tracks mutations
        assert size_after_add == 1
        assert len(table) == 0
        assert list(table) == []


class TestGenericPatterns:
    """Tests for helpers shared by the lower tiers."""

    def test_collapse_whitespace(self):
        """TC-GP-N-01: Runs of whitespace collapse to one space."""
        assert collapse_whitespace("  a \t b\n\nc  ") == "a b c"

    def test_number_pattern_matches_whole_numbers(self):
        """Bare integers match, digits inside words do not."""
        assert NUMBER_PATTERN.sub("number", "room 42 mp3") == "room number mp3"
