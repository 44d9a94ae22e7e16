"""
Unit tests for the near-miss name suggestions used when a variable group
declared in pipeline YAML cannot be resolved.
"""

from dataclasses import dataclass

import pytest

from ado_dashboard.utils.fuzzy_matching import (
    DEFAULT_SIMILARITY_THRESHOLD,
    FuzzyMatcher,
    MatchResult,
    create_suggestion_error_message,
)


@dataclass
class MockVariableGroup:
    id: int
    name: str


GROUPS = [
    MockVariableGroup(1, "Prod-Config"),
    MockVariableGroup(2, "Staging-Config"),
    MockVariableGroup(3, "storefront-dev"),
    MockVariableGroup(4, "Release Secrets"),
]


class TestFuzzyMatcher:
    def setup_method(self):
        self.matcher = FuzzyMatcher()

    def test_exact_substring_scores_highest(self):
        matches = self.matcher.find_matches("Config", GROUPS, lambda group: group.name)

        assert matches[0].similarity == 1.0, (
            f"Expected exact substring similarity 1.0 but got {matches[0].similarity}"
        )
        assert {match.item.id for match in matches[:2]} == {1, 2}

    def test_case_insensitive_substring(self):
        matches = self.matcher.find_matches("STOREFRONT", GROUPS, lambda group: group.name)

        assert matches[0].item.id == 3, f"Expected storefront-dev but got {matches[0].name}"
        assert matches[0].match_type == "case_insensitive"

    def test_typo_is_matched_by_edit_distance(self):
        matches = self.matcher.find_matches("Stagng-Confg", GROUPS, lambda group: group.name)

        assert matches and matches[0].item.id == 2, (
            f"Expected Staging-Config first but got {[m.name for m in matches]}"
        )
        assert DEFAULT_SIMILARITY_THRESHOLD <= matches[0].similarity < 1.0

    def test_unrelated_query_has_no_matches(self):
        matches = self.matcher.find_matches("zzzz", GROUPS, lambda group: group.name)

        assert matches == [], f"Expected no matches but got {[m.name for m in matches]}"

    def test_max_suggestions(self):
        matcher = FuzzyMatcher(max_suggestions=1)

        matches = matcher.find_matches("Config", GROUPS, lambda group: group.name)

        assert len(matches) == 1, f"Expected one suggestion but got {len(matches)}"

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_blank_query(self, query):
        assert self.matcher.find_matches(query, GROUPS, lambda group: group.name) == []

    def test_plain_strings_by_default(self):
        matches = self.matcher.find_matches("prod", ["prod-config", "dev-config"])

        assert [match.name for match in matches][0] == "prod-config"


class TestSuggestionMessage:
    def test_no_matches(self):
        message = create_suggestion_error_message("Stagin", "Variable group", [])

        assert message == "Variable group 'Stagin' not found. No similar names available."

    def test_two_matches(self):
        matches = [MatchResult(item=None, name="Prod-Config"), MatchResult(item=None, name="Staging-Config")]

        message = create_suggestion_error_message("Config", "Variable group", matches)

        assert message == (
            "Variable group 'Config' not found. Did you mean: 'Prod-Config' or 'Staging-Config'?"
        ), f"Unexpected message: {message}"

    def test_more_matches_than_shown(self):
        matches = [MatchResult(item=None, name=f"group-{index}") for index in range(4)]

        message = create_suggestion_error_message("group", "Variable group", matches, max_suggestions=3)

        assert "'group-0', 'group-1', or 'group-2'" in message, f"Unexpected message: {message}"
        assert message.endswith("(1 more matches available)")
