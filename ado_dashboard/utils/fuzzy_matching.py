"""
Near-miss name suggestions based on Levenshtein distance.

Used for diagnostics only: when a variable group declared in pipeline YAML
cannot be linked to a library group, the closest library names are logged
so the typo is easy to spot.
"""

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from Levenshtein import distance as levenshtein_distance

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXACT_SUBSTRING_WEIGHT = 1.0
CASE_INSENSITIVE_WEIGHT = 0.9
COMMON_WORD_WEIGHT = 0.8
CHARACTER_DISTANCE_WEIGHT = 0.7
DEFAULT_SIMILARITY_THRESHOLD = 0.5

_TOKEN_SEPARATORS = re.compile(r"[\s\-_./\\()\[\]]+")


@dataclass
class MatchResult:
    """A candidate whose name scored at or above the similarity threshold."""

    item: Any
    name: str
    similarity: float = 0.0
    match_type: str = "fuzzy"


class FuzzyMatcher:
    """
    Scores candidate names against a query.

    The score is the best of: exact substring (1.0), case-insensitive
    substring (0.9), shared tokens by Jaccard index (up to 0.8) and
    normalized edit distance (up to 0.7).
    """

    def __init__(
        self,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        max_suggestions: int = 10,
    ):
        self.similarity_threshold = similarity_threshold
        self.max_suggestions = max_suggestions

    def find_matches(
        self,
        query: str,
        candidates: Sequence[T],
        name_extractor: Callable[[T], str] = str,
    ) -> list[MatchResult]:
        """
        Return candidates scoring at least the threshold, best first.

        Args:
            query: The name that failed to resolve
            candidates: Items to compare against
            name_extractor: Function returning the display name of a candidate
        """
        query = (query or "").strip()
        if not query or not candidates:
            return []

        results = []
        for candidate in candidates:
            candidate_name = name_extractor(candidate)
            if not candidate_name:
                continue

            similarity = self._calculate_similarity(query, candidate_name)
            if similarity >= self.similarity_threshold:
                results.append(
                    MatchResult(
                        item=candidate,
                        name=candidate_name,
                        similarity=similarity,
                        match_type=self._determine_match_type(query, candidate_name),
                    )
                )

        results.sort(key=lambda match: match.similarity, reverse=True)
        logger.debug(
            f"Fuzzy matching: query='{query}', candidates={len(candidates)}, matches={len(results)}"
        )
        return results[: self.max_suggestions]

    def _calculate_similarity(self, query: str, candidate: str) -> float:
        if query in candidate:
            return EXACT_SUBSTRING_WEIGHT

        query_lower = query.lower()
        candidate_lower = candidate.lower()
        if query_lower in candidate_lower:
            return CASE_INSENSITIVE_WEIGHT

        max_length = max(len(query_lower), len(candidate_lower))
        distance = levenshtein_distance(query_lower, candidate_lower)
        char_score = (max_length - distance) / max_length * CHARACTER_DISTANCE_WEIGHT

        return max(char_score, self._calculate_word_similarity(query_lower, candidate_lower))

    def _calculate_word_similarity(self, query: str, candidate: str) -> float:
        query_words = set(self._tokenize(query))
        candidate_words = set(self._tokenize(candidate))
        if not query_words or not candidate_words:
            return 0.0

        overlap = len(query_words & candidate_words) / len(query_words | candidate_words)
        return overlap * COMMON_WORD_WEIGHT

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        return [token.lower() for token in _TOKEN_SEPARATORS.split(text) if token]

    def _determine_match_type(self, query: str, candidate: str) -> str:
        if query == candidate:
            return "exact"
        if query in candidate:
            return "exact_substring"
        if query.lower() in candidate.lower():
            return "case_insensitive"
        if self._calculate_word_similarity(query.lower(), candidate.lower()) > 0.5:
            return "word_match"
        return "fuzzy"


def create_suggestion_error_message(
    query: str, resource_type: str, matches: list[MatchResult], max_suggestions: int = 5
) -> str:
    """
    Create a user-friendly "not found" message with suggestions.

    Args:
        query: The name that failed to resolve
        resource_type: Kind of resource, e.g. "Variable group"
        matches: Fuzzy match results, best first
        max_suggestions: Maximum number of names quoted in the message
    """
    if not matches:
        return f"{resource_type} '{query}' not found. No similar names available."

    suggestion_names = [f"'{match.name}'" for match in matches[:max_suggestions]]
    if len(suggestion_names) == 1:
        suggestion_text = suggestion_names[0]
    elif len(suggestion_names) == 2:
        suggestion_text = f"{suggestion_names[0]} or {suggestion_names[1]}"
    else:
        suggestion_text = f"{', '.join(suggestion_names[:-1])}, or {suggestion_names[-1]}"

    message = f"{resource_type} '{query}' not found. Did you mean: {suggestion_text}?"
    if len(matches) > max_suggestions:
        message += f" ({len(matches) - max_suggestions} more matches available)"
    return message
