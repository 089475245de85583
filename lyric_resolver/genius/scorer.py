"""
Similarity scoring for Genius search candidates

score = title_weight * jaccard(tokens(candidate title), tokens(query))
        + artist_bonus if the candidate's primary artist name appears in the query

Tokens are lowercase runs of word characters compared as sets. With the
default weights a score lies in [0.0, 0.9].
"""

from typing import Iterable, Optional, Set

from .models import CandidateResult, ScoredCandidate
from ..utils.helpers import tokenize


DEFAULT_TITLE_WEIGHT = 0.6
DEFAULT_ARTIST_BONUS = 0.3


def jaccard_similarity(first: Set[str], second: Set[str]) -> float:
    """
    Jaccard index of two token sets

    Returns:
        |A & B| / |A | B|, or 0.0 when either set is empty
    """
    if not first or not second:
        return 0.0
    return len(first & second) / len(first | second)


class SimilarityScorer:
    """
    Ranks search candidates against a query string

    Attributes:
        title_weight: Multiplier applied to the title/query Jaccard index
        artist_bonus: Flat bonus when the primary artist is named in the query
    """

    def __init__(
        self,
        title_weight: float = DEFAULT_TITLE_WEIGHT,
        artist_bonus: float = DEFAULT_ARTIST_BONUS
    ):
        self.title_weight = title_weight
        self.artist_bonus = artist_bonus

    def score(self, candidate: CandidateResult, query: str) -> float:
        """
        Score one candidate against a query

        Args:
            candidate: Search candidate
            query: Query text the candidate should match

        Returns:
            Similarity score (higher is better)
        """
        title_similarity = jaccard_similarity(tokenize(candidate.title), tokenize(query))
        score = self.title_weight * title_similarity

        artist_name = candidate.primary_artist_name.strip().lower()
        if artist_name and artist_name in query.lower():
            score += self.artist_bonus

        return score

    def select_best(
        self,
        candidates: Iterable[CandidateResult],
        query: str
    ) -> Optional[ScoredCandidate]:
        """
        Pick the highest scoring valid candidate

        Invalid candidates are skipped. Ties keep the candidate seen first.

        Args:
            candidates: Candidates in search response order
            query: Query text used for scoring

        Returns:
            Best ScoredCandidate, or None when no candidate is valid
        """
        best: Optional[ScoredCandidate] = None

        for candidate in candidates:
            if not candidate.is_valid():
                continue
            score = self.score(candidate, query)
            if best is None or score > best.score:
                best = ScoredCandidate(candidate=candidate, score=score)

        return best


def score_candidate(
    candidate: CandidateResult,
    query: str,
    title_weight: float = DEFAULT_TITLE_WEIGHT,
    artist_bonus: float = DEFAULT_ARTIST_BONUS
) -> float:
    """Score one candidate with the given weights"""
    return SimilarityScorer(title_weight, artist_bonus).score(candidate, query)


def select_best_candidate(
    candidates: Iterable[CandidateResult],
    query: str,
    title_weight: float = DEFAULT_TITLE_WEIGHT,
    artist_bonus: float = DEFAULT_ARTIST_BONUS
) -> Optional[ScoredCandidate]:
    """Pick the best valid candidate with the given weights"""
    return SimilarityScorer(title_weight, artist_bonus).select_best(candidates, query)
