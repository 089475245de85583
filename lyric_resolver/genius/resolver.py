"""
Multi-strategy search orchestration for Genius song resolution

A title/artist pair taken from local file metadata rarely matches the
Genius catalog verbatim. The resolver therefore tries a fixed sequence of
query reformulations (see SearchStrategy) and stops at the first one whose
search results contain a valid candidate:

1. DIRECT        "{title} {artist}"
2. NORMALIZED    punctuation and symbols stripped, whitespace collapsed
3. ARTIST_FIRST  "{artist} {title}"
4. TITLE_ONLY    "{title}"
5. ARTIST_ONLY   "{artist}"

Candidates are always scored against the direct query, whichever strategy
produced them, so scores stay comparable across strategies.

A failing strategy (network error, rate limit rejection, bad response) is
logged and the next strategy runs. resolve() never raises apart from
cancellation: every outcome is a Success, NotFound or Error value.
"""

import asyncio
from typing import List, Optional

from .client import GeniusClient
from .models import (
    CandidateResult,
    Error,
    MatchOutcome,
    NotFound,
    SearchQuery,
    SearchStrategy,
    Success
)
from .scorer import SimilarityScorer
from ..core.exceptions import MalformedCandidate
from ..utils.logger import get_logger, log_performance


class GeniusResolver:
    """
    Resolves loosely identified songs to Genius catalog entries

    Strategies run strictly one after another with a courtesy delay between
    consecutive searches, on top of whatever the gateway budget imposes.
    Separate resolve() calls may run concurrently; they only share the
    client's gateway.
    """

    def __init__(
        self,
        client: GeniusClient,
        scorer: Optional[SimilarityScorer] = None,
        strategy_delay: float = 0.2,
        min_score: float = 0.0,
        strategies: Optional[List[SearchStrategy]] = None
    ):
        """
        Initialize the resolver

        Args:
            client: Genius client used for searches
            scorer: Candidate scorer (default weights when None)
            strategy_delay: Seconds to pause between consecutive strategy searches
            min_score: Best candidates scoring below this are treated as no match
            strategies: Strategy order override (all strategies in declaration order by default)
        """
        self.logger = get_logger(__name__)
        self.client = client
        self.scorer = scorer or SimilarityScorer()
        self.strategy_delay = strategy_delay
        self.min_score = min_score
        self.strategies = list(strategies) if strategies else list(SearchStrategy)

    @log_performance
    async def resolve(self, title: str, artist: str) -> MatchOutcome:
        """
        Resolve a title/artist pair to the best Genius candidate

        Args:
            title: Song title
            artist: Artist name

        Returns:
            Success with the candidate, winning strategy and score;
            NotFound when every strategy came up empty;
            Error when the resolution itself could not run
        """
        try:
            return await self._run_strategies(SearchQuery(title=title or "", artist=artist or ""))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Resolution failed for '{artist} - {title}': {e}")
            return Error(message=str(e) or e.__class__.__name__)

    async def _run_strategies(self, query: SearchQuery) -> MatchOutcome:
        scoring_query = query.direct
        searched = False

        for strategy in self.strategies:
            search_text = strategy.build_query(query).strip()
            if not search_text:
                self.logger.debug(f"Skipping {strategy.value}: empty query")
                continue

            if searched and self.strategy_delay > 0:
                await asyncio.sleep(self.strategy_delay)
            searched = True

            outcome = await self._try_strategy(strategy, search_text, scoring_query)
            if isinstance(outcome, Success):
                self.logger.info(
                    f"Matched '{query}' via {strategy.value}: "
                    f"{outcome.candidate} (score {outcome.score:.3f})"
                )
                return outcome

        self.logger.info(f"No match for '{query}' after {len(self.strategies)} strategies")
        return NotFound()

    async def _try_strategy(
        self,
        strategy: SearchStrategy,
        search_text: str,
        scoring_query: str
    ) -> MatchOutcome:
        """
        Run one strategy; errors become an Error outcome for that strategy only
        """
        try:
            return await self._search_and_score(strategy, search_text, scoring_query)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.warning(f"Strategy {strategy.value} failed for '{search_text}': {e}")
            return Error(message=str(e) or e.__class__.__name__)

    async def _search_and_score(
        self,
        strategy: SearchStrategy,
        search_text: str,
        scoring_query: str
    ) -> MatchOutcome:
        hits = await self.client.search(search_text)
        if not hits:
            self.logger.debug(f"Strategy {strategy.value}: no hits for '{search_text}'")
            return NotFound()

        candidates = self._parse_candidates(hits)
        best = self.scorer.select_best(candidates, scoring_query)

        if best is None:
            self.logger.debug(
                f"Strategy {strategy.value}: {len(hits)} hits, none valid for '{search_text}'"
            )
            return NotFound()

        if best.score < self.min_score:
            self.logger.debug(
                f"Strategy {strategy.value}: best score {best.score:.3f} "
                f"below minimum {self.min_score:.3f}"
            )
            return NotFound()

        return Success(candidate=best.candidate, strategy=strategy, score=best.score)

    def _parse_candidates(self, hits: list) -> List[CandidateResult]:
        candidates = []
        for hit in hits:
            try:
                candidates.append(CandidateResult.from_hit(hit))
            except (MalformedCandidate, TypeError, ValueError, AttributeError) as e:
                self.logger.debug(f"Ignoring malformed hit: {e}")
        return candidates
