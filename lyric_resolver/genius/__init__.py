"""
Genius integration: song resolution and page scraping

GeniusService wires the pieces together for callers:

    service = get_genius_service()
    outcome = await service.resolve("Midnight City", "M83")
    if isinstance(outcome, Success):
        content = await service.extract_all(outcome.candidate.url)
    await service.close()

API searches and page fetches are throttled by two separate gateways
(settings sections rate_limit and scraping).
"""

from typing import Optional

from .client import GeniusClient
from .models import (
    ArtistInfo,
    CandidateResult,
    Error,
    MatchOutcome,
    NotFound,
    ScoredCandidate,
    ScrapedContent,
    SearchQuery,
    SearchStrategy,
    Success
)
from .resolver import GeniusResolver
from .scorer import SimilarityScorer, jaccard_similarity, score_candidate, select_best_candidate
from .scraper import GeniusScraper
from ..config.settings import Settings, get_settings
from ..core.gateway import RateLimitedGateway, RateWindowSnapshot
from ..utils.logger import get_logger


class GeniusService:
    """
    Facade over the resolver, the scraper and their gateways

    Build it from settings (the default) or inject prepared components,
    which is how tests swap in mocked clients.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[GeniusClient] = None,
        resolver: Optional[GeniusResolver] = None,
        scraper: Optional[GeniusScraper] = None
    ):
        """
        Initialize the service

        Args:
            settings: Settings to build components from (global settings if None)
            client: Prebuilt client; gateways are created from settings otherwise
            resolver: Prebuilt resolver
            scraper: Prebuilt scraper
        """
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)

        if client is None:
            timeout = float(self.settings.network.request_timeout)
            api_gateway = RateLimitedGateway.from_config(
                self.settings.rate_limit, timeout=timeout, name="genius-api"
            )
            page_gateway = RateLimitedGateway.from_config(
                self.settings.scraping, timeout=timeout, name="genius-pages"
            )
            client = GeniusClient(
                gateway=api_gateway,
                page_gateway=page_gateway,
                access_token=self.settings.genius.access_token,
                api_base_url=self.settings.genius.api_base_url,
                per_page=self.settings.genius.search_per_page
            )

        self.client = client

        lyrics_config = self.settings.lyrics
        self.resolver = resolver or GeniusResolver(
            client,
            scorer=SimilarityScorer(lyrics_config.title_weight, lyrics_config.artist_bonus),
            strategy_delay=lyrics_config.strategy_delay,
            min_score=lyrics_config.min_score
        )
        self.scraper = scraper or GeniusScraper(client, user_agents=self.settings.scraping.user_agents)

    async def resolve(self, title: str, artist: str) -> MatchOutcome:
        """Resolve a title/artist pair (see GeniusResolver.resolve)"""
        return await self.resolver.resolve(title, artist)

    async def extract_lyrics(self, page_url: str) -> Optional[str]:
        """Lyrics-only extraction from a song page"""
        return await self.scraper.extract_lyrics(page_url)

    async def extract_all(self, page_url: str) -> Optional[ScrapedContent]:
        """Lyrics and metadata extraction from a song page"""
        return await self.scraper.extract_all(page_url)

    def gateway_state(self) -> RateWindowSnapshot:
        """Rate window of the API gateway"""
        return self.client.gateway.snapshot()

    def page_gateway_state(self) -> RateWindowSnapshot:
        """Rate window of the page gateway"""
        return self.client.page_gateway.snapshot()

    async def close(self) -> None:
        """Release HTTP sessions held by the gateways"""
        await self.client.gateway.close()
        if self.client.page_gateway is not self.client.gateway:
            await self.client.page_gateway.close()

    async def __aenter__(self) -> 'GeniusService':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


_genius_service: Optional[GeniusService] = None


def get_genius_service() -> GeniusService:
    """
    Get the global Genius service instance (singleton pattern)

    The shared instance keeps one rate window per gateway for the whole
    process, so every caller draws from the same budget.

    Returns:
        Global GeniusService instance
    """
    global _genius_service
    if not _genius_service:
        _genius_service = GeniusService()
    return _genius_service


def reset_genius_service() -> None:
    """Drop the global service so the next access rebuilds it from current settings"""
    global _genius_service
    _genius_service = None


__all__ = [
    'GeniusService',
    'get_genius_service',
    'reset_genius_service',
    'GeniusClient',
    'GeniusResolver',
    'GeniusScraper',
    'SimilarityScorer',
    'jaccard_similarity',
    'score_candidate',
    'select_best_candidate',
    'ArtistInfo',
    'CandidateResult',
    'ScoredCandidate',
    'ScrapedContent',
    'SearchQuery',
    'SearchStrategy',
    'MatchOutcome',
    'Success',
    'NotFound',
    'Error',
]
