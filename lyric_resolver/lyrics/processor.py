"""
Track enrichment pipeline: resolve a song on Genius, then scrape its page

This is the flow a media library runs for every scanned track:

1. Preprocessing: strip video/streaming decorations from the title and
   channel suffixes from the artist (optional)
2. Content filter: skip podcasts, trailers, interviews and similar
   non-musical entries before spending any request budget (optional)
3. Resolution: multi-strategy Genius search (GeniusService.resolve)
4. Extraction: lyrics and metadata from the matched song page
5. Cover art fallback: when the page exposes no cover image, the image
   from the search hit is used instead

Batches resolve several tracks concurrently, bounded by a semaphore; the
gateways behind the service keep the combined request rate within budget.
Persisting the results is up to the caller.
"""

import asyncio
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config.settings import get_settings
from ..genius import GeniusService, get_genius_service
from ..genius.models import Error, MatchOutcome, ScrapedContent, SearchStrategy, Success
from ..utils.helpers import is_musical_content, preprocess_search
from ..utils.logger import get_logger, create_operation_logger


class EnrichmentStatus(Enum):
    """
    Final state of one track enrichment

    - MATCHED: a Genius song was found (content may still be missing if the page failed)
    - NOT_FOUND: every search strategy came up empty
    - ERROR: the resolution could not run
    - SKIPPED: the track was filtered out as non-musical
    """
    MATCHED = "matched"
    NOT_FOUND = "not_found"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class EnrichmentResult:
    """
    Result of enriching one track

    Attributes:
        title: Title as given by the caller
        artist: Artist as given by the caller
        status: Final enrichment status
        outcome: Resolution outcome (None when skipped)
        content: Scraped page content (None unless matched and the page was readable)
        search_title: Title actually searched after preprocessing
        search_artist: Artist actually searched after preprocessing
        duration: Seconds spent on the track
        error_message: Failure description for ERROR results
    """
    title: str
    artist: str
    status: EnrichmentStatus
    outcome: Optional[MatchOutcome] = None
    content: Optional[ScrapedContent] = None
    search_title: str = ""
    search_artist: str = ""
    duration: float = 0.0
    error_message: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.status == EnrichmentStatus.MATCHED

    @property
    def lyrics(self) -> Optional[str]:
        return self.content.lyrics if self.content else None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly summary"""
        data: Dict[str, Any] = {
            'title': self.title,
            'artist': self.artist,
            'status': self.status.value,
            'search_title': self.search_title,
            'search_artist': self.search_artist,
            'duration': round(self.duration, 3),
        }

        if isinstance(self.outcome, Success):
            candidate = self.outcome.candidate
            data['match'] = {
                'id': candidate.id,
                'title': candidate.title,
                'artist': candidate.primary_artist_name,
                'url': candidate.url,
                'strategy': self.outcome.strategy.value,
                'score': round(self.outcome.score, 4),
            }

        if self.content is not None:
            data['content'] = self.content.to_dict()

        if self.error_message:
            data['error'] = self.error_message

        return data


@dataclass
class TrackRequest:
    """One title/artist pair queued for enrichment"""
    title: str
    artist: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


class LyricsProcessor:
    """
    Coordinates resolution and scraping for single tracks and batches

    Keeps running statistics per status and per winning strategy, which
    the CLI prints after a batch.
    """

    def __init__(
        self,
        service: Optional[GeniusService] = None,
        preprocess_queries: Optional[bool] = None,
        skip_non_musical: Optional[bool] = None,
        concurrency: Optional[int] = None
    ):
        """
        Initialize the processor

        Args:
            service: Genius service (global service if None)
            preprocess_queries: Override for settings.lyrics.preprocess_queries
            skip_non_musical: Override for settings.lyrics.skip_non_musical
            concurrency: Override for settings.network.concurrency
        """
        self.settings = get_settings()
        self.logger = get_logger(__name__)
        self.service = service or get_genius_service()

        self.preprocess_queries = (
            self.settings.lyrics.preprocess_queries if preprocess_queries is None else preprocess_queries
        )
        self.skip_non_musical = (
            self.settings.lyrics.skip_non_musical if skip_non_musical is None else skip_non_musical
        )
        self.concurrency = concurrency or self.settings.network.concurrency

        self.stats = {
            'total_tracks': 0,
            'status_counts': {status: 0 for status in EnrichmentStatus},
            'strategy_counts': {strategy: 0 for strategy in SearchStrategy},
            'lyrics_found': 0,
            'total_time': 0.0,
        }

    def _prepare_query(self, title: str, artist: str) -> Tuple[str, str]:
        if self.preprocess_queries:
            return preprocess_search(title, artist)
        return title, artist

    async def process_track(self, title: str, artist: str) -> EnrichmentResult:
        """
        Resolve one track and scrape its Genius page

        Never raises apart from cancellation: failures are reported through
        the result status.

        Args:
            title: Track title from file metadata
            artist: Track artist from file metadata

        Returns:
            EnrichmentResult
        """
        start_time = time.monotonic()
        search_title, search_artist = self._prepare_query(title or "", artist or "")

        result = EnrichmentResult(
            title=title,
            artist=artist,
            status=EnrichmentStatus.NOT_FOUND,
            search_title=search_title,
            search_artist=search_artist
        )

        if self.skip_non_musical and not is_musical_content(search_title, search_artist):
            self.logger.info(f"Skipping non-musical content: {artist} - {title}")
            result.status = EnrichmentStatus.SKIPPED
            return self._finish(result, start_time)

        outcome = await self.service.resolve(search_title, search_artist)
        result.outcome = outcome

        if isinstance(outcome, Success):
            result.status = EnrichmentStatus.MATCHED
            result.content = await self._extract_content(outcome)
        elif isinstance(outcome, Error):
            result.status = EnrichmentStatus.ERROR
            result.error_message = outcome.message
        else:
            result.status = EnrichmentStatus.NOT_FOUND

        return self._finish(result, start_time)

    async def _extract_content(self, outcome: Success) -> Optional[ScrapedContent]:
        candidate = outcome.candidate
        content = await self.service.extract_all(candidate.url)

        if content is None:
            self.logger.warning(f"Matched {candidate.url} but the page could not be scraped")
            return None

        if not content.cover_art_url and candidate.cover_art_url:
            content = replace(content, cover_art_url=candidate.cover_art_url)

        return content

    def _finish(self, result: EnrichmentResult, start_time: float) -> EnrichmentResult:
        result.duration = time.monotonic() - start_time

        self.stats['total_tracks'] += 1
        self.stats['status_counts'][result.status] += 1
        self.stats['total_time'] += result.duration
        if isinstance(result.outcome, Success):
            self.stats['strategy_counts'][result.outcome.strategy] += 1
        if result.lyrics:
            self.stats['lyrics_found'] += 1

        self.logger.debug(
            f"{result.artist} - {result.title}: {result.status.value} in {result.duration:.2f}s"
        )
        return result

    async def process_batch(
        self,
        tracks: Sequence[TrackRequest],
        concurrency: Optional[int] = None,
        show_progress: bool = True
    ) -> List[EnrichmentResult]:
        """
        Enrich many tracks concurrently

        Args:
            tracks: Tracks to enrich
            concurrency: Maximum tracks in flight (processor default if None)
            show_progress: Draw a progress bar on the console

        Returns:
            Results in the same order as the input tracks
        """
        limit = max(1, concurrency or self.concurrency)
        semaphore = asyncio.Semaphore(limit)
        total = len(tracks)

        operation = create_operation_logger(__name__, "Lyrics enrichment", show_progress=show_progress)
        operation.start(f"Enriching {total} tracks ({limit} at a time)", total=total)

        async def run(track: TrackRequest) -> EnrichmentResult:
            async with semaphore:
                result = await self.process_track(track.title, track.artist)
            operation.progress(f"{track.artist} - {track.title}: {result.status.value}", status=result.status.value)
            return result

        try:
            results = await asyncio.gather(*(run(track) for track in tracks))
        except Exception as e:
            operation.error(str(e), e)
            raise

        counts = operation.summary()
        operation.complete(
            f"Enrichment completed: {counts.get('matched', 0)}/{total} matched "
            f"in {operation.elapsed():.1f}s"
        )
        return list(results)

    def get_stats(self) -> Dict[str, Any]:
        """
        Processing statistics

        Returns:
            Counts per status and per winning strategy, plus success rate
            and average time per track
        """
        total = self.stats['total_tracks']
        matched = self.stats['status_counts'][EnrichmentStatus.MATCHED]
        success_rate = (matched / total * 100) if total > 0 else 0

        return {
            'total_tracks': total,
            'matched': matched,
            'success_rate': f"{success_rate:.1f}%",
            'lyrics_found': self.stats['lyrics_found'],
            'average_time': (self.stats['total_time'] / total) if total > 0 else 0.0,
            'status_counts': {status.value: count for status, count in self.stats['status_counts'].items()},
            'strategy_counts': {
                strategy.value: count for strategy, count in self.stats['strategy_counts'].items()
            },
        }


_lyrics_processor: Optional[LyricsProcessor] = None


def get_lyrics_processor() -> LyricsProcessor:
    """
    Get the global lyrics processor instance (singleton pattern)

    Returns:
        Global LyricsProcessor instance
    """
    global _lyrics_processor
    if not _lyrics_processor:
        _lyrics_processor = LyricsProcessor()
    return _lyrics_processor


def reset_lyrics_processor() -> None:
    """Drop the global processor so the next access rebuilds it"""
    global _lyrics_processor
    _lyrics_processor = None
