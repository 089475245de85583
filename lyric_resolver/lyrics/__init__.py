"""
Lyrics enrichment package

Runs the full per-track flow (preprocess, resolve on Genius, scrape the song
page) for single tracks and concurrent batches.

Usage:
    processor = get_lyrics_processor()
    result = await processor.process_track("Midnight City", "M83")
"""

from .processor import (
    get_lyrics_processor,
    reset_lyrics_processor,
    LyricsProcessor,
    EnrichmentResult,
    EnrichmentStatus,
    TrackRequest
)

__all__ = [
    'get_lyrics_processor',
    'reset_lyrics_processor',
    'LyricsProcessor',
    'EnrichmentResult',
    'EnrichmentStatus',
    'TrackRequest'
]
