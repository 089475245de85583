"""Test configuration and fixtures"""

import pytest
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, Mock

from lyric_resolver.core.gateway import GatewayResponse
from lyric_resolver.genius.client import GeniusClient


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def mock_settings():
    """Mock settings for testing"""
    settings = Mock()
    settings.lyrics.preprocess_queries = True
    settings.lyrics.skip_non_musical = True
    settings.network.concurrency = 2
    return settings


@pytest.fixture
def make_hit():
    """Factory for raw Genius search hits"""
    def factory(song_id="1", title="Midnight City", artist="M83",
                url=None, thumbnail="https://images.genius.com/thumb.jpg"):
        result = {
            'id': song_id,
            'title': title,
            'url': url if url is not None else f"https://genius.com/{song_id}-lyrics",
            'song_art_image_thumbnail_url': thumbnail,
            'primary_artist': {'id': f"a{song_id}", 'name': artist} if artist is not None else None,
            'featured_artists': [],
            'stats': {'pageviews': 1000, 'hot': False},
        }
        return {'type': 'song', 'result': result}
    return factory


@pytest.fixture
def mock_client():
    """GeniusClient stand-in with awaitable search and fetch_page"""
    client = Mock(spec=GeniusClient)
    client.search = AsyncMock(return_value=[])
    client.fetch_page = AsyncMock()
    return client


@pytest.fixture
def page_response():
    """Factory for fetched page responses"""
    def factory(text, status=200, url="https://genius.com/M83-midnight-city-lyrics"):
        return GatewayResponse(status=status, url=url, text=text)
    return factory


@pytest.fixture
def sample_song_html():
    """Trimmed down Genius song page"""
    return """
<html>
<head>
  <title>M83 - Midnight City Lyrics | Genius Lyrics</title>
  <meta property="og:image" content="https://images.genius.com/og-cover.jpg">
</head>
<body>
  <h1 class="SongHeader__Title">Midnight City</h1>
  <a class="SongHeader__Artist" href="https://genius.com/artists/M83">M83</a>
  <div class="MetadataStats">
    <a href="https://genius.com/albums/M83/Hurry-up-we-re-dreaming">Hurry Up, We're Dreaming</a>
    <span class="MetadataStats__Value">October 18, 2011</span>
  </div>
  <div data-lyrics-container="true">
    <div class="LyricsHeader">Midnight City Lyrics</div>
    [Verse 1]<br>Waiting in a car<br>Waiting for a <a href="/123">ride in the dark</a><br>
    <script>var ad = 1;</script>
    The night city grows<br>
  </div>
  <div data-lyrics-container="true">
    [Chorus]<br>The city is my church
  </div>
  <div class="SongCredits">
    <div><span>Produced by</span>
      <a href="https://genius.com/artists/Anthony-gonzalez">Anthony Gonzalez</a>
      <a href="https://genius.com/artists/Justin-meldal-johnsen">Justin Meldal-Johnsen</a>
    </div>
    <div><span>Written By</span>
      <a href="https://genius.com/artists/Anthony-gonzalez">Anthony Gonzalez</a>
      <a href="https://genius.com/artists/Morgan-kibby">Morgan Kibby</a>
    </div>
  </div>
</body>
</html>
"""
