"""
Genius song page scraper

The Genius API returns song metadata but never lyrics, so lyrics (and
credits the API omits) are read from the public song page. Every lookup
is an ordered chain of CSS selectors: the first selector that matches
wins, and a missing field never blocks the others.

Before anything is extracted the page is validated: it must contain a
lyrics container and its <title> must not point at a discography or album
listing. Invalid pages, HTTP errors and network failures all produce None.
"""

import asyncio
import random
import re
from typing import Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup, NavigableString, Comment, Tag

from .client import GeniusClient
from .models import ScrapedContent
from ..config.settings import DEFAULT_USER_AGENTS
from ..core.exceptions import InvalidPage, LyricResolverError
from ..utils.helpers import clean_lyrics_text, collapse_whitespace
from ..utils.logger import get_logger, log_performance


# Lyrics containers, in priority order
LYRICS_CONTAINER_SELECTORS = [
    'div[data-lyrics-container="true"]',
    'div.Lyrics__Container',
    'div[class*="Lyrics"], div[class*="lyrics"]',
]

# A song page has at least one of these
SONG_PAGE_MARKERS = 'div[data-lyrics-container="true"], div.Lyrics__Container'

NOISE_SELECTOR = (
    'div[class*="Advertisement"], div[class*="Ad"], div[class*="LyricsPlaceholder"], '
    'div[class*="LyricsHeader"], .embed, script, style'
)

NON_SONG_TITLE_MARKERS = ('discography', 'albums')

COVER_ART_SELECTORS = ['img.cover_art-image']
TITLE_SELECTORS = ['h1.SongHeader__Title', 'h1']
ARTIST_SELECTORS = ['a.SongHeader__Artist', 'a[href*="/artists/"]']
ALBUM_SELECTORS = ['div.MetadataStats a[href*="/albums/"]', 'a[href*="/albums/"]']
RELEASE_DATE_SELECTORS = ['span.MetadataStats__Value', 'span[class*="Date"]']

ARTIST_LINK_SELECTOR = 'a[href*="/artists/"]'

FEATURING_LABEL = re.compile(r'\bFeaturing\b')
PRODUCER_LABEL = re.compile(r'\b(Producer|Producers|Produced)\b')
WRITER_LABEL = re.compile(r'\b(Writer|Writers|Written)\b')

BLOCK_TAGS = {'div', 'p', 'section', 'article', 'blockquote', 'li', 'ul', 'ol'}

BROWSER_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
    'Connection': 'keep-alive',
}


def _select_text(soup: BeautifulSoup, selectors: Iterable[str]) -> Optional[str]:
    """Text of the first element matched by the first matching selector"""
    for selector in selectors:
        element = soup.select_one(selector)
        if element is not None:
            text = collapse_whitespace(element.get_text(' '))
            if text:
                return text
    return None


def _distinct(values: Iterable[str]) -> List[str]:
    result: List[str] = []
    for value in values:
        if value and value not in result:
            result.append(value)
    return result


class GeniusScraper:
    """
    Extracts lyrics and metadata from Genius song pages

    Usage:
        scraper = GeniusScraper(client)
        content = await scraper.extract_all("https://genius.com/M83-midnight-city-lyrics")
        lyrics = await scraper.extract_lyrics(url)   # lyrics only, skips metadata
    """

    def __init__(self, client: GeniusClient, user_agents: Optional[Sequence[str]] = None):
        """
        Initialize the scraper

        Args:
            client: Client whose page gateway performs the fetches
            user_agents: Pool of User-Agent strings, one picked at random per fetch
        """
        self.logger = get_logger(__name__)
        self.client = client
        self.user_agents = list(user_agents or DEFAULT_USER_AGENTS)

    # ==================== PUBLIC API ====================

    @log_performance
    async def extract_all(self, page_url: str) -> Optional[ScrapedContent]:
        """
        Fetch a song page and extract lyrics plus every metadata field

        Args:
            page_url: Genius song page URL

        Returns:
            ScrapedContent, or None on network failure, HTTP error or invalid page
        """
        self.logger.debug(f"Scraping: {page_url}")
        soup = await self._fetch_document(page_url)
        if soup is None:
            return None
        return self._extract_content(soup)

    async def extract_lyrics(self, page_url: str) -> Optional[str]:
        """
        Fetch a song page and extract only the lyrics

        Args:
            page_url: Genius song page URL

        Returns:
            Cleaned lyrics, or None when unavailable
        """
        soup = await self._fetch_document(page_url)
        if soup is None:
            return None
        return self._extract_lyrics(soup)

    def parse_document(self, html: str) -> Optional[ScrapedContent]:
        """
        Validate and extract everything from already fetched HTML

        Args:
            html: Page markup

        Returns:
            ScrapedContent, or None if the page is not a song page
        """
        try:
            soup = self._parse_and_validate(html)
        except InvalidPage as e:
            self.logger.warning(f"Invalid page: {e}")
            return None
        return self._extract_content(soup)

    def parse_lyrics(self, html: str) -> Optional[str]:
        """
        Validate and extract lyrics from already fetched HTML

        Args:
            html: Page markup

        Returns:
            Cleaned lyrics, or None if the page is not a song page or has no lyrics
        """
        try:
            soup = self._parse_and_validate(html)
        except InvalidPage as e:
            self.logger.warning(f"Invalid page: {e}")
            return None
        return self._extract_lyrics(soup)

    # ==================== FETCHING ====================

    def _request_headers(self) -> dict:
        headers = dict(BROWSER_HEADERS)
        headers['User-Agent'] = random.choice(self.user_agents)
        return headers

    async def _fetch_document(self, page_url: str) -> Optional[BeautifulSoup]:
        """
        Fetch, parse and validate a page

        Returns:
            Parsed document, or None on any failure (already logged)
        """
        try:
            response = await self.client.fetch_page(page_url, headers=self._request_headers())
        except asyncio.CancelledError:
            raise
        except LyricResolverError as e:
            self.logger.error(f"Network error fetching {page_url}: {e}")
            return None
        except Exception as e:
            self.logger.error(f"Unexpected error fetching {page_url}: {e}")
            return None

        if not response.ok:
            self.logger.warning(f"Request failed with HTTP {response.status}: {page_url}")
            return None

        try:
            return self._parse_and_validate(response.text)
        except InvalidPage as e:
            self.logger.warning(f"Invalid page {page_url}: {e}")
            return None

    def _parse_and_validate(self, html: str) -> BeautifulSoup:
        """
        Parse markup and check it is a song page

        Raises:
            InvalidPage: If the page has no lyrics container or is a listing page
        """
        soup = BeautifulSoup(html or "", 'html.parser')
        title = soup.title.get_text() if soup.title else ""

        has_lyrics = soup.select_one(SONG_PAGE_MARKERS) is not None
        if not has_lyrics:
            raise InvalidPage("No lyrics container", details={'title': title})

        lowered = title.lower()
        if any(marker in lowered for marker in NON_SONG_TITLE_MARKERS):
            raise InvalidPage(f"Listing page: {title.strip()}", details={'title': title})

        return soup

    # ==================== LYRICS ====================

    def _find_lyrics_containers(self, soup: BeautifulSoup) -> List[Tag]:
        """Every element matched by the first selector in the chain that matches anything"""
        for selector in LYRICS_CONTAINER_SELECTORS:
            containers = soup.select(selector)
            if containers:
                return containers
        return []

    def _extract_lyrics(self, soup: BeautifulSoup) -> Optional[str]:
        containers = self._find_lyrics_containers(soup)
        if not containers:
            self.logger.warning("No lyrics container found")
            return None

        parts = []
        for container in containers:
            for noise in container.select(NOISE_SELECTOR):
                noise.decompose()
            parts.append(self._render_text(container))

        lyrics = clean_lyrics_text("\n\n".join(parts))
        return lyrics or None

    def _render_text(self, node: Tag) -> str:
        """
        Rebuild line-broken text from a lyrics container

        <br> is a line break, block elements are separated by a blank line,
        inline elements (links, spans, italics) stay on their line.
        """
        chunks: List[str] = []
        self._walk(node, chunks)
        return "".join(chunks)

    def _walk(self, node: Tag, chunks: List[str]) -> None:
        for child in node.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                chunks.append(re.sub(r'\s+', ' ', str(child)))
                continue
            if not isinstance(child, Tag):
                continue

            if child.name == 'br':
                chunks.append("\n")
            elif child.name in BLOCK_TAGS:
                chunks.append("\n")
                self._walk(child, chunks)
                chunks.append("\n\n")
            else:
                self._walk(child, chunks)

    # ==================== METADATA ====================

    def _extract_content(self, soup: BeautifulSoup) -> ScrapedContent:
        return ScrapedContent(
            lyrics=self._extract_lyrics(soup),
            cover_art_url=self._extract_cover_art(soup),
            song_title=_select_text(soup, TITLE_SELECTORS),
            artist_name=_select_text(soup, ARTIST_SELECTORS),
            album_name=_select_text(soup, ALBUM_SELECTORS),
            release_date=_select_text(soup, RELEASE_DATE_SELECTORS),
            featured_artists=tuple(self._extract_credits(soup, FEATURING_LABEL)),
            producers=tuple(self._extract_credits(soup, PRODUCER_LABEL)),
            writers=tuple(self._extract_credits(soup, WRITER_LABEL)),
        )

    def _extract_cover_art(self, soup: BeautifulSoup) -> Optional[str]:
        for selector in COVER_ART_SELECTORS:
            image = soup.select_one(selector)
            if image is not None and image.get('src', '').strip():
                return image['src'].strip()

        meta = soup.select_one('meta[property="og:image"]')
        if meta is not None and meta.get('content', '').strip():
            return meta['content'].strip()

        return None

    def _extract_credits(self, soup: BeautifulSoup, label: re.Pattern) -> List[str]:
        """
        Artist names credited in sections labelled with the given pattern

        A credit section is the element holding the label text; when the
        label sits in its own element, the section is that element's parent
        (label and names side by side).
        """
        names: List[str] = []

        for text in soup.find_all(string=label):
            label_element = text.parent
            if label_element is None or label_element.name in ('script', 'style', 'title'):
                continue

            links = label_element.select(ARTIST_LINK_SELECTOR)
            if not links and label_element.parent is not None:
                links = label_element.parent.select(ARTIST_LINK_SELECTOR)

            names.extend(collapse_whitespace(link.get_text(' ')) for link in links)

        return _distinct(names)
