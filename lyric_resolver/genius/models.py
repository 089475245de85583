"""
Data models for Genius song resolution

Contains the immutable value types passed between the resolver, the scorer
and the scraper:

- SearchQuery: the title/artist pair being resolved, plus its reformulations
- CandidateResult: one song hit returned by the Genius search endpoint
- Success / NotFound / Error: the three possible outcomes of a resolution
- ScoredCandidate: a candidate together with its similarity score
- ScrapedContent: lyrics and metadata extracted from a song page
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from ..core.exceptions import MalformedCandidate
from ..utils.helpers import collapse_whitespace, strip_special_characters


@dataclass(frozen=True)
class SearchQuery:
    """
    Title/artist pair to resolve against the Genius catalog

    Created once per resolution attempt. The normalized forms drop
    punctuation and symbols and collapse whitespace, so "Midnight  City!"
    becomes "Midnight City".
    """
    title: str
    artist: str

    @property
    def normalized_title(self) -> str:
        return strip_special_characters(self.title)

    @property
    def normalized_artist(self) -> str:
        return strip_special_characters(self.artist)

    @property
    def direct(self) -> str:
        """Title followed by artist, verbatim"""
        return f"{self.title} {self.artist}"

    @property
    def normalized(self) -> str:
        """Normalized title followed by normalized artist"""
        return collapse_whitespace(f"{self.normalized_title} {self.normalized_artist}")

    @property
    def artist_first(self) -> str:
        """Artist followed by title, verbatim"""
        return f"{self.artist} {self.title}"

    def __str__(self) -> str:
        return f"{self.artist} - {self.title}"


class SearchStrategy(Enum):
    """
    Query reformulations, tried in declaration order until one yields a match
    """
    DIRECT = "direct"
    NORMALIZED = "normalized"
    ARTIST_FIRST = "artist_first"
    TITLE_ONLY = "title_only"
    ARTIST_ONLY = "artist_only"

    def build_query(self, query: SearchQuery) -> str:
        """
        Build the search text this strategy sends for a query

        Args:
            query: Title/artist pair being resolved

        Returns:
            Search text (may be blank, e.g. ARTIST_ONLY with no artist)
        """
        if self is SearchStrategy.DIRECT:
            return query.direct
        if self is SearchStrategy.NORMALIZED:
            return query.normalized
        if self is SearchStrategy.ARTIST_FIRST:
            return query.artist_first
        if self is SearchStrategy.TITLE_ONLY:
            return query.title
        return query.artist


@dataclass(frozen=True)
class ArtistInfo:
    """Artist as embedded in a Genius search hit"""
    id: str
    name: str
    url: Optional[str] = None
    image_url: Optional[str] = None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _as_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


@dataclass(frozen=True)
class CandidateResult:
    """
    One song returned by the Genius search endpoint

    Attributes:
        id: Genius song identifier
        title: Song title as stored on Genius
        url: Song page URL, handed to the scraper
        thumbnail_url: Small cover art image
        primary_artist: Main credited artist
        song_art_url: Full size cover art image
        featured_artists: Names of featured artists
        pageviews: Popularity metric, when Genius reports it
        hot: Whether Genius flags the song as trending
    """
    id: str
    title: str
    url: str
    thumbnail_url: Optional[str] = None
    primary_artist: Optional[ArtistInfo] = None
    song_art_url: Optional[str] = None
    featured_artists: Tuple[str, ...] = ()
    pageviews: Optional[int] = None
    hot: bool = False

    def is_valid(self) -> bool:
        """True only when id, title and url are non-blank and a primary artist is present"""
        return (
            bool(self.id.strip())
            and bool(self.title.strip())
            and bool(self.url.strip())
            and self.primary_artist is not None
        )

    @property
    def primary_artist_name(self) -> str:
        return self.primary_artist.name if self.primary_artist else ""

    @property
    def cover_art_url(self) -> Optional[str]:
        """Best cover image the search hit carries"""
        return self.song_art_url or self.thumbnail_url

    @classmethod
    def from_hit(cls, hit: Dict[str, Any]) -> 'CandidateResult':
        """
        Parse one raw search hit

        Accepts either the hit wrapper ({'type': 'song', 'result': {...}})
        or the inner result object. Missing fields become blank values so
        is_valid() can reject them; only structurally unusable input raises.

        Args:
            hit: Raw hit dictionary from the search response

        Returns:
            CandidateResult (possibly invalid)

        Raises:
            MalformedCandidate: If the hit is not a mapping
        """
        if not isinstance(hit, dict):
            raise MalformedCandidate(f"Search hit is not an object: {type(hit).__name__}")

        result = hit.get('result', hit)
        if not isinstance(result, dict):
            raise MalformedCandidate("Search hit result is not an object")

        artist_data = result.get('primary_artist')
        primary_artist = None
        if isinstance(artist_data, dict):
            primary_artist = ArtistInfo(
                id=_text(artist_data.get('id')),
                name=_text(artist_data.get('name')),
                url=artist_data.get('url'),
                image_url=artist_data.get('image_url')
            )

        featured = tuple(
            _text(artist.get('name'))
            for artist in _as_list(result.get('featured_artists'))
            if isinstance(artist, dict) and artist.get('name')
        )

        stats = result.get('stats') if isinstance(result.get('stats'), dict) else {}

        return cls(
            id=_text(result.get('id')),
            title=_text(result.get('title')),
            url=_text(result.get('url')),
            thumbnail_url=result.get('song_art_image_thumbnail_url'),
            primary_artist=primary_artist,
            song_art_url=result.get('song_art_image_url') or result.get('header_image_url'),
            featured_artists=featured,
            pageviews=stats.get('pageviews'),
            hot=bool(stats.get('hot', False))
        )

    def __str__(self) -> str:
        return f"{self.primary_artist_name} - {self.title} ({self.url})"


@dataclass(frozen=True)
class ScoredCandidate:
    """Candidate paired with its similarity score"""
    candidate: CandidateResult
    score: float


@dataclass(frozen=True)
class Success:
    """Resolution matched a candidate using the given strategy"""
    candidate: CandidateResult
    strategy: SearchStrategy
    score: float

    @property
    def is_success(self) -> bool:
        return True


@dataclass(frozen=True)
class NotFound:
    """Every strategy ran without producing a match"""

    @property
    def is_success(self) -> bool:
        return False


@dataclass(frozen=True)
class Error:
    """Resolution could not run to completion"""
    message: str

    @property
    def is_success(self) -> bool:
        return False


MatchOutcome = Union[Success, NotFound, Error]


@dataclass(frozen=True)
class ScrapedContent:
    """
    Lyrics and metadata extracted from one song page

    Every field is extracted independently; any of them can be missing
    while the others are present.
    """
    lyrics: Optional[str] = None
    cover_art_url: Optional[str] = None
    song_title: Optional[str] = None
    artist_name: Optional[str] = None
    album_name: Optional[str] = None
    release_date: Optional[str] = None
    featured_artists: Tuple[str, ...] = field(default_factory=tuple)
    producers: Tuple[str, ...] = field(default_factory=tuple)
    writers: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_lyrics(self) -> bool:
        return bool(self.lyrics)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly dictionary (tuples become lists)"""
        data = asdict(self)
        for key in ('featured_artists', 'producers', 'writers'):
            data[key] = list(data[key])
        return data
