"""
Utility functions and helpers for Lyric-Resolver
String processing for search queries, similarity tokens and lyric text
"""

import re
import unicodedata
from typing import List, Set, Tuple, Union


# Video/streaming noise that never belongs to a song title
TITLE_NOISE_PATTERNS = [
    "- Topic",
    "(Official Video)",
    "(Official Audio)",
    "(Official Music Video)",
    "(Official Lyric Video)",
    "(Official Visualizer)",
    "(Lyric Video)",
    "(Lyrics)",
    "(Audio)",
    "(Video)",
    "(Visualizer)",
    "(Music Video)",
    "(Vertical Video)",
    "(Behind The Scenes)",
    "[Official Video]",
    "[Official Audio]",
    "[Music Video]",
    "[Lyric Video]",
    "[Lyrics]",
    "(Explicit)",
    "(Clean)",
    "(Censored)",
    "(Spotify Sessions)",
    "(Spotify Singles)",
    "- Spotify Singles",
    "(Apple Music Edition)",
    "(Apple Music Live)",
    "(Amazon Original)",
    "(Deezer Session)",
    "(YouTube Music Sessions)",
    "VEVO",
]

QUALITY_INDICATORS = [
    "HD", "HQ", "4K", "8K", "1080p", "720p", "480p", "360p",
    "High Quality", "Remastered", "Remaster", "320kbps", "FLAC",
    "Lossless", "Dolby Atmos", "Hi-Res",
]

ARTIST_NOISE_PATTERNS = [
    "- Topic",
    "(Official)",
    "[Official]",
    "VEVO",
    "Official",
    "Music",
]

FEATURED_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in [
        r'\(feat\.?\s+([^)]+)\)',
        r'\(ft\.?\s+([^)]+)\)',
        r'\(featuring\s+([^)]+)\)',
        r'\(with\s+([^)]+)\)',
        r'\[feat\.?\s+([^\]]+)\]',
        r'\[ft\.?\s+([^\]]+)\]',
        r'\[featuring\s+([^\]]+)\]',
        r'\s+feat\.?\s+(.+?)(?:\s*[-–—]|\s*\(|\s*\[|$)',
        r'\s+ft\.?\s+(.+?)(?:\s*[-–—]|\s*\(|\s*\[|$)',
        r'\s+featuring\s+(.+?)(?:\s*[-–—]|\s*\(|\s*\[|$)',
    ]
]

ARTIST_SEPARATORS = [" & ", " and ", " x ", " X ", ", ", " vs. ", " vs ", " / "]

# Weighted indicators used by music_confidence()
NON_MUSIC_INDICATORS = {
    'podcast': 1.0,
    'episode': 0.9,
    'audiobook': 1.0,
    'documentary': 0.9,
    'interview': 0.6,
    'lecture': 0.7,
    'speech': 0.6,
    'ted talk': 0.8,
    'behind the scenes': 0.5,
    'making of': 0.5,
    'trailer': 0.7,
    'teaser': 0.6,
    'tutorial': 0.4,
    'how to': 0.4,
    'review': 0.4,
    'reaction': 0.5,
    'commentary': 0.4,
    'imax': 0.7,
}

MUSIC_INDICATORS = {
    'official': 0.15,
    'audio': 0.10,
    'music': 0.10,
    'song': 0.10,
    'single': 0.15,
    'remix': 0.20,
    'cover': 0.15,
    'acoustic': 0.15,
    'live': 0.10,
    'unplugged': 0.15,
    'version': 0.10,
}


def collapse_whitespace(text: str) -> str:
    """Collapse every whitespace run to a single space and trim"""
    return re.sub(r'\s+', ' ', text).strip()


def strip_special_characters(text: str) -> str:
    """
    Remove punctuation and symbols, keeping word characters and whitespace

    Args:
        text: Original text

    Returns:
        Text with special characters removed and whitespace collapsed
    """
    if not text:
        return ""
    return collapse_whitespace(re.sub(r'[^\w\s]', '', text))


def tokenize(text: str) -> Set[str]:
    """
    Split text into a set of lowercase word tokens

    Tokens are maximal runs of word characters; empty tokens are dropped.

    Args:
        text: Text to tokenize

    Returns:
        Set of distinct lowercase tokens (empty for blank input)
    """
    if not text:
        return set()
    return {token for token in re.split(r'\W+', text.lower()) if token}


def _remove_case_insensitive(text: str, pattern: str) -> str:
    return re.sub(re.escape(pattern), '', text, flags=re.IGNORECASE)


def clean_title(title: str) -> str:
    """
    Clean a song title scraped from local file metadata

    Drops video/streaming decorations ("(Official Video)", "[Lyrics]", ...)
    and quality markers ("(HD)", trailing "4K"), then tidies separators
    and whitespace.

    Args:
        title: Original title

    Returns:
        Cleaned title (may be empty if the title was only noise)
    """
    if not title:
        return ""

    clean = title.strip()

    for pattern in TITLE_NOISE_PATTERNS:
        clean = _remove_case_insensitive(clean, pattern)

    for indicator in QUALITY_INDICATORS:
        clean = _remove_case_insensitive(clean, f"({indicator})")
        clean = _remove_case_insensitive(clean, f"[{indicator}]")
        clean = re.sub(rf'\s+{re.escape(indicator)}\s*$', '', clean, flags=re.IGNORECASE)

    clean = re.sub(r'\s+', ' ', clean)
    clean = re.sub(r'_{2,}', ' ', clean)
    clean = re.sub(r'[-–—]{2,}', ' - ', clean)
    clean = re.sub(r'^[-–—\s]+', '', clean)
    clean = re.sub(r'[-–—\s]+$', '', clean)

    return collapse_whitespace(clean)


def clean_artist_name(artist: str) -> str:
    """
    Clean an artist name by removing channel-style suffixes

    Args:
        artist: Original artist name ("M83 - Topic", "M83VEVO")

    Returns:
        Cleaned artist name
    """
    if not artist:
        return ""

    clean = artist.strip()
    for pattern in ARTIST_NOISE_PATTERNS:
        clean = _remove_case_insensitive(clean, pattern)

    return collapse_whitespace(clean)


def remove_featured_suffix(title: str) -> str:
    """Drop "(feat. X)" style credits from a title"""
    clean = title
    for pattern in FEATURED_PATTERNS:
        clean = pattern.sub('', clean)
    return collapse_whitespace(clean)


def extract_featured_artists(title: str) -> List[str]:
    """
    Extract featured artist names from a title

    "Song (feat. A & B)" -> ["A", "B"]

    Args:
        title: Title possibly containing featured artist credits

    Returns:
        Distinct artist names in order of appearance
    """
    featured: List[str] = []
    if not title:
        return featured

    for pattern in FEATURED_PATTERNS:
        for match in pattern.finditer(title):
            artists = [match.group(1)]
            for separator in ARTIST_SEPARATORS:
                artists = [part for artist in artists for part in artist.split(separator)]

            for artist in artists:
                artist = artist.strip()
                if len(artist) >= 2 and artist not in featured:
                    featured.append(artist)

    return featured


def preprocess_search(title: str, artist: str) -> Tuple[str, str]:
    """
    Prepare a title/artist pair for searching

    Cleans decorations from both fields and moves featured-artist credits
    out of the title. Falls back to the original value when cleaning would
    leave a field empty.

    Args:
        title: Raw title
        artist: Raw artist

    Returns:
        Tuple of (title, artist) ready for the search strategies
    """
    clean = remove_featured_suffix(clean_title(title))
    clean_artist = clean_artist_name(artist)

    return (clean or collapse_whitespace(title or "")), (clean_artist or collapse_whitespace(artist or ""))


def music_confidence(title: str, artist: str = "") -> float:
    """
    Estimate how likely a title/artist pair is actual music

    Starts neutral at 0.5, subtracts half the weight of every non-music
    indicator found, adds every music indicator's weight, and penalizes
    "N hours" and "episode N" patterns.

    Args:
        title: Track title
        artist: Track artist

    Returns:
        Confidence between 0.0 and 1.0
    """
    confidence = 0.5
    full_text = unicodedata.normalize('NFKC', f"{title} {artist}").lower()

    for indicator, weight in NON_MUSIC_INDICATORS.items():
        if indicator in full_text:
            confidence -= weight * 0.5

    for indicator, weight in MUSIC_INDICATORS.items():
        if indicator in full_text:
            confidence += weight

    if re.search(r'(\d+)\s*(hours?|hrs?)\b', title, re.IGNORECASE):
        confidence -= 0.3

    if re.search(r'\b(episode|ep\.?|chapter|part)\s*\d+', title, re.IGNORECASE):
        confidence -= 0.4

    return max(0.0, min(1.0, confidence))


def is_musical_content(title: str, artist: str = "", threshold: float = 0.3) -> bool:
    """
    Check whether a track looks like music worth looking up

    Args:
        title: Track title
        artist: Track artist
        threshold: Minimum confidence to count as music

    Returns:
        True if music_confidence() reaches the threshold
    """
    return music_confidence(title, artist) >= threshold


def clean_lyrics_text(lyrics: str) -> str:
    """
    Clean lyrics text extracted from a song page

    Removes bracketed annotations ("[Chorus]", "[Verse 1: Artist]"),
    collapses runs of spaces and tabs to one space, trims each line,
    and collapses three or more consecutive newlines to a single blank line.

    Args:
        lyrics: Raw lyrics text

    Returns:
        Cleaned lyrics text
    """
    if not lyrics:
        return ""

    cleaned = re.sub(r'\[.*?\]', '', lyrics)
    cleaned = re.sub(r'[ \t]+', ' ', cleaned)
    cleaned = re.sub(r' *\n *', '\n', cleaned)
    cleaned = re.sub(r'\n{3,}', '\n\n', cleaned)

    return cleaned.strip()


def format_duration(seconds: Union[int, float]) -> str:
    """
    Format a duration in seconds for display

    Args:
        seconds: Duration in seconds

    Returns:
        "850ms", "2.4s" or "1:05" style string
    """
    if seconds < 0:
        return "0ms"
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"

    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate string to maximum length with suffix

    Args:
        text: Original text
        max_length: Maximum length including suffix
        suffix: Suffix to add when truncating

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text

    truncate_length = max_length - len(suffix)
    if truncate_length <= 0:
        return suffix[:max_length]

    return text[:truncate_length] + suffix
