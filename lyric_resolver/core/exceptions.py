"""
Errors raised by the resolution pipeline

    LyricResolverError
        ConfigError          bad settings or gateway parameters
        NetworkFailure       transport error or unusable response from Genius
        RateLimitExceeded    gateway budget spent (FAIL_FAST, RETRY_WITH_BACKOFF)
        InvalidPage          fetched document is not a song page
        MalformedCandidate   search hit that is not an object

Running out of search strategies is not an error: resolve() returns
genius.models.NotFound for that.
"""

from typing import Optional


class LyricResolverError(Exception):
    """
    Root of every error raised by lyric_resolver

    Attributes:
        message: Text shown to the user (str(error) returns it)
        details: Context for the log file, e.g. {'query': ..., 'url': ...}
    """

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(LyricResolverError):
    """
    Invalid configuration: non-positive budget or window, unknown policy name

    Raised while building gateways; the CLI reports it and exits.
    """
    pass


class NetworkFailure(LyricResolverError):
    """
    Transport error, timeout or non-2xx status while talking to Genius

    The resolver records it as the failure of one strategy and moves on;
    the scraper turns it into a None result.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        status_code: Optional[int] = None
    ) -> None:
        super().__init__(message, details)
        # None when no response was received
        self.status_code = status_code


class RateLimitExceeded(LyricResolverError):
    """
    Gateway budget spent under FAIL_FAST or RETRY_WITH_BACKOFF

    WAIT gateways never raise it. `last_error` holds the final send failure
    seen while retrying and is also chained as __cause__.
    """

    def __init__(
        self,
        message: str,
        policy: Optional[str] = None,
        last_error: Optional[BaseException] = None,
        details: Optional[dict] = None
    ) -> None:
        super().__init__(message, details)
        self.policy = policy
        self.last_error = last_error


class InvalidPage(LyricResolverError):
    """Discography, album listing or a page without any lyrics container"""
    pass


class MalformedCandidate(LyricResolverError):
    """Search hit that is not an object; dropped before scoring"""
    pass
