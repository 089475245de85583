"""
Core infrastructure shared by every lyric-resolver component: the exception
hierarchy and the rate-limited HTTP gateway.
"""

from .exceptions import (
    LyricResolverError,
    ConfigError,
    NetworkFailure,
    RateLimitExceeded,
    InvalidPage,
    MalformedCandidate
)
from .gateway import (
    RateLimitedGateway,
    RateLimitPolicy,
    RateWindowSnapshot,
    GatewayResponse,
    RateLimitPresets
)

__all__ = [
    'LyricResolverError',
    'ConfigError',
    'NetworkFailure',
    'RateLimitExceeded',
    'InvalidPage',
    'MalformedCandidate',
    'RateLimitedGateway',
    'RateLimitPolicy',
    'RateWindowSnapshot',
    'GatewayResponse',
    'RateLimitPresets',
]
