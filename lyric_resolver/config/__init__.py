"""
Configuration management package for Lyric-Resolver

Settings come from, in order of precedence:
1. Environment variables (GENIUS_ACCESS_TOKEN and friends, .env supported)
2. YAML configuration file (first found of --config, ~/.lyric-resolver/config.yaml,
   config/config.yaml, config.yaml)
3. Dataclass defaults

Usage:
    from lyric_resolver.config import get_settings

    settings = get_settings()
    budget = settings.rate_limit.max_requests
"""

from .settings import (
    get_settings,
    reload_settings,
    Settings,
    GeniusConfig,
    RateLimitConfig,
    ScrapingConfig,
    LyricsConfig,
    NetworkConfig,
    LoggingConfig
)

__all__ = [
    'get_settings',
    'reload_settings',
    'Settings',
    'GeniusConfig',
    'RateLimitConfig',
    'ScrapingConfig',
    'LyricsConfig',
    'NetworkConfig',
    'LoggingConfig'
]
