# lyric_resolver/utils/__init__.py
"""
Utilities package
Logging setup and string helpers shared by every component
"""

from .logger import (
    get_logger,
    configure_from_settings,
    setup_logging,
    OperationLogger,
    create_operation_logger,
    log_performance,
    get_current_log_file,
    get_context_logger
)
from .helpers import (
    clean_title,
    clean_artist_name,
    preprocess_search,
    is_musical_content,
    music_confidence,
    extract_featured_artists,
    strip_special_characters,
    tokenize,
    clean_lyrics_text,
    format_duration,
    truncate_string
)

__all__ = [
    # Logger exports
    'get_logger',
    'configure_from_settings',
    'setup_logging',
    'OperationLogger',
    'create_operation_logger',
    'log_performance',
    'get_current_log_file',
    'get_context_logger',

    # Helper exports
    'clean_title',
    'clean_artist_name',
    'preprocess_search',
    'is_musical_content',
    'music_confidence',
    'extract_featured_artists',
    'strip_special_characters',
    'tokenize',
    'clean_lyrics_text',
    'format_duration',
    'truncate_string'
]
