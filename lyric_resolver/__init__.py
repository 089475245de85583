"""
Lyric-Resolver - resolve loosely tagged songs on Genius and fetch their lyrics
"""

__version__ = "0.9.0"
