#!/usr/bin/env python3
"""
Setup configuration for Lyric-Resolver
Resolve loosely tagged songs on Genius and fetch their lyrics
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "aiohttp>=3.9.1",
    "beautifulsoup4>=4.12.0",
    "click>=8.1.7",
    "pyyaml>=6.0.1",
    "python-dotenv>=1.0.0",
    "colorama>=0.4.6",
    "tqdm>=4.66.1",
]

setup(
    name="lyric-resolver",
    version="0.9.0",
    author="Lyric-Resolver Team",
    description="Resolve songs from local file metadata to Genius and scrape their lyrics",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["lyric_resolver", "lyric_resolver.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-asyncio>=0.21.1",
            "black>=23.11.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "lyric-resolver=lyric_resolver.main:cli",
        ],
    },
    keywords="genius lyrics music metadata scraping rate-limit cli",
)
