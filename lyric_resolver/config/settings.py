"""
Settings for Lyric-Resolver

Values are layered, later layers winning:
1. dataclass defaults below
2. the first YAML file found (explicit path, ~/.lyric-resolver/config.yaml,
   config/config.yaml, config.yaml)
3. environment variables, a .env file included

Sections:
- genius: API endpoint and access token
- rate_limit / scraping: request budgets of the API and page gateways
- lyrics: candidate scoring, strategy pacing, query preprocessing
- network, logging

YAML values are coerced to the type of the dataclass default, so
"max_requests: '5'" and LYRIC_RESOLVER_POLICY=FAIL_FAST both load cleanly;
range checks happen in Settings.get_validation_errors().
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

load_dotenv()


DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

VALID_POLICIES = ['wait', 'fail_fast', 'retry_with_backoff']


@dataclass
class GeniusConfig:
    """
    Genius API configuration

    The access token is optional: search works anonymously against the
    public endpoint, but authenticated calls are less likely to be throttled.
    Provide it via GENIUS_ACCESS_TOKEN rather than the config file.
    """
    access_token: str = ""
    api_base_url: str = "https://api.genius.com"
    search_per_page: int = 10


@dataclass
class RateLimitConfig:
    """
    Sliding-window budget for Genius API calls

    At most max_requests requests are let through in any trailing window of
    window_seconds. The policy decides what happens to a request once the
    budget is spent (wait, fail_fast, retry_with_backoff).
    """
    max_requests: int = 10
    window_seconds: float = 60.0
    policy: str = "wait"
    target_host: str = "api.genius.com"
    base_delay: float = 1.0
    max_delay: float = 60.0
    max_retries: int = 3


@dataclass
class ScrapingConfig:
    """
    Budget and browser identity for song page fetches

    Page fetches get their own, much stricter gateway so scraping never eats
    into the API budget.
    """
    max_requests: int = 1
    window_seconds: float = 3.0
    policy: str = "wait"
    target_host: str = ""
    base_delay: float = 1.0
    max_delay: float = 60.0
    max_retries: int = 3
    user_agents: List[str] = field(default_factory=lambda: list(DEFAULT_USER_AGENTS))


@dataclass
class LyricsConfig:
    """
    Candidate matching configuration

    Scoring weights, the courtesy delay between search strategies and the
    query preprocessing switches.
    """
    title_weight: float = 0.6
    artist_bonus: float = 0.3
    strategy_delay: float = 0.2
    min_score: float = 0.0
    preprocess_queries: bool = True
    skip_non_musical: bool = True


@dataclass
class NetworkConfig:
    """
    Network and HTTP configuration settings

    request_timeout bounds every HTTP call; concurrency bounds how many
    tracks a batch resolves at the same time.
    """
    request_timeout: int = 15
    concurrency: int = 3


@dataclass
class LoggingConfig:
    """
    Logging configuration and output settings

    Controls log level, optional rotating file output and console formatting.
    """
    level: str = "INFO"
    file: str = ""
    max_size: str = "10MB"
    backup_count: int = 3
    console_output: bool = True
    colored_output: bool = True


SECTION_TYPES = {
    'genius': GeniusConfig,
    'rate_limit': RateLimitConfig,
    'scraping': ScrapingConfig,
    'lyrics': LyricsConfig,
    'network': NetworkConfig,
    'logging': LoggingConfig,
}

# (variable, section, key)
ENVIRONMENT_OVERRIDES: List[Tuple[str, str, str]] = [
    ('GENIUS_ACCESS_TOKEN', 'genius', 'access_token'),
    ('LYRIC_RESOLVER_POLICY', 'rate_limit', 'policy'),
    ('LYRIC_RESOLVER_LOG_LEVEL', 'logging', 'level'),
]

SECRET_KEYS = {('genius', 'access_token')}

_TRUE_STRINGS = {'1', 'true', 'yes', 'on'}


def _coerce(value: Any, default: Any) -> Any:
    """Convert a raw YAML or environment value to the type of the default"""
    if isinstance(default, bool):
        return value.strip().lower() in _TRUE_STRINGS if isinstance(value, str) else bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, list):
        return [str(item) for item in value] if isinstance(value, (list, tuple)) else [str(value)]
    if isinstance(default, str):
        return "" if value is None else str(value)
    return value


class Settings:
    """
    Every configuration section of the application

    Attributes mirror SECTION_TYPES (settings.rate_limit.max_requests, ...).
    loaded_from holds the YAML file actually read, if any; load_warnings
    collects values that were ignored because they could not be converted.
    """

    genius: GeniusConfig
    rate_limit: RateLimitConfig
    scraping: ScrapingConfig
    lyrics: LyricsConfig
    network: NetworkConfig
    logging: LoggingConfig

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: YAML file tried before the default locations
        """
        self.config_path = config_path
        self.config_dir = Path.home() / ".lyric-resolver"
        self.loaded_from: Optional[Path] = None
        self.load_warnings: List[str] = []

        for name, section_type in SECTION_TYPES.items():
            setattr(self, name, section_type())

        self._apply_config(self._read_config_file())
        self._apply_environment()

    def _candidate_paths(self) -> List[Path]:
        paths = [Path(self.config_path).expanduser()] if self.config_path else []
        return paths + [
            self.get_config_directory() / "config.yaml",
            Path("config") / "config.yaml",
            Path("config.yaml"),
        ]

    def _read_config_file(self) -> Dict[str, Any]:
        """Parse the first readable YAML file; unreadable files are skipped with a warning"""
        for path in self._candidate_paths():
            if not path.is_file():
                continue
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                self._warn(f"Cannot read {path}: {e}")
                continue
            if not isinstance(data, dict):
                self._warn(f"Ignoring {path}: top level is not a mapping")
                continue
            self.loaded_from = path
            return data
        return {}

    def _set_value(self, section_name: str, key: str, raw: Any, source: str) -> None:
        section = getattr(self, section_name)
        if not hasattr(section, key):
            return
        try:
            value = _coerce(raw, getattr(section, key))
        except (TypeError, ValueError):
            self._warn(f"Ignoring {source} {section_name}.{key}={raw!r}: wrong type")
            return
        if key == 'policy':
            value = value.strip().lower().replace('-', '_')
        setattr(section, key, value)

    def _apply_config(self, data: Dict[str, Any]) -> None:
        """Copy known keys of known sections onto the dataclasses; the rest is ignored"""
        for section_name, values in data.items():
            if section_name in SECTION_TYPES and isinstance(values, dict):
                for key, raw in values.items():
                    self._set_value(section_name, key, raw, "config")

    def _apply_environment(self) -> None:
        for variable, section_name, key in ENVIRONMENT_OVERRIDES:
            raw = os.getenv(variable)
            if raw:
                self._set_value(section_name, key, raw, variable)

    def _warn(self, message: str) -> None:
        # Logging is configured from these settings, so problems are kept and printed instead
        self.load_warnings.append(message)
        print(f"Warning: {message}")

    def get_config_directory(self) -> Path:
        """User configuration directory (~/.lyric-resolver)"""
        return self.config_dir.expanduser()

    def has_access_token(self) -> bool:
        return bool(self.genius.access_token.strip())

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Dict[str, Any]]:
        """
        Plain dictionaries per section, secrets blanked unless include_secrets
        """
        data: Dict[str, Dict[str, Any]] = {}
        for name in SECTION_TYPES:
            section = getattr(self, name)
            data[name] = {
                item.name: (
                    "" if (name, item.name) in SECRET_KEYS and not include_secrets
                    else _copy_value(getattr(section, item.name))
                )
                for item in fields(section)
            }
        return data

    def save_config(self, path: Optional[str] = None) -> Path:
        """
        Write the current settings as YAML, without secrets

        Args:
            path: Target file, ~/.lyric-resolver/config.yaml by default

        Returns:
            Path written

        Raises:
            OSError: If the file cannot be written
        """
        target = Path(path).expanduser() if path else self.get_config_directory() / "config.yaml"
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.to_dict(include_secrets=False), f, default_flow_style=False, sort_keys=False)
        return target

    def get_validation_errors(self) -> List[str]:
        """Human readable problems with the current values (empty when valid)"""
        errors = []

        for name in ('rate_limit', 'scraping'):
            budget = getattr(self, name)
            if budget.max_requests <= 0:
                errors.append(f"{name}.max_requests must be a positive integer: {budget.max_requests}")
            if budget.window_seconds <= 0:
                errors.append(f"{name}.window_seconds must be positive: {budget.window_seconds}")
            if budget.policy not in VALID_POLICIES:
                errors.append(f"Invalid {name}.policy: {budget.policy} (expected one of {', '.join(VALID_POLICIES)})")
            if budget.max_retries <= 0:
                errors.append(f"{name}.max_retries must be a positive integer: {budget.max_retries}")
            if budget.base_delay < 0 or budget.max_delay < budget.base_delay:
                errors.append(f"{name} backoff delays must satisfy 0 <= base_delay <= max_delay")

        if not self.scraping.user_agents:
            errors.append("scraping.user_agents must contain at least one user agent")

        if self.lyrics.title_weight < 0 or self.lyrics.artist_bonus < 0:
            errors.append("lyrics scoring weights must not be negative")
        if self.lyrics.strategy_delay < 0:
            errors.append(f"lyrics.strategy_delay must not be negative: {self.lyrics.strategy_delay}")

        if self.network.request_timeout <= 0:
            errors.append(f"network.request_timeout must be positive: {self.network.request_timeout}")
        if self.network.concurrency <= 0:
            errors.append(f"network.concurrency must be positive: {self.network.concurrency}")

        return errors

    def validate(self) -> bool:
        """Print every validation error; True when there are none"""
        errors = self.get_validation_errors()
        for error in errors:
            print(f"Configuration error: {error}")
        return not errors

    def __str__(self) -> str:
        return (
            f"Settings(api: {self.rate_limit.max_requests}/{self.rate_limit.window_seconds}s "
            f"{self.rate_limit.policy}, pages: {self.scraping.max_requests}/{self.scraping.window_seconds}s, "
            f"token: {'set' if self.has_access_token() else 'unset'})"
        )


def _copy_value(value: Any) -> Any:
    return list(value) if isinstance(value, list) else value


settings = Settings()


def get_settings() -> Settings:
    """Process-wide settings"""
    return settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Rebuild the process-wide settings, e.g. after --config

    Components already built from the previous instance keep it; the
    Genius service and lyrics processor singletons must be reset separately.
    """
    global settings
    settings = Settings(config_path)
    return settings
