"""
Logging for Lyric-Resolver

Two audiences share one logging tree:
- the console gets warnings, errors and messages explicitly marked for the
  user (see get_logger().console_info), written through tqdm so batch
  progress bars stay intact
- the optional rotating log file gets every technical record: strategy
  attempts, gateway throttling, scraping failures, timings

Gateways log through a ContextAdapter so every line carries the gateway
name, e.g. "[genius-api] Rate limit reached".
"""

import functools
import inspect
import logging
import logging.handlers
import re
import time
from collections import Counter
from pathlib import Path
from typing import Any, Callable, Dict, MutableMapping, Optional, Tuple

import colorama
from colorama import Fore, Back, Style
from tqdm import tqdm

from ..config.settings import get_settings


colorama.init()

# Handlers installed by setup_logging carry this attribute
HANDLER_MARKER = '_lyric_resolver'

FILE_FORMAT = '%(asctime)s | %(name)-28s | %(levelname)-8s | %(message)s'
VERBOSE_CONSOLE_FORMAT = '%(levelname)s %(name)s: %(message)s'

# HTTP client chatter stays out of both outputs; asyncio keeps reporting lost tasks
QUIET_LOGGERS = ('aiohttp', 'urllib3', 'charset_normalizer', 'chardet')

SIZE_UNITS = {'B': 0, 'KB': 1, 'MB': 2, 'GB': 3, 'TB': 4}


class ConsoleMessageFilter(logging.Filter):
    """Let through warnings and records marked with console_output=True"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.WARNING or bool(getattr(record, 'console_output', False))


class ColoredFormatter(logging.Formatter):
    """Colors the level name; warnings and errors are colored whole"""

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    def __init__(self, fmt: str = '%(message)s', use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        if not self.use_colors or color is None:
            return text
        if record.levelno >= logging.WARNING:
            return f"{color}{text}{Style.RESET_ALL}"
        return text.replace(record.levelname, f"{color}{record.levelname}{Style.RESET_ALL}", 1)


class TqdmHandler(logging.Handler):
    """Console handler that prints above active tqdm bars"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record))
        except Exception:
            self.handleError(record)


class ContextAdapter(logging.LoggerAdapter):
    """Prefixes every message with a bracketed context label"""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['context']}] {msg}", kwargs


def parse_size(size_str: str) -> int:
    """
    Parse a size such as "10MB", "1.5GB" or "512KB" into bytes

    Raises:
        ValueError: If the string is not a valid size
    """
    match = re.fullmatch(r'(\d+(?:\.\d+)?)\s*([KMGT]?B)', size_str.strip().upper())
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")
    number, unit = match.groups()
    return int(float(number) * 1024 ** SIZE_UNITS[unit])


def _remove_installed_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        if getattr(handler, HANDLER_MARKER, False):
            handler.close()
            root.removeHandler(handler)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console_output: bool = True,
    colored_output: bool = True,
    max_size: str = "10MB",
    backup_count: int = 3,
    verbose: bool = False
) -> None:
    """
    Install console and file handlers on the root logger

    Calling it again replaces the handlers installed by the previous call
    and leaves any other handler (pytest's, for instance) untouched.

    Args:
        level: Minimum level written to the log file (and to the console in verbose mode)
        log_file: Rotating log file path, None for console only
        console_output: Enable the console handler
        colored_output: Color console output
        max_size: File size that triggers rotation ("10MB")
        backup_count: Rotated files kept
        verbose: Show every record at `level` on the console, not just user messages
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    _remove_installed_handlers(root)

    if console_output:
        console = TqdmHandler()
        if verbose:
            console.setLevel(numeric_level)
            console.setFormatter(ColoredFormatter(VERBOSE_CONSOLE_FORMAT, use_colors=colored_output))
        else:
            console.addFilter(ConsoleMessageFilter())
            console.setFormatter(ColoredFormatter(use_colors=colored_output))
        setattr(console, HANDLER_MARKER, True)
        root.addHandler(console)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=parse_size(max_size),
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        setattr(file_handler, HANDLER_MARKER, True)
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        quiet = logging.getLogger(name)
        quiet.setLevel(logging.CRITICAL)
        quiet.propagate = False

    logging.getLogger('lyric_resolver').debug(
        f"Logging ready: level={level} console={console_output} file={log_file}"
    )


def configure_from_settings() -> None:
    """Install handlers according to the logging section of the settings"""
    config = get_settings().logging

    log_file = None
    if config.file:
        path = Path(config.file).expanduser()
        log_file = path if path.is_absolute() else get_settings().get_config_directory() / path

    setup_logging(
        level=config.level,
        log_file=str(log_file) if log_file else None,
        console_output=config.console_output,
        colored_output=config.colored_output,
        max_size=config.max_size,
        backup_count=config.backup_count
    )


def get_current_log_file() -> Optional[Path]:
    """Path of the active rotating log file, None when logging to console only"""
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            return Path(handler.baseFilename)
    return None


def get_logger(name: str) -> logging.Logger:
    """
    Module logger with two console helpers attached

    console_info() logs at INFO and marks the record for the console;
    console_error() logs at ERROR (always shown).
    """
    logger = logging.getLogger(name)

    def console_info(message: str) -> None:
        logger.info(message, extra={'console_output': True})

    def console_error(message: str) -> None:
        logger.error(message)

    logger.console_info = console_info
    logger.console_error = console_error
    return logger


def get_context_logger(name: str, context: str) -> ContextAdapter:
    """Logger whose messages are prefixed with "[context]" """
    return ContextAdapter(logging.getLogger(name), {'context': context})


class OperationLogger:
    """
    Progress reporting for one batch of tracks

    Counts outcomes per status and shows them next to a tqdm bar; the
    start and summary lines go to the console, per-track lines to the file.
    """

    def __init__(self, logger: logging.Logger, operation_name: str, show_progress: bool = True):
        self.logger = logger
        self.operation_name = operation_name
        self.show_progress = show_progress
        self.counts: Counter = Counter()
        self.started_at: Optional[float] = None
        self._bar: Optional[tqdm] = None

    def start(self, message: Optional[str] = None, total: Optional[int] = None) -> None:
        self.started_at = time.monotonic()
        self.logger.console_info(message or f"Starting {self.operation_name}")
        if self.show_progress and total:
            self._bar = tqdm(total=total, desc="Resolving", unit="track", ncols=100, colour='cyan')

    def progress(self, message: str, status: Optional[str] = None) -> None:
        """Record one finished item"""
        if status:
            self.counts[status] += 1
        self.logger.info(f"{self.operation_name}: {message}")

        if self._bar is not None:
            self._bar.set_postfix(dict(self.counts), refresh=False)
            self._bar.update(1)

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at if self.started_at is not None else 0.0

    def summary(self) -> Dict[str, int]:
        return dict(self.counts)

    def complete(self, message: Optional[str] = None) -> None:
        self._close_bar()
        self.logger.console_info(message or f"{self.operation_name} completed")
        self.logger.info(f"{self.operation_name} finished in {self.elapsed():.2f}s: {self.summary()}")

    def error(self, message: str, exception: Optional[BaseException] = None) -> None:
        self._close_bar()
        self.logger.error(f"{self.operation_name} failed: {message}", exc_info=exception)

    def _close_bar(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


def create_operation_logger(name: str, operation: str, show_progress: bool = True) -> OperationLogger:
    """OperationLogger bound to the module logger `name`"""
    return OperationLogger(get_logger(name), operation, show_progress=show_progress)


def log_performance(func: Callable) -> Callable:
    """Log the duration of each call at DEBUG level; works on coroutine functions too"""
    logger = logging.getLogger(func.__module__)

    def report(started: float, error: Optional[BaseException] = None) -> None:
        took = time.monotonic() - started
        if error is None:
            logger.debug(f"{func.__qualname__} took {took:.3f}s")
        else:
            logger.debug(f"{func.__qualname__} failed after {took:.3f}s: {error!r}")

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            started = time.monotonic()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                report(started, e)
                raise
            report(started)
            return result

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        started = time.monotonic()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            report(started, e)
            raise
        report(started)
        return result

    return wrapper


try:
    configure_from_settings()
except (OSError, ValueError) as e:
    setup_logging(level="INFO", console_output=True)
    logging.getLogger('lyric_resolver').warning(f"Logging settings ignored: {e}")
