"""
Main CLI interface for Lyric-Resolver

Command-line entry point for resolving songs against Genius, scraping song
pages, enriching whole track lists and inspecting configuration.

Commands:
- resolve TITLE ARTIST: multi-strategy search, prints the match
- lyrics URL: lyrics of a Genius song page
- scrape URL: lyrics and metadata of a Genius song page
- enrich TITLE ARTIST: resolve then scrape one track
- batch FILE: enrich every "title<TAB>artist" line of a file
- config show, doctor: configuration and diagnostics
"""

import asyncio
import functools
import json
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, TypeVar

import click

from . import __version__
from .config.settings import get_settings, reload_settings
from .core.exceptions import LyricResolverError
from .genius import GeniusService, Success, NotFound
from .lyrics.processor import EnrichmentResult, LyricsProcessor, TrackRequest
from .utils.logger import configure_from_settings, get_logger, get_current_log_file, setup_logging
from .utils.helpers import format_duration, truncate_string


# Initialize logging system from configuration settings
configure_from_settings()
logger = get_logger(__name__)

T = TypeVar('T')


def handle_error(func):
    """
    Decorator to handle common CLI errors gracefully

    Ctrl-C exits with 130, any other failure prints the message and exits with 1.

    Args:
        func: The CLI command function to wrap

    Returns:
        Wrapped function with error handling
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo(click.style("\n\nOperation cancelled by user", fg='yellow'))
            sys.exit(130)
        except click.exceptions.Exit:
            raise
        except LyricResolverError as e:
            logger.error(f"Command failed: {e}")
            click.echo(click.style(f"Error: {e}", fg='red'), err=True)
            sys.exit(1)
        except Exception as e:
            logger.error(f"Command failed: {e}", exc_info=True)
            click.echo(click.style(f"Error: {e}", fg='red'), err=True)
            sys.exit(1)
    return wrapper


def run_with_service(action: Callable[[GeniusService], Awaitable[T]]) -> T:
    """
    Run a coroutine against a fresh GeniusService and close it afterwards

    Args:
        action: Coroutine function receiving the service

    Returns:
        Whatever the coroutine returns
    """
    async def runner() -> T:
        async with GeniusService(get_settings()) as service:
            return await action(service)

    return asyncio.run(runner())


def read_track_file(path: Path) -> List[TrackRequest]:
    """
    Parse a track list file

    One track per line as "title<TAB>artist"; blank lines and lines
    starting with '#' are ignored. A line without a tab is a title only.

    Args:
        path: File to read

    Returns:
        Tracks in file order
    """
    tracks = []
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.rstrip('\n')
            if not line.strip() or line.lstrip().startswith('#'):
                continue
            title, _, artist = line.partition('\t')
            tracks.append(TrackRequest(title=title.strip(), artist=artist.strip()))
    return tracks


def echo_enrichment(result: EnrichmentResult, show_lyrics: bool) -> None:
    """Print one enrichment result for humans"""
    colors = {'matched': 'green', 'not_found': 'yellow', 'error': 'red', 'skipped': 'cyan'}
    click.echo(click.style(f"{result.status.value.upper()}", fg=colors[result.status.value], bold=True)
               + f"  {result.artist} - {result.title}  ({format_duration(result.duration)})")

    if isinstance(result.outcome, Success):
        candidate = result.outcome.candidate
        click.echo(f"   Match: {candidate.primary_artist_name} - {candidate.title}")
        click.echo(f"   URL: {candidate.url}")
        click.echo(f"   Strategy: {result.outcome.strategy.value} (score {result.outcome.score:.3f})")

    if result.content is not None:
        content = result.content
        if content.album_name:
            click.echo(f"   Album: {content.album_name}")
        if content.release_date:
            click.echo(f"   Released: {content.release_date}")
        if content.cover_art_url:
            click.echo(f"   Cover: {content.cover_art_url}")
        if content.lyrics:
            if show_lyrics:
                click.echo(f"\n{content.lyrics}\n")
            else:
                first_line = content.lyrics.splitlines()[0]
                click.echo(f"   Lyrics: {truncate_string(first_line, 60)} ({len(content.lyrics)} chars)")
        else:
            click.echo("   Lyrics: not available")

    if result.error_message:
        click.echo(f"   Error: {result.error_message}")


# Main CLI group - root command that all subcommands attach to
@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--config', type=click.Path(), help='Path to config file')
@click.pass_context
def cli(ctx, version, verbose, config):
    """
    Lyric-Resolver - Find songs on Genius and fetch their lyrics

    Resolves loosely tagged tracks (title and artist from file metadata)
    to Genius songs, then scrapes lyrics, cover art and credits.
    """
    ctx.ensure_object(dict)

    if version:
        click.echo(f"Lyric-Resolver v{__version__}")
        return

    if config:
        settings = reload_settings(config)
        configure_from_settings()
        logger.info(f"Loaded config: {config}")
        if not settings.validate():
            ctx.exit(1)

    if verbose:
        ctx.obj['verbose'] = True
        settings = get_settings()
        current_log = get_current_log_file()
        setup_logging(
            level="DEBUG",
            log_file=str(current_log) if current_log else None,
            console_output=True,
            colored_output=settings.logging.colored_output,
            verbose=True
        )
        logger.debug("Verbose mode enabled")

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument('title')
@click.argument('artist', default='')
@click.option('--json', 'as_json', is_flag=True, help='Print the outcome as JSON')
@handle_error
def resolve(title, artist, as_json):
    """
    Resolve TITLE and ARTIST to a Genius song

    Tries every search strategy in order and prints the first match.
    Exits with 1 when nothing matched.
    """
    outcome = run_with_service(lambda service: service.resolve(title, artist))

    if isinstance(outcome, Success):
        candidate = outcome.candidate
        if as_json:
            click.echo(json.dumps({
                'status': 'success',
                'id': candidate.id,
                'title': candidate.title,
                'artist': candidate.primary_artist_name,
                'url': candidate.url,
                'cover_art_url': candidate.cover_art_url,
                'strategy': outcome.strategy.value,
                'score': outcome.score,
            }, ensure_ascii=False))
        else:
            click.echo(click.style("Match found", fg='green', bold=True))
            click.echo(f"   Song: {candidate.primary_artist_name} - {candidate.title}")
            click.echo(f"   Genius ID: {candidate.id}")
            click.echo(f"   URL: {candidate.url}")
            click.echo(f"   Strategy: {outcome.strategy.value}")
            click.echo(f"   Score: {outcome.score:.3f}")
        return

    if isinstance(outcome, NotFound):
        message = "No match found"
        status = 'not_found'
    else:
        message = f"Resolution failed: {outcome.message}"
        status = 'error'

    if as_json:
        click.echo(json.dumps({'status': status, 'message': message}))
    else:
        click.echo(click.style(message, fg='yellow'))
    sys.exit(1)


@cli.command()
@click.argument('url')
@handle_error
def lyrics(url):
    """
    Print the lyrics of a Genius song page
    """
    text = run_with_service(lambda service: service.extract_lyrics(url))

    if not text:
        click.echo(click.style("No lyrics found on this page", fg='yellow'), err=True)
        sys.exit(1)

    click.echo(text)


@cli.command()
@click.argument('url')
@click.option('--json', 'as_json', is_flag=True, help='Print the extracted content as JSON')
@handle_error
def scrape(url, as_json):
    """
    Extract lyrics and metadata from a Genius song page
    """
    content = run_with_service(lambda service: service.extract_all(url))

    if content is None:
        click.echo(click.style("Page could not be scraped (not a song page or request failed)", fg='yellow'),
                   err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(content.to_dict(), ensure_ascii=False, indent=2))
        return

    fields = [
        ("Title", content.song_title),
        ("Artist", content.artist_name),
        ("Album", content.album_name),
        ("Released", content.release_date),
        ("Cover", content.cover_art_url),
        ("Featuring", ", ".join(content.featured_artists)),
        ("Producers", ", ".join(content.producers)),
        ("Writers", ", ".join(content.writers)),
    ]
    for label, value in fields:
        if value:
            click.echo(f"{label}: {value}")

    if content.lyrics:
        click.echo(f"\n{content.lyrics}")
    else:
        click.echo("\nLyrics: not available")


@cli.command()
@click.argument('title')
@click.argument('artist', default='')
@click.option('--show-lyrics', is_flag=True, help='Print the full lyrics')
@click.option('--no-preprocess', is_flag=True, help='Search the title and artist exactly as given')
@handle_error
def enrich(title, artist, show_lyrics, no_preprocess):
    """
    Resolve TITLE and ARTIST, then scrape the matched song page
    """
    async def action(service: GeniusService) -> EnrichmentResult:
        processor = LyricsProcessor(
            service=service,
            preprocess_queries=False if no_preprocess else None
        )
        return await processor.process_track(title, artist)

    result = run_with_service(action)
    echo_enrichment(result, show_lyrics)

    if not result.matched:
        sys.exit(1)


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              help='Write JSON lines here instead of stdout')
@click.option('--concurrent', '-c', type=int, help='Tracks resolved at the same time')
@handle_error
def batch(file, output, concurrent):
    """
    Enrich every track listed in FILE

    FILE holds one "title<TAB>artist" per line. Results are written as
    JSON lines, in file order.
    """
    if concurrent is not None and (concurrent < 1 or concurrent > 10):
        click.echo(click.style("Concurrent tracks must be between 1 and 10", fg='red'), err=True)
        sys.exit(1)

    tracks = read_track_file(file)
    if not tracks:
        click.echo(click.style(f"No tracks in {file}", fg='yellow'))
        return

    async def action(service: GeniusService):
        processor = LyricsProcessor(service=service)
        results = await processor.process_batch(tracks, concurrency=concurrent, show_progress=output is not None)
        return results, processor.get_stats()

    results, stats = run_with_service(action)

    lines = [json.dumps(result.to_dict(), ensure_ascii=False) for result in results]
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text("\n".join(lines) + "\n", encoding='utf-8')
        click.echo(f"Results written to {output}")
    else:
        for line in lines:
            click.echo(line)

    click.echo(
        f"Processed {stats['total_tracks']} tracks: {stats['matched']} matched "
        f"({stats['success_rate']}), {stats['lyrics_found']} with lyrics",
        err=output is None
    )


@cli.group()
def config():
    """
    Configuration management
    """
    pass


@config.command()
@click.option('--save', type=click.Path(dir_okay=False), help='Also write the configuration to this file')
@handle_error
def show(save):
    """
    Show current configuration
    """
    settings = get_settings()

    click.echo("Current Configuration:\n")
    if settings.loaded_from:
        click.echo(f"Loaded from: {settings.loaded_from}\n")

    for section, values in settings.to_dict(include_secrets=False).items():
        click.echo(f"{section}:")
        for key, value in values.items():
            if section == 'genius' and key == 'access_token':
                value = "(set)" if settings.has_access_token() else "(not set)"
            click.echo(f"   {key}: {value}")
        click.echo("")

    if save:
        path = settings.save_config(save)
        click.echo(f"Configuration saved to {path}")


@cli.command()
@handle_error
def doctor():
    """
    Run system diagnostics

    Checks configuration, the Genius token and both rate windows.
    """
    click.echo("Running diagnostics...\n")

    issues = []
    settings = get_settings()

    errors = settings.get_validation_errors()
    if errors:
        click.echo("Configuration: invalid")
        issues.extend(errors)
    else:
        click.echo("Configuration: OK")

    if settings.has_access_token():
        click.echo("Genius access token: configured")
    else:
        click.echo("Genius access token: not configured")
        issues.append("Set GENIUS_ACCESS_TOKEN for authenticated API access")

    if not errors:
        async def action(service: GeniusService):
            return service.gateway_state(), service.page_gateway_state()

        api_state, page_state = run_with_service(action)
        click.echo(f"API gateway: {api_state} ({settings.rate_limit.policy})")
        click.echo(f"Page gateway: {page_state} ({settings.scraping.policy})")

    current_log = get_current_log_file()
    if current_log:
        click.echo(f"Logging: {current_log}")
    else:
        click.echo("Logging: Console only")

    if issues:
        click.echo(f"\nFound {len(issues)} issues:")
        for issue in issues:
            click.echo(f"   - {issue}")
    else:
        click.echo("\nAll systems operational!")


# Entry point for module execution
if __name__ == '__main__':
    cli()
