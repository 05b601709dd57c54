"""Command-line interface using Click."""

import sys
from pathlib import Path

import click

from . import __version__
from .cli_commands import (
    LyricsFollower,
    echo_entry_details,
    echo_entry_table,
    echo_lyrics_preview,
    echo_lyrics_summary,
    echo_suggestions,
    format_bytes,
    format_duration,
    run_watch,
    sort_entries,
)
from .config import get_lrclib_url, get_mpris_service, get_sync_offset
from .core.lrclib import LrclibClient
from .core.lyrics import LyricsResolver
from .core.mpris import (
    MprisSource,
    close_session_bus,
    connect_session_bus,
    list_players,
    player_identity,
)
from .core.player import TrackObserver
from .exceptions import CacheError, CacheMiss, LyrechoError, PropertyError
from .utils.cache import DiskCache
from .utils.logging import setup_logging
from .utils.validation import SORT_KEYS, validate_offset, validate_track_query


def _fail(logger, message: str) -> None:
    logger.error(f"❌ {message}")
    sys.exit(1)


def _resolver(ctx) -> LyricsResolver:
    obj = ctx.obj
    client = obj.get("client") or LrclibClient(base_url=obj["lrclib_url"])
    return LyricsResolver(obj["cache"], client, use_cache=not obj["no_cache"])


def _source(ctx):
    return ctx.obj.get("source") or MprisSource(ctx.obj["mpris_service"])


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--log-file', type=click.Path(), help='Log to file')
@click.option('--lrclib-url', default=None, help='LRCLIB lookup endpoint')
@click.option('--no-cache', is_flag=True, help='Ignore cached lyrics when resolving')
@click.option('--mpris-service', '-m', default=None,
              help='MPRIS bus name of the player (e.g. org.mpris.MediaPlayer2.spotify)')
@click.option('--cache-dir', type=click.Path(), default=None, help='Lyrics cache directory')
@click.option('--sync-offset', '-s', type=float, default=None,
              help='Initial sync offset in seconds for songs without a saved one')
@click.pass_context
def cli(ctx, verbose, log_file, lrclib_url, no_cache, mpris_service, cache_dir, sync_offset):
    """lyrecho - synced lyrics for whatever your music player is playing."""
    ctx.ensure_object(dict)
    logger = setup_logging(
        level="DEBUG" if verbose else "INFO",
        log_file=Path(log_file) if log_file else None,
        verbose=verbose
    )
    ctx.obj['logger'] = logger
    ctx.obj['verbose'] = verbose
    ctx.obj['lrclib_url'] = lrclib_url or get_lrclib_url()
    ctx.obj['no_cache'] = no_cache
    ctx.obj['mpris_service'] = mpris_service or get_mpris_service()
    ctx.obj['sync_offset'] = get_sync_offset() if sync_offset is None else sync_offset
    if 'cache' not in ctx.obj:
        ctx.obj['cache'] = DiskCache(Path(cache_dir) if cache_dir else None)


# ----------------------
# cache
# ----------------------


@cli.group()
def cache():
    """Cache management commands."""
    pass


@cache.command()
@click.pass_context
def stats(ctx):
    """Show cache statistics."""
    disk_cache = ctx.obj['cache']
    result = disk_cache.stats()
    location = disk_cache.cache_dir if disk_cache.persistent else "(memory only)"
    click.echo("cache statistics:")
    click.echo(f"  location: {location}")
    click.echo(f"  entries:  {result.count}")
    click.echo(f"  size:     {format_bytes(result.size_bytes)}")


@cache.command(name='list')
@click.option('--sort', 'sort_by', type=click.Choice(SORT_KEYS), default='date',
              help='Sort by date, artist or title')
@click.pass_context
def list_entries(ctx, sort_by):
    """List all cached songs."""
    entries = ctx.obj['cache'].list_all()
    if not entries:
        click.echo("cache is empty")
        return
    echo_entry_table(sort_entries(entries, sort_by))


@cache.command()
@click.argument('artist')
@click.argument('title')
@click.pass_context
def show(ctx, artist, title):
    """Show the cached entry for a song."""
    disk_cache = ctx.obj['cache']
    try:
        entry = disk_cache.get(artist, title)
    except CacheError as e:
        if echo_suggestions(disk_cache, artist, title):
            sys.exit(1)
        _fail(ctx.obj['logger'], f"song not found in cache: {e}")
        return
    echo_entry_details(entry)


@cache.command()
@click.option('--confirm', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def clear(ctx, confirm):
    """Remove every cached entry."""
    if not confirm and not click.confirm("are you sure you want to clear all cache?"):
        click.echo("cancelled")
        return
    ctx.obj['cache'].clear()
    click.echo("cache cleared successfully")


@cache.command()
@click.pass_context
def prune(ctx):
    """Remove expired and unreadable entries."""
    pruned = ctx.obj['cache'].prune()
    click.echo(f"removed {pruned} expired entries")


@cache.command()
@click.argument('artist')
@click.argument('title')
@click.pass_context
def delete(ctx, artist, title):
    """Remove one song from the cache."""
    disk_cache = ctx.obj['cache']
    try:
        disk_cache.get(artist, title)
    except CacheError:
        if echo_suggestions(disk_cache, artist, title):
            sys.exit(1)
        _fail(ctx.obj['logger'], "song not found in cache")
        return

    try:
        disk_cache.delete(artist, title)
    except LyrechoError as e:
        _fail(ctx.obj['logger'], f"failed to delete from cache: {e}")
    click.echo(f"deleted '{artist} - {title}' from cache")


@cache.command()
@click.argument('artist')
@click.argument('title')
@click.argument('seconds', type=float)
@click.pass_context
def offset(ctx, artist, title, seconds):
    """Save a lyric sync offset for a cached song."""
    try:
        seconds = validate_offset(seconds)
        entry = ctx.obj['cache'].update_sync_offset(artist, title, seconds)
    except CacheMiss:
        _fail(ctx.obj['logger'], f"song not found in cache: {artist} - {title}")
        return
    except LyrechoError as e:
        _fail(ctx.obj['logger'], str(e))
        return
    click.echo(f"sync offset for '{artist} - {title}' set to {entry.sync_offset:.2f}s")


# ----------------------
# lyrics
# ----------------------


@cli.group()
def lyrics():
    """Lyrics lookup commands."""
    pass


@lyrics.command()
@click.argument('artist')
@click.argument('title')
@click.pass_context
def search(ctx, artist, title):
    """Look up lyrics without saving them."""
    obj = ctx.obj
    client = obj.get("client") or LrclibClient(base_url=obj["lrclib_url"])
    resolver = LyricsResolver(None, client)
    click.echo(f"searching for: {artist} - {title}\n")
    try:
        data = resolver.resolve(artist, title)
    except LyrechoError as e:
        _fail(obj['logger'], str(e))
        return
    echo_lyrics_summary(data)
    click.echo("\nuse 'lyrecho lyrics fetch' to save to cache")


@lyrics.command()
@click.argument('artist')
@click.argument('title')
@click.pass_context
def fetch(ctx, artist, title):
    """Fetch lyrics and store them in the cache."""
    obj = ctx.obj
    disk_cache = obj['cache']

    if not obj['no_cache']:
        try:
            cached = disk_cache.get(artist, title)
        except CacheError:
            cached = None
        if cached is not None:
            click.echo(f"'{artist} - {title}' is already cached")
            if cached.sync_offset:
                click.echo(f"sync offset: {cached.sync_offset:.2f}s")
            return

    click.echo(f"fetching: {artist} - {title}")
    resolver = _resolver(ctx)
    resolver.use_cache = False
    try:
        data = resolver.resolve(artist, title)
    except LyrechoError as e:
        _fail(obj['logger'], str(e))
        return

    click.echo(f"cached successfully: {data.artist_name} - {data.track_name}")
    if data.has_synced():
        click.echo("synced lyrics available")
    else:
        click.echo("only plain lyrics available (no timing)")


@lyrics.command()
@click.argument('artist')
@click.argument('title')
@click.pass_context
def preview(ctx, artist, title):
    """Print lyrics with timestamps."""
    try:
        validate_track_query(artist, title)
        data = _resolver(ctx).resolve(artist, title)
    except LyrechoError as e:
        _fail(ctx.obj['logger'], str(e))
        return
    if data.source == "cache":
        click.echo("(from cache)")
    echo_lyrics_preview(data)


# ----------------------
# player
# ----------------------


@cli.group()
def player():
    """Media player commands."""
    pass


@player.command(name='list')
@click.pass_context
def list_cmd(ctx):
    """List running MPRIS players."""
    try:
        router = connect_session_bus()
    except LyrechoError as e:
        _fail(ctx.obj['logger'], str(e))
        return

    try:
        services = list_players(router)
        if not services:
            click.echo("no mpris players found")
            click.echo("\ncheck if your music player is running and supports mpris")
            return

        click.echo(f"found {len(services)} mpris player(s):\n")
        for service in services:
            identity = player_identity(router, service)
            click.echo(f"  {service} ({identity})" if identity else f"  {service}")
        click.echo("\nuse --mpris-service flag to specify which player to use")
    except LyrechoError as e:
        _fail(ctx.obj['logger'], str(e))
    finally:
        close_session_bus(router)


@player.command()
@click.pass_context
def current(ctx):
    """Show the track the player is on."""
    source = _source(ctx)
    observer = TrackObserver(source)
    try:
        try:
            track = observer.get_current_track()
        except PropertyError:
            click.echo("no track currently playing")
            return
        playing = observer.get_playing()
        position = observer.get_current_position()
    except LyrechoError as e:
        _fail(ctx.obj['logger'], str(e))
        return
    finally:
        source.close()

    click.echo(f"title:    {track.title}")
    click.echo(f"artist:   {track.artist}")
    if track.album:
        click.echo(f"album:    {track.album}")
    if track.duration_secs > 0:
        click.echo(f"duration: {format_duration(track.duration_secs)}")
    if track.artwork_url:
        click.echo(f"artwork:  {track.artwork_url}")
    if playing:
        click.echo("state:    playing")
        click.echo(f"position: {format_duration(position)}")
    else:
        click.echo("state:    paused")


@player.command()
@click.option('--seconds', type=float, default=0,
              help='Stop after this many seconds (default: run until Ctrl-C)')
@click.pass_context
def watch(ctx, seconds):
    """Follow the player and print the current lyric line."""
    try:
        default_offset = validate_offset(ctx.obj['sync_offset'])
    except LyrechoError as e:
        _fail(ctx.obj['logger'], str(e))
        return

    source = _source(ctx)
    observer = TrackObserver(source)
    follower = LyricsFollower(_resolver(ctx), default_offset=default_offset)
    try:
        run_watch(observer, follower, seconds=seconds)
    except KeyboardInterrupt:
        pass
    except LyrechoError as e:
        _fail(ctx.obj['logger'], str(e))
    finally:
        source.close()


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
